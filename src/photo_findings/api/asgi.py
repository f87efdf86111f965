"""ASGI entrypoint for the photo findings API."""

from photo_findings.api.app import create_app
from photo_findings.containers import build_container

app = create_app(build_container())
