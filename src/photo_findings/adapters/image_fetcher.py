"""Download raw photo bytes from S3 or a public URL."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlparse

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from photo_findings.domain.errors import ImageFetchError

_logger = logging.getLogger(__name__)

_VIRTUAL_HOSTED = re.compile(r"^([^.]+)\.s3(?:[.-][^.]+)?\.amazonaws\.com$")
_PATH_STYLE = re.compile(r"^s3(?:[.-][^.]+)?\.amazonaws\.com$")


@dataclass(frozen=True)
class S3ObjectRef:
    """Bucket and key of an object stored in S3."""

    bucket: str
    key: str


def parse_s3_url(
    url: str, bucket: str | None = None, public_base_url: str | None = None
) -> S3ObjectRef | None:
    """Map an S3 or CDN URL back to its bucket and key."""
    parsed = urlparse(url)
    hostname = parsed.hostname or ""
    path = parsed.path.lstrip("/")

    match = _VIRTUAL_HOSTED.match(hostname)
    if match and path:
        return S3ObjectRef(bucket=match.group(1), key=path)

    if _PATH_STYLE.match(hostname):
        parts = path.split("/", 1)
        if len(parts) == 2 and parts[1]:
            return S3ObjectRef(bucket=parts[0], key=parts[1])

    if bucket and public_base_url and url.startswith(public_base_url):
        key = url[len(public_base_url) :].lstrip("/")
        if key:
            return S3ObjectRef(bucket=bucket, key=key)
    return None


class ImageFetcher(Protocol):
    """Interface for loading photo bytes by storage reference."""

    async def fetch(self, storage_ref: str) -> bytes:
        """Return the raw bytes behind a storage reference."""


@dataclass
class HttpxImageFetcher(ImageFetcher):
    """Fetch bytes with the S3 SDK when possible, else over HTTP."""

    http_client: httpx.AsyncClient
    s3_client: Any | None = None
    s3_bucket: str | None = None
    s3_public_base_url: str | None = None

    @classmethod
    def create(
        cls,
        *,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        s3_bucket: str | None = None,
        s3_public_base_url: str | None = None,
    ) -> "HttpxImageFetcher":
        """Create a fetcher with a managed httpx session and S3 client."""
        s3_client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        return cls(
            http_client=httpx.AsyncClient(
                follow_redirects=True,
                headers={"Accept": "image/*,*/*"},
            ),
            s3_client=s3_client,
            s3_bucket=s3_bucket,
            s3_public_base_url=s3_public_base_url,
        )

    async def fetch(self, storage_ref: str) -> bytes:
        """Fetch image bytes, preferring a direct S3 read."""
        s3_ref = parse_s3_url(storage_ref, self.s3_bucket, self.s3_public_base_url)
        if s3_ref is not None and self.s3_client is not None:
            try:
                return await asyncio.to_thread(self._get_s3_object, s3_ref)
            except (BotoCoreError, ClientError) as exc:
                _logger.warning(
                    "image.fetch.s3_failed bucket=%s error=%s", s3_ref.bucket, exc
                )
        return await self._fetch_http(storage_ref)

    def _get_s3_object(self, s3_ref: S3ObjectRef) -> bytes:
        response = self.s3_client.get_object(Bucket=s3_ref.bucket, Key=s3_ref.key)
        body = response["Body"].read()
        if not body:
            raise ImageFetchError("Image object in S3 is empty")
        return body

    async def _fetch_http(self, url: str) -> bytes:
        try:
            response = await self.http_client.get(url, timeout=20)
        except httpx.TransportError as exc:
            raise ImageFetchError(f"Failed to fetch image: {exc}") from exc
        status_code = response.status_code
        if status_code in {403, 404}:
            raise ImageFetchError(
                f"Image not accessible ({status_code})", retryable=False
            )
        if status_code >= 400:
            raise ImageFetchError(f"Image host returned {status_code}")
        if not response.content:
            raise ImageFetchError("Image response was empty")
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
