"""Application configuration."""

import os
import re

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
_REGION_CODE = re.compile(r"[a-z]{2}-[a-z]+-\d")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    openai_api_key: str
    openai_vision_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 60.0
    # Retries are left to the worker backoff; timeout * (retries + 1) must
    # stay under worker_lock_expiry_seconds.
    openai_max_retries: int = 0
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    s3_bucket: str | None = None
    s3_public_base_url: str | None = None
    rekognition_max_labels: int = 20
    rekognition_min_confidence: float = 70.0
    worker_enabled: bool = True
    worker_poll_interval_seconds: float = 0.3
    worker_batch_size: int = 5
    worker_lock_expiry_seconds: int = 120
    worker_max_attempts: int = 5
    hint_prefetch_enabled: bool = True
    hint_head_start_seconds: float = 0.5
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def region_from_display_name(raw: str) -> str:
    """Extract an AWS region code from a console display name."""
    match = _REGION_CODE.search(raw)
    if match:
        return match.group(0)
    return raw.strip()
