"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from photo_findings.adapters.image_fetcher import HttpxImageFetcher
from photo_findings.adapters.openai_vision_client import OpenAIVisionClient
from photo_findings.adapters.rekognition_label_client import RekognitionLabelClient
from photo_findings.adapters.supabase_photo_record_store import (
    SupabasePhotoRecordStore,
)
from photo_findings.config import Settings, region_from_display_name
from photo_findings.services.labels import LabelDetectorService
from photo_findings.services.orchestrator import VisionOrchestrator
from photo_findings.services.vision import VisionService
from photo_findings.services.worker import PhotoRecordStore, VisionWorker, new_worker_id


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: PhotoRecordStore
    orchestrator: VisionOrchestrator
    worker: VisionWorker
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    region = region_from_display_name(resolved_settings.aws_region)
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    store = SupabasePhotoRecordStore(supabase_client)
    fetcher = HttpxImageFetcher.create(
        region=region,
        access_key_id=resolved_settings.aws_access_key_id,
        secret_access_key=resolved_settings.aws_secret_access_key,
        s3_bucket=resolved_settings.s3_bucket,
        s3_public_base_url=resolved_settings.s3_public_base_url,
    )
    label_detector = LabelDetectorService(
        client=RekognitionLabelClient.create(
            region=region,
            access_key_id=resolved_settings.aws_access_key_id,
            secret_access_key=resolved_settings.aws_secret_access_key,
        ),
        fetcher=fetcher,
        max_labels=resolved_settings.rekognition_max_labels,
        min_confidence=resolved_settings.rekognition_min_confidence,
    )
    vision_client = OpenAIVisionClient.create(
        resolved_settings.openai_api_key,
        timeout_seconds=resolved_settings.openai_timeout_seconds,
        max_retries=resolved_settings.openai_max_retries,
    )
    vision_service = VisionService(
        client=vision_client,
        fetcher=fetcher,
        model=resolved_settings.openai_vision_model,
    )
    orchestrator = VisionOrchestrator(
        label_detector=label_detector,
        vision_service=vision_service,
        hint_prefetch_enabled=resolved_settings.hint_prefetch_enabled,
        hint_head_start_seconds=resolved_settings.hint_head_start_seconds,
    )
    worker = VisionWorker(
        store=store,
        orchestrator=orchestrator,
        worker_id=new_worker_id(),
        poll_interval_seconds=resolved_settings.worker_poll_interval_seconds,
        batch_size=resolved_settings.worker_batch_size,
        lock_expiry=timedelta(seconds=resolved_settings.worker_lock_expiry_seconds),
        max_attempts=resolved_settings.worker_max_attempts,
    )

    async def close_resources() -> None:
        await fetcher.close()
        await vision_client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        orchestrator=orchestrator,
        worker=worker,
        close_resources=close_resources,
    )
