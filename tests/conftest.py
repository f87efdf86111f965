"""Shared test fixtures."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from photo_findings.config import Settings
from photo_findings.containers import AppContainer
from photo_findings.domain.photos import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_READY,
    TERMINAL_STATUSES,
    PhotoRecord,
)
from photo_findings.services.labels import LabelClient, LabelDetectorService
from photo_findings.services.orchestrator import VisionOrchestrator
from photo_findings.services.vision import VisionClient, VisionService
from photo_findings.services.worker import PhotoRecordStore, VisionWorker

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
WEBP_BYTES = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 32
HEIC_BYTES = b"\x00\x00\x00\x18ftypheic" + b"\x00" * 32

BASE_TIME = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def vision_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "confidence": 0.8,
        "kind_guess": "interior wall",
        "labels": ["drywall", "water stain", "Ceiling"],
        "objects": [{"name": "ceiling fan", "notes": "missing blade"}],
        "materials": ["drywall"],
        "damage": ["water stain on ceiling"],
        "issues": ["dated light fixture"],
        "measurements": [],
        "needs_more_photos": ["wide shot of the room"],
        "needs_clarification": True,
        "scope_ambiguous": True,
        "clarification_reasons": ["unclear whether whole ceiling is repainted"],
        "suggested_scope_options": [
            {"id": "spot", "label": "Spot repair", "description": None},
            {"id": "full", "label": "Full ceiling", "description": "Repaint all"},
        ],
        "detected_trade": "painting",
        "is_painting_related": True,
        "estimated_severity": "partial",
    }
    payload.update(overrides)
    return payload


@dataclass
class FakeImageFetcher:
    """Fake fetcher returning static bytes per storage reference."""

    content: bytes = JPEG_BYTES
    by_ref: dict[str, bytes] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def fetch(self, storage_ref: str) -> bytes:
        self.calls.append(storage_ref)
        return self.by_ref.get(storage_ref, self.content)


@dataclass
class FakeLabelClient(LabelClient):
    """Fake label detector returning fixed labels or raising."""

    labels: list[dict[str, object]] = field(
        default_factory=lambda: [
            {"name": "Wall", "confidence": 91.0},
            {"name": "Ceiling", "confidence": 98.5},
            {"name": "Indoors", "confidence": 88.0},
            {"name": "Stain", "confidence": 75.2},
            {"name": "Lamp", "confidence": 80.0},
            {"name": "Floor", "confidence": 79.0},
            {"name": "Furniture", "confidence": 72.0},
        ]
    )
    error: Exception | None = None
    calls: int = 0

    async def detect_labels(
        self, *, image_bytes: bytes, max_labels: int, min_confidence: float
    ) -> dict[str, object]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {"provider": "fake-detector", "model": "fake", "labels": self.labels}


@dataclass
class FakeVisionClient(VisionClient):
    """Fake vision client returning a fixed payload or raising."""

    payload: dict[str, object] = field(default_factory=vision_payload)
    error: Exception | None = None
    prompts: list[str] = field(default_factory=list)
    image_urls: list[str] = field(default_factory=list)

    async def extract(
        self,
        *,
        model: str,
        instructions: str,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        self.prompts.append(prompt)
        self.image_urls.append(image_data_url)
        if self.error is not None:
            raise self.error
        return self.payload


@dataclass
class InMemoryPhotoRecordStore(PhotoRecordStore):
    """In-memory store whose claim is atomic under a lock."""

    photos: dict[UUID, PhotoRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def add_photo(
        self,
        *,
        job_id: int = 1,
        kind: str = "site",
        storage_ref: str = "https://cdn.example.com/photos/p1.jpg",
        created_at: datetime | None = None,
        **overrides: object,
    ) -> PhotoRecord:
        photo = PhotoRecord(
            id=uuid4(),
            job_id=job_id,
            storage_ref=storage_ref,
            kind=kind,
            findings_status=STATUS_PENDING,
            created_at=created_at
            or BASE_TIME - timedelta(hours=1) + timedelta(minutes=len(self.photos)),
        )
        photo = replace(photo, **overrides)
        self.photos[photo.id] = photo
        return photo

    def select_claimable(
        self, limit: int, now: datetime, lock_expired_before: datetime
    ) -> list[PhotoRecord]:
        candidates = [
            photo
            for photo in self.photos.values()
            if (
                photo.findings_status == STATUS_PENDING
                and (photo.next_attempt_at is None or photo.next_attempt_at <= now)
            )
            or (
                photo.findings_status == STATUS_PROCESSING
                and photo.locked_at is not None
                and photo.locked_at < lock_expired_before
            )
        ]
        candidates.sort(key=lambda photo: photo.created_at, reverse=True)
        return candidates[:limit]

    def claim(
        self,
        photo_id: UUID,
        worker_id: str,
        now: datetime,
        lock_expired_before: datetime,
    ) -> PhotoRecord | None:
        with self._lock:
            photo = self.photos.get(photo_id)
            if photo is None or photo.findings_status not in {
                STATUS_PENDING,
                STATUS_PROCESSING,
            }:
                return None
            if photo.locked_at is not None and photo.locked_at >= lock_expired_before:
                return None
            claimed = replace(
                photo,
                findings_status=STATUS_PROCESSING,
                locked_by=worker_id,
                locked_at=now,
                next_attempt_at=None,
                attempts=photo.attempts + 1,
            )
            self.photos[photo_id] = claimed
            return claimed

    def _finish(self, photo_id: UUID, worker_id: str, **changes: object) -> bool:
        with self._lock:
            photo = self.photos[photo_id]
            if (
                photo.findings_status != STATUS_PROCESSING
                or photo.locked_by != worker_id
            ):
                return False
            self.photos[photo_id] = replace(
                photo, locked_by=None, locked_at=None, **changes
            )
            return True

    def mark_ready(
        self,
        photo_id: UUID,
        worker_id: str,
        findings: dict[str, object],
        analyzed_at: datetime,
    ) -> bool:
        return self._finish(
            photo_id,
            worker_id,
            findings=findings,
            findings_status=STATUS_READY,
            analyzed_at=analyzed_at,
            error=None,
            next_attempt_at=None,
        )

    def mark_retry(
        self,
        photo_id: UUID,
        worker_id: str,
        error: str,
        next_attempt_at: datetime,
    ) -> bool:
        return self._finish(
            photo_id,
            worker_id,
            findings_status=STATUS_PENDING,
            error=error,
            next_attempt_at=next_attempt_at,
        )

    def mark_failed(self, photo_id: UUID, worker_id: str, error: str) -> bool:
        return self._finish(
            photo_id,
            worker_id,
            findings_status=STATUS_FAILED,
            error=error,
            next_attempt_at=None,
        )

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        return self.photos.get(photo_id)

    def list_job_photos(self, job_id: int) -> list[PhotoRecord]:
        return [photo for photo in self.photos.values() if photo.job_id == job_id]

    def request_reanalysis(self, photo_id: UUID) -> PhotoRecord | None:
        with self._lock:
            photo = self.photos.get(photo_id)
            if photo is None or photo.findings_status not in TERMINAL_STATUSES:
                return None
            reset = replace(
                photo,
                findings_status=STATUS_PENDING,
                error=None,
                next_attempt_at=None,
                locked_by=None,
                locked_at=None,
            )
            self.photos[photo_id] = reset
            return reset


@dataclass
class ManualClock:
    """Clock the tests advance explicitly."""

    now: datetime = BASE_TIME

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        openai_api_key="openai-key",
        worker_enabled=False,
    )


@pytest.fixture
def store() -> InMemoryPhotoRecordStore:
    return InMemoryPhotoRecordStore()


@pytest.fixture
def fetcher() -> FakeImageFetcher:
    return FakeImageFetcher()


@pytest.fixture
def label_client() -> FakeLabelClient:
    return FakeLabelClient()


@pytest.fixture
def vision_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def orchestrator(
    label_client: FakeLabelClient,
    vision_client: FakeVisionClient,
    fetcher: FakeImageFetcher,
) -> VisionOrchestrator:
    return VisionOrchestrator(
        label_detector=LabelDetectorService(client=label_client, fetcher=fetcher),
        vision_service=VisionService(
            client=vision_client, fetcher=fetcher, model="gpt-4o-mini"
        ),
        hint_head_start_seconds=0,
    )


@pytest.fixture
def worker(
    store: InMemoryPhotoRecordStore,
    orchestrator: VisionOrchestrator,
    clock: ManualClock,
) -> VisionWorker:
    return VisionWorker(
        store=store,
        orchestrator=orchestrator,
        worker_id="vision-test-worker",
        poll_interval_seconds=0,
        clock=clock,
    )


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryPhotoRecordStore,
    orchestrator: VisionOrchestrator,
    worker: VisionWorker,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        orchestrator=orchestrator,
        worker=worker,
        close_resources=close_resources,
    )
