"""Background loop that claims pending photos and records their findings."""

import asyncio
import logging
import os
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from photo_findings.domain.errors import error_code, should_alert
from photo_findings.domain.photos import PhotoRecord
from photo_findings.services.backoff import MAX_ATTEMPTS, decide_retry
from photo_findings.services.orchestrator import VisionOrchestrator

_logger = logging.getLogger(__name__)


class PhotoRecordStore(Protocol):
    """Persistence interface for photo analysis state."""

    def select_claimable(
        self, limit: int, now: datetime, lock_expired_before: datetime
    ) -> list[PhotoRecord]:
        """Return due pending photos and abandoned claims, newest first."""

    def claim(
        self,
        photo_id: UUID,
        worker_id: str,
        now: datetime,
        lock_expired_before: datetime,
    ) -> PhotoRecord | None:
        """Atomically take ownership of a photo, or return None if lost."""

    def mark_ready(
        self,
        photo_id: UUID,
        worker_id: str,
        findings: dict[str, object],
        analyzed_at: datetime,
    ) -> bool:
        """Persist findings; False when worker_id no longer holds the claim."""

    def mark_retry(
        self,
        photo_id: UUID,
        worker_id: str,
        error: str,
        next_attempt_at: datetime,
    ) -> bool:
        """Return the photo to pending with a scheduled next attempt."""

    def mark_failed(self, photo_id: UUID, worker_id: str, error: str) -> bool:
        """Move the photo to the terminal failed state."""

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""

    def list_job_photos(self, job_id: int) -> list[PhotoRecord]:
        """Return every photo of a job."""

    def request_reanalysis(self, photo_id: UUID) -> PhotoRecord | None:
        """Reset a ready or failed photo to pending; None if not allowed."""


def new_worker_id() -> str:
    """Generate a process-unique worker identity."""
    return f"vision-{os.getpid()}-{secrets.token_hex(6)}"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class VisionWorker:
    """Polls the store and processes one claimed photo per iteration."""

    store: PhotoRecordStore
    orchestrator: VisionOrchestrator
    worker_id: str
    poll_interval_seconds: float = 0.3
    batch_size: int = 5
    lock_expiry: timedelta = timedelta(minutes=2)
    max_attempts: int = MAX_ATTEMPTS
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def run(self, stop: asyncio.Event) -> None:
        """Loop until the stop event is set; iteration errors are logged."""
        _logger.info("worker.start worker_id=%s", self.worker_id)
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_seconds)
            except TimeoutError:
                pass
            if stop.is_set():
                break
            try:
                await self.process_next()
            except Exception:
                _logger.exception("worker.error worker_id=%s", self.worker_id)
        _logger.info("worker.stop worker_id=%s", self.worker_id)

    async def process_next(self) -> bool:
        """Claim and process at most one photo; return whether one ran."""
        now = self.clock()
        lock_expired_before = now - self.lock_expiry
        candidates = self.store.select_claimable(
            self.batch_size, now, lock_expired_before
        )
        for candidate in candidates:
            claimed = self.store.claim(
                candidate.id, self.worker_id, now, lock_expired_before
            )
            if claimed is None:
                continue
            await self.run_photo(claimed)
            return True
        return False

    async def run_photo(self, photo: PhotoRecord) -> None:
        """Analyze a claimed photo and persist the outcome."""
        try:
            findings = await self.orchestrator.analyze(photo)
        except Exception as exc:
            self._record_failure(photo, exc)
            return
        written = self.store.mark_ready(
            photo.id,
            self.worker_id,
            findings.model_dump(mode="json"),
            analyzed_at=self.clock(),
        )
        if not written:
            self._log_lost_claim(photo)
            return
        _logger.info(
            "worker.photo.ready photo_id=%s attempts=%s", photo.id, photo.attempts
        )

    def _record_failure(self, photo: PhotoRecord, exc: Exception) -> None:
        message = f"{error_code(exc)}: {exc}"
        decision = decide_retry(photo.attempts, self.clock(), self.max_attempts)
        if decision.terminal or decision.next_attempt_at is None:
            written = self.store.mark_failed(photo.id, self.worker_id, message)
        else:
            written = self.store.mark_retry(
                photo.id, self.worker_id, message, decision.next_attempt_at
            )
        if not written:
            self._log_lost_claim(photo)
            return
        _logger.error(
            "worker.photo.failed photo_id=%s job_id=%s attempts=%s terminal=%s "
            "alert=%s error=%s",
            photo.id,
            photo.job_id,
            photo.attempts,
            decision.terminal,
            should_alert(exc),
            message,
        )

    def _log_lost_claim(self, photo: PhotoRecord) -> None:
        # Lock expired mid-analysis and another worker reclaimed the photo.
        _logger.warning(
            "worker.photo.claim_lost photo_id=%s worker_id=%s attempts=%s",
            photo.id,
            self.worker_id,
            photo.attempts,
        )
