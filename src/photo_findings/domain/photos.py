"""Domain models for photo analysis records."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_READY = "ready"
STATUS_FAILED = "failed"

TERMINAL_STATUSES = frozenset({STATUS_READY, STATUS_FAILED})


@dataclass(frozen=True)
class PhotoRecord:
    """Persisted per-photo analysis state."""

    id: UUID
    job_id: int
    storage_ref: str
    kind: str
    findings_status: str
    attempts: int = 0
    findings: dict[str, object] | None = None
    next_attempt_at: datetime | None = None
    locked_by: str | None = None
    locked_at: datetime | None = None
    analyzed_at: datetime | None = None
    error: str | None = None
    created_at: datetime | None = None
