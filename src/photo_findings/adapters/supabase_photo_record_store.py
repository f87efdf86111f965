"""Supabase-backed photo record store."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from photo_findings.domain.photos import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_READY,
    PhotoRecord,
)
from photo_findings.services.worker import PhotoRecordStore

_TABLE = "mobile_job_photos"
_CLAIM_FUNCTION = "claim_photo_for_findings"
_COLUMNS = (
    "id, job_id, kind, public_url, findings, findings_status, findings_attempts, "
    "findings_next_attempt_at, findings_locked_by, findings_locked_at, "
    "findings_error, analyzed_at, created_at"
)
_RELEASE_LOCK = {"findings_locked_by": None, "findings_locked_at": None}


@dataclass
class SupabasePhotoRecordStore(PhotoRecordStore):
    """Supabase implementation for photo analysis state."""

    client: Client

    def select_claimable(
        self, limit: int, now: datetime, lock_expired_before: datetime
    ) -> list[PhotoRecord]:
        """Return due pending photos plus abandoned claims, newest first."""
        due = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("findings_status", STATUS_PENDING)
            .or_(
                "findings_next_attempt_at.is.null,"
                f"findings_next_attempt_at.lte.{now.isoformat()}"
            )
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        abandoned = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("findings_status", STATUS_PROCESSING)
            .lt("findings_locked_at", lock_expired_before.isoformat())
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        records = [_to_record(row) for row in (due.data or []) + (abandoned.data or [])]
        records.sort(key=_created_sort_key, reverse=True)
        return records[:limit]

    def claim(
        self,
        photo_id: UUID,
        worker_id: str,
        now: datetime,
        lock_expired_before: datetime,
    ) -> PhotoRecord | None:
        """Run the conditional claim update inside Postgres."""
        response = self.client.rpc(
            _CLAIM_FUNCTION,
            {
                "p_photo_id": str(photo_id),
                "p_worker_id": worker_id,
                "p_now": now.isoformat(),
                "p_lock_expired_before": lock_expired_before.isoformat(),
            },
        ).execute()
        if not response.data:
            return None
        return _to_record(response.data[0])

    def mark_ready(
        self,
        photo_id: UUID,
        worker_id: str,
        findings: dict[str, object],
        analyzed_at: datetime,
    ) -> bool:
        """Persist findings and release the claim."""
        return self._finish(
            photo_id,
            worker_id,
            {
                "findings": findings,
                "findings_status": STATUS_READY,
                "findings_error": None,
                "findings_next_attempt_at": None,
                "analyzed_at": analyzed_at.isoformat(),
            },
        )

    def mark_retry(
        self,
        photo_id: UUID,
        worker_id: str,
        error: str,
        next_attempt_at: datetime,
    ) -> bool:
        """Return the photo to pending with a scheduled next attempt."""
        return self._finish(
            photo_id,
            worker_id,
            {
                "findings_status": STATUS_PENDING,
                "findings_error": error,
                "findings_next_attempt_at": next_attempt_at.isoformat(),
            },
        )

    def mark_failed(self, photo_id: UUID, worker_id: str, error: str) -> bool:
        """Move the photo to the terminal failed state."""
        return self._finish(
            photo_id,
            worker_id,
            {
                "findings_status": STATUS_FAILED,
                "findings_error": error,
                "findings_next_attempt_at": None,
            },
        )

    def _finish(
        self, photo_id: UUID, worker_id: str, changes: dict[str, object]
    ) -> bool:
        """Apply a terminal write only while worker_id still owns the claim."""
        response = (
            self.client.table(_TABLE)
            .update({**changes, **_RELEASE_LOCK})
            .eq("id", str(photo_id))
            .eq("findings_status", STATUS_PROCESSING)
            .eq("findings_locked_by", worker_id)
            .execute()
        )
        return bool(response.data)

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("id", str(photo_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    def list_job_photos(self, job_id: int) -> list[PhotoRecord]:
        """Return every photo of a job, oldest first."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("job_id", job_id)
            .order("created_at")
            .execute()
        )
        return [_to_record(row) for row in response.data or []]

    def request_reanalysis(self, photo_id: UUID) -> PhotoRecord | None:
        """Reset a finished photo to pending, keeping its attempt count."""
        response = (
            self.client.table(_TABLE)
            .update(
                {
                    "findings_status": STATUS_PENDING,
                    "findings_error": None,
                    "findings_next_attempt_at": None,
                    **_RELEASE_LOCK,
                }
            )
            .eq("id", str(photo_id))
            .in_("findings_status", [STATUS_READY, STATUS_FAILED])
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])


def _parse_timestamp(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _created_sort_key(record: PhotoRecord) -> float:
    return record.created_at.timestamp() if record.created_at else 0.0


def _to_record(row: dict[str, object]) -> PhotoRecord:
    return PhotoRecord(
        id=UUID(str(row["id"])),
        job_id=int(row["job_id"]),
        storage_ref=str(row["public_url"]),
        kind=str(row.get("kind") or "site"),
        findings=row.get("findings"),
        findings_status=str(row["findings_status"]),
        attempts=int(row.get("findings_attempts") or 0),
        next_attempt_at=_parse_timestamp(row.get("findings_next_attempt_at")),
        locked_by=row.get("findings_locked_by"),
        locked_at=_parse_timestamp(row.get("findings_locked_at")),
        analyzed_at=_parse_timestamp(row.get("analyzed_at")),
        error=row.get("findings_error"),
        created_at=_parse_timestamp(row.get("created_at")),
    )
