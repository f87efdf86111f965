"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from photo_findings.domain.photos import STATUS_FAILED

if TYPE_CHECKING:
    from photo_findings.containers import AppContainer
    from photo_findings.domain.photos import PhotoRecord

router = APIRouter(prefix="/admin", tags=["admin"])

_STATUS_MESSAGES = {
    "pending": "Still analyzing.",
    "processing": "Still analyzing.",
    "ready": "Analysis complete.",
    "failed": "Analysis failed. Retry to analyze this photo again.",
}


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def photo_summary(photo: PhotoRecord) -> dict[str, object]:
    """Public view of a photo; provider error text is never included."""
    combined = None
    if photo.findings_status == "ready" and photo.findings:
        combined = photo.findings.get("combined")
    return {
        "id": str(photo.id),
        "job_id": photo.job_id,
        "kind": photo.kind,
        "status": photo.findings_status,
        "attempts": photo.attempts,
        "message": _STATUS_MESSAGES.get(photo.findings_status, ""),
        "analyzed_at": photo.analyzed_at.isoformat() if photo.analyzed_at else None,
        "combined": combined,
    }


@router.get("/photos/{photo_id}", dependencies=[Depends(require_admin)])
async def photo_detail(photo_id: UUID, request: Request) -> dict[str, object]:
    """Return analysis status and combined findings for a photo."""
    container: AppContainer = request.app.state.container
    photo = container.store.get_photo(photo_id)
    if photo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return photo_summary(photo)


@router.post("/photos/{photo_id}/retry", dependencies=[Depends(require_admin)])
async def retry_photo(photo_id: UUID, request: Request) -> dict[str, object]:
    """Queue a finished photo for a fresh analysis."""
    container: AppContainer = request.app.state.container
    if container.store.get_photo(photo_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    photo = container.store.request_reanalysis(photo_id)
    if photo is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Photo is still being analyzed",
        )
    return photo_summary(photo)


@router.get("/jobs/{job_id}/photos", dependencies=[Depends(require_admin)])
async def job_photos(job_id: int, request: Request) -> dict[str, object]:
    """Return analysis progress for every photo of a job."""
    container: AppContainer = request.app.state.container
    photos = container.store.list_job_photos(job_id)
    counts = Counter(photo.findings_status for photo in photos)
    return {
        "job_id": job_id,
        "total": len(photos),
        "counts": dict(counts),
        "photos": [photo_summary(photo) for photo in photos],
    }


@router.post("/jobs/{job_id}/photos/retry", dependencies=[Depends(require_admin)])
async def retry_job_photos(job_id: int, request: Request) -> dict[str, object]:
    """Queue every failed photo of a job for another analysis."""
    container: AppContainer = request.app.state.container
    retried = [
        photo.id
        for photo in container.store.list_job_photos(job_id)
        if photo.findings_status == STATUS_FAILED
        and container.store.request_reanalysis(photo.id) is not None
    ]
    return {"job_id": job_id, "retried": len(retried)}
