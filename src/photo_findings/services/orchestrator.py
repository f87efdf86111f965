"""Runs both vision providers for a photo and merges their output."""

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from photo_findings.domain.errors import VisionFailedError, error_code, should_alert
from photo_findings.domain.findings import (
    CombinedJudgment,
    DetectorOutcome,
    DetectorResult,
    LlmJudgment,
    LlmOutcome,
    PhotoFindings,
)
from photo_findings.domain.photos import PhotoRecord
from photo_findings.services.labels import LabelDetectorService
from photo_findings.services.vision import VisionService

_logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LLM_CONFIDENCE = 0.5
DETECTOR_SUMMARY_LABELS = 5
MAX_SUMMARY_LABELS = 10


@dataclass(frozen=True)
class Settled(Generic[T]):
    """Outcome of one concurrent branch: a value or the error it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle(awaitable: Awaitable[T]) -> Settled[T]:
    """Await a branch and capture its failure instead of raising it."""
    try:
        return Settled(value=await awaitable)
    except Exception as exc:
        return Settled(error=exc)


@dataclass
class VisionOrchestrator:
    """Obtains findings from both providers with graceful degradation."""

    label_detector: LabelDetectorService
    vision_service: VisionService
    hint_prefetch_enabled: bool = True
    hint_head_start_seconds: float = 0.5

    async def analyze(self, photo: PhotoRecord) -> PhotoFindings:
        """Return combined findings, or raise when both providers fail."""
        started = time.monotonic()
        _logger.info(
            "vision.photo.start photo_id=%s job_id=%s attempt=%s",
            photo.id,
            photo.job_id,
            photo.attempts,
        )
        detector, llm = await asyncio.gather(
            settle(self.label_detector.detect(photo.storage_ref)),
            settle(self._judge_with_hints(photo)),
        )
        if not detector.ok:
            _log_branch_failure("detector", photo, detector.error)
        if not llm.ok:
            _log_branch_failure("llm", photo, llm.error)
        if not detector.ok and not llm.ok:
            raise VisionFailedError(detector.error, llm.error)

        findings = PhotoFindings(
            image_url=photo.storage_ref,
            kind=photo.kind,
            detector=_detector_outcome(detector),
            llm=_llm_outcome(llm),
            combined=combine(detector.value, llm.value),
        )
        _logger.info(
            "vision.photo.analyzed photo_id=%s detector=%s llm=%s labels=%s "
            "duration_ms=%s",
            photo.id,
            findings.detector.status,
            findings.llm.status,
            findings.combined.summary_labels[:5],
            int((time.monotonic() - started) * 1000),
        )
        return findings

    async def _judge_with_hints(self, photo: PhotoRecord) -> LlmJudgment:
        hints: list[str] = []
        if self.hint_prefetch_enabled:
            await asyncio.sleep(self.hint_head_start_seconds)
            hints = await self._label_hints(photo)
        return await self.vision_service.analyze(photo.storage_ref, photo.kind, hints)

    async def _label_hints(self, photo: PhotoRecord) -> list[str]:
        """Best-effort label names used only to enrich the LLM prompt."""
        try:
            result = await self.label_detector.detect(photo.storage_ref)
        except Exception as exc:
            _logger.info(
                "vision.hints.unavailable photo_id=%s error=%s",
                photo.id,
                error_code(exc),
            )
            return []
        return [label.name for label in result.labels]


def combine(
    detector: DetectorResult | None, llm: LlmJudgment | None
) -> CombinedJudgment:
    """Compute the deterministic combined judgment."""
    llm_confidence = llm.confidence if llm is not None else DEFAULT_LLM_CONFIDENCE
    detector_names = [label.name for label in detector.labels] if detector else []
    llm_labels = llm.labels if llm is not None else []
    summary_labels = _dedupe(
        [*llm_labels, *detector_names[:DETECTOR_SUMMARY_LABELS]]
    )[:MAX_SUMMARY_LABELS]
    if llm is None:
        return CombinedJudgment(
            confidence=_combined_confidence(llm_confidence),
            summary_labels=summary_labels,
        )
    return CombinedJudgment(
        confidence=_combined_confidence(llm_confidence),
        summary_labels=summary_labels,
        needs_more_photos=llm.needs_more_photos,
        needs_clarification=llm.needs_clarification,
        scope_ambiguous=llm.scope_ambiguous,
        clarification_reasons=llm.clarification_reasons,
        suggested_scope_options=llm.suggested_scope_options,
        detected_trade=llm.detected_trade,
        is_painting_related=llm.is_painting_related,
        estimated_severity=llm.estimated_severity,
    )


def _combined_confidence(llm_confidence: float) -> float:
    return max(0.0, min(1.0, llm_confidence * 0.9 + 0.1))


def _dedupe(labels: list[str]) -> list[str]:
    """Drop blanks and case-insensitive repeats, keeping first spelling."""
    seen: set[str] = set()
    unique: list[str] = []
    for label in labels:
        cleaned = label.strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        unique.append(cleaned)
    return unique


def _detector_outcome(branch: Settled[DetectorResult]) -> DetectorOutcome:
    if branch.ok:
        return DetectorOutcome(status="ready", result=branch.value)
    return DetectorOutcome(status="failed", error=error_code(branch.error))


def _llm_outcome(branch: Settled[LlmJudgment]) -> LlmOutcome:
    if branch.ok:
        return LlmOutcome(status="ready", result=branch.value)
    return LlmOutcome(status="failed", error=error_code(branch.error))


def _log_branch_failure(
    branch: str, photo: PhotoRecord, error: Exception | None
) -> None:
    alert = error is not None and should_alert(error)
    _logger.log(
        logging.ERROR if alert else logging.WARNING,
        "vision.%s.failed photo_id=%s code=%s alert=%s error=%s",
        branch,
        photo.id,
        error_code(error) if error else "unknown",
        alert,
        error,
    )
