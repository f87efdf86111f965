"""General-purpose label detection with an upfront image format gate."""

import logging
from dataclasses import dataclass
from typing import Protocol

from photo_findings.adapters.image_fetcher import ImageFetcher
from photo_findings.domain.errors import ImageFormatError
from photo_findings.domain.findings import DetectorLabel, DetectorResult

_logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = frozenset({"jpeg", "png"})


class LabelClient(Protocol):
    """Interface for an object/label detection provider."""

    async def detect_labels(
        self, *, image_bytes: bytes, max_labels: int, min_confidence: float
    ) -> dict[str, object]:
        """Return the provider name, model and raw label list."""


def sniff_image_format(image_bytes: bytes) -> str | None:
    """Identify an image container from its magic bytes."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if len(image_bytes) >= 12:
        if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
            return "webp"
        if image_bytes[4:8] == b"ftyp":
            return "heic"
    if image_bytes[:6] in {b"GIF87a", b"GIF89a"}:
        return "gif"
    return None


@dataclass
class LabelDetectorService:
    """Validates image bytes, calls the detector and normalizes labels."""

    client: LabelClient
    fetcher: ImageFetcher
    max_labels: int = 20
    min_confidence: float = 70.0

    async def detect(self, image: bytes | str) -> DetectorResult:
        """Detect labels for raw bytes or a storage reference."""
        if isinstance(image, bytes):
            image_bytes = image
        else:
            image_bytes = await self.fetcher.fetch(image)
        image_format = sniff_image_format(image_bytes)
        if image_format not in SUPPORTED_FORMATS:
            raise ImageFormatError(
                f"Unsupported image format: {image_format or 'unknown'}; "
                "label detection requires JPEG or PNG",
                provider="detector",
            )

        raw = await self.client.detect_labels(
            image_bytes=image_bytes,
            max_labels=self.max_labels,
            min_confidence=self.min_confidence,
        )
        labels = [
            DetectorLabel(
                name=str(entry["name"]), confidence=float(entry["confidence"])
            )
            for entry in raw.get("labels", [])
            if entry.get("name") and isinstance(entry.get("confidence"), int | float)
        ]
        labels = [label for label in labels if label.confidence >= self.min_confidence]
        labels.sort(key=lambda label: label.confidence, reverse=True)
        result = DetectorResult(
            provider=str(raw.get("provider", "unknown")),
            model=str(raw.get("model", "unknown")),
            labels=labels[: self.max_labels],
        )
        _logger.info(
            "vision.detector.success format=%s labels=%s top=%s",
            image_format,
            len(result.labels),
            [label.name for label in result.labels[:5]],
        )
        return result
