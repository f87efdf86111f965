"""Multimodal photo judgment using a vision-capable LLM."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from photo_findings.adapters.image_fetcher import ImageFetcher
from photo_findings.domain.errors import ProviderResponseError
from photo_findings.domain.findings import LlmJudgment

_logger = logging.getLogger(__name__)

_STRING_LIST: dict[str, object] = {"type": "array", "items": {"type": "string"}}
_NULLABLE_STRING: dict[str, object] = {
    "anyOf": [{"type": "string"}, {"type": "null"}]
}

VISION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "kind_guess": _NULLABLE_STRING,
        "labels": _STRING_LIST,
        "objects": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "notes": _NULLABLE_STRING,
                },
                "required": ["name", "notes"],
                "additionalProperties": False,
            },
        },
        "materials": _STRING_LIST,
        "damage": _STRING_LIST,
        "issues": _STRING_LIST,
        "measurements": _STRING_LIST,
        "needs_more_photos": _STRING_LIST,
        "needs_clarification": {"type": "boolean"},
        "scope_ambiguous": {"type": "boolean"},
        "clarification_reasons": _STRING_LIST,
        "suggested_scope_options": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "label": {"type": "string"},
                    "description": _NULLABLE_STRING,
                },
                "required": ["id", "label", "description"],
                "additionalProperties": False,
            },
        },
        "detected_trade": _NULLABLE_STRING,
        "is_painting_related": {"type": "boolean"},
        "estimated_severity": {
            "anyOf": [
                {"type": "string", "enum": ["spot", "partial", "full"]},
                {"type": "null"},
            ]
        },
    },
    "required": [
        "confidence",
        "kind_guess",
        "labels",
        "objects",
        "materials",
        "damage",
        "issues",
        "measurements",
        "needs_more_photos",
        "needs_clarification",
        "scope_ambiguous",
        "clarification_reasons",
        "suggested_scope_options",
        "detected_trade",
        "is_painting_related",
        "estimated_severity",
    ],
    "additionalProperties": False,
}

ESTIMATOR_INSTRUCTIONS = """\
You are a senior field estimator helping contractors scope repair and remodel jobs.

Identify every actionable issue a contractor should address:
- visible damage (cracks, stains, rot, water damage)
- missing components (missing shades, hardware, incomplete fixtures)
- items in disrepair, worn, dated or non-functional
- fixtures that need replacement or upgrade
- safety concerns (exposed wiring, unstable fixtures, hazards)

Rules:
- Put physical damage in "damage" and other problems in "issues".
- Add notes to objects that have problems.
- If unsure about details, add an entry to "needs_more_photos".
- Do not guess measurements; leave "measurements" empty when unknown.
- When the photo does not make clear how much work is wanted (spot repair vs
  a full room), set "needs_clarification" and "scope_ambiguous", explain why
  in "clarification_reasons" and offer tiers in "suggested_scope_options".
- Estimate severity as spot, partial or full when possible.
- Output must match the JSON schema."""


class VisionClient(Protocol):
    """Interface for LLM vision extraction."""

    async def extract(
        self,
        *,
        model: str,
        instructions: str,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return structured vision extraction data."""


@dataclass
class VisionService:
    """Fetches photo bytes, prompts the model and validates its judgment."""

    client: VisionClient
    fetcher: ImageFetcher
    model: str
    provider: str = "openai"

    async def analyze(
        self, storage_ref: str, kind: str, label_hints: list[str]
    ) -> LlmJudgment:
        """Return a schema-validated judgment for a stored photo."""
        image_bytes = await self.fetcher.fetch(storage_ref)
        data_url = _to_data_url(image_bytes)
        prompt = (
            f"Photo kind hint: {kind}\n"
            f"Detected labels (hints): {', '.join(label_hints) or 'none'}"
        )
        _logger.info(
            "vision.llm.request model=%s kind=%s hints=%s bytes=%s",
            self.model,
            kind,
            len(label_hints),
            len(image_bytes),
        )
        raw = await self.client.extract(
            model=self.model,
            instructions=ESTIMATOR_INSTRUCTIONS,
            image_data_url=data_url,
            schema=VISION_SCHEMA,
            prompt=prompt,
        )
        try:
            return LlmJudgment.model_validate(
                {**raw, "provider": self.provider, "model": self.model}
            )
        except ValidationError as exc:
            raise ProviderResponseError(
                f"Vision response failed validation ({exc.error_count()} errors)",
                provider=self.provider,
            ) from exc


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in {b"GIF87a", b"GIF89a"}:
        return "image/gif"
    return "image/jpeg"
