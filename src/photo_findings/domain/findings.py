"""Versioned findings payload persisted for each analyzed photo."""

from typing import Literal

from pydantic import BaseModel, Field

FINDINGS_VERSION = "v1"

BranchStatus = Literal["pending", "ready", "failed"]
Severity = Literal["spot", "partial", "full"]


class DetectorLabel(BaseModel):
    """Single label returned by the label detector."""

    name: str
    confidence: float = Field(ge=0.0, le=100.0)


class DetectorResult(BaseModel):
    """Label detector output, sorted by descending confidence."""

    provider: str
    model: str
    labels: list[DetectorLabel] = Field(default_factory=list)


class VisionObject(BaseModel):
    """Object spotted by the multimodal model."""

    name: str
    notes: str | None = None


class SuggestedScopeOption(BaseModel):
    """Scope tier the model proposes when the job scope is ambiguous."""

    id: str
    label: str
    description: str | None = None


class LlmJudgment(BaseModel):
    """Structured judgment returned by the multimodal model."""

    provider: str
    model: str
    confidence: float = Field(ge=0.0, le=1.0)
    kind_guess: str | None = None
    labels: list[str] = Field(default_factory=list)
    objects: list[VisionObject] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)
    damage: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    measurements: list[str] = Field(default_factory=list)
    needs_more_photos: list[str] = Field(default_factory=list)
    needs_clarification: bool = False
    scope_ambiguous: bool = False
    clarification_reasons: list[str] = Field(default_factory=list)
    suggested_scope_options: list[SuggestedScopeOption] = Field(default_factory=list)
    detected_trade: str | None = None
    is_painting_related: bool = False
    estimated_severity: Severity | None = None


class DetectorOutcome(BaseModel):
    """Per-provider status for the label detector."""

    status: BranchStatus
    result: DetectorResult | None = None
    error: str | None = None


class LlmOutcome(BaseModel):
    """Per-provider status for the multimodal model."""

    status: BranchStatus
    result: LlmJudgment | None = None
    error: str | None = None


class CombinedJudgment(BaseModel):
    """Deterministic summary derived from both providers."""

    confidence: float = Field(ge=0.0, le=1.0)
    summary_labels: list[str] = Field(default_factory=list, max_length=10)
    needs_more_photos: list[str] = Field(default_factory=list)
    needs_clarification: bool = False
    scope_ambiguous: bool = False
    clarification_reasons: list[str] = Field(default_factory=list)
    suggested_scope_options: list[SuggestedScopeOption] = Field(default_factory=list)
    detected_trade: str | None = None
    is_painting_related: bool = False
    estimated_severity: Severity | None = None


class PhotoFindings(BaseModel):
    """Findings envelope stored on the photo record."""

    version: Literal["v1"] = FINDINGS_VERSION
    image_url: str
    kind: str
    detector: DetectorOutcome
    llm: LlmOutcome
    combined: CombinedJudgment
