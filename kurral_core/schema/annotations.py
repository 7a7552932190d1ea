# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 Kurral Contributors
"""
Annotation Result Models

One result type per annotation task, discriminated by `kind`. Raw JSON from
the annotation service is validated here: numbers are clamped, unknown enum
strings defaulted and text truncated, so a single malformed field never
discards the whole response.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, Field, TypeAdapter, ValidationError, field_validator, model_validator

from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.schema.coercion import clamp01, coerce_enum
from kurral_core.schema.content import (
    MAX_CLAIM_TEXT,
    ClaimDomain,
    ClaimType,
    Evidence,
    RiskLevel,
    Verdict,
)
from kurral_core.schema.serialization import SchemaModel
from kurral_core.schema.value import VALUE_DIMENSIONS, DiscussionQuality, DiscussionRole

AnnotationKind = Literal["precheck", "claims", "fact_check", "discussion", "value", "explanation"]


class PreCheckAnnotation(SchemaModel):
    kind: Literal["precheck"] = "precheck"
    needs_fact_check: bool = Field(True, validation_alias=AliasChoices("needs_fact_check", "needsFactCheck"))
    confidence: float = 0.5
    reasoning: str = ""
    content_type: str = Field("unknown", validation_alias=AliasChoices("content_type", "contentType"))

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp01(v, default=0.5)

    @field_validator("needs_fact_check", mode="before")
    @classmethod
    def _bool(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() not in ("false", "no", "0", "")
        return bool(v) if v is not None else True


class ClaimDraft(SchemaModel):
    """A claim as returned by the annotation service (no stable id yet)."""

    slug: str | None = Field(None, validation_alias=AliasChoices("slug", "id"))
    text: str
    type: ClaimType = ClaimType.FACT
    domain: ClaimDomain = ClaimDomain.GENERAL
    risk_level: RiskLevel = Field(RiskLevel.LOW, validation_alias=AliasChoices("risk_level", "riskLevel", "risk"))
    confidence: float = 0.5
    evidence: list[str] = Field(default_factory=list)

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return str(v or "").strip()[:MAX_CLAIM_TEXT]

    @field_validator("slug", mode="before")
    @classmethod
    def _slug(cls, v: Any) -> str | None:
        s = str(v or "").strip()
        return s or None

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> ClaimType:
        return coerce_enum(v, ClaimType, ClaimType.FACT)

    @field_validator("domain", mode="before")
    @classmethod
    def _domain(cls, v: Any) -> ClaimDomain:
        return coerce_enum(v, ClaimDomain, ClaimDomain.GENERAL)

    @field_validator("risk_level", mode="before")
    @classmethod
    def _risk(cls, v: Any) -> RiskLevel:
        return coerce_enum(v, RiskLevel, RiskLevel.LOW)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp01(v, default=0.5)

    @field_validator("evidence", mode="before")
    @classmethod
    def _evidence(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        return [str(x) for x in v if x]


class ClaimListAnnotation(SchemaModel):
    kind: Literal["claims"] = "claims"
    claims: list[ClaimDraft] = Field(default_factory=list)

    @field_validator("claims", mode="before")
    @classmethod
    def _drop_unusable(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [c for c in v if isinstance(c, dict) and str(c.get("text") or "").strip()]


class FactCheckAnnotation(SchemaModel):
    kind: Literal["fact_check"] = "fact_check"
    verdict: Verdict = Verdict.UNKNOWN
    confidence: float = 0.0
    evidence: list[Evidence] = Field(default_factory=list)
    caveats: list[str] = Field(default_factory=list)

    @field_validator("verdict", mode="before")
    @classmethod
    def _verdict(cls, v: Any) -> Verdict:
        return coerce_enum(v, Verdict, Verdict.UNKNOWN)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp01(v, default=0.0)

    @field_validator("evidence", mode="before")
    @classmethod
    def _evidence(cls, v: Any) -> list[Any]:
        if not v:
            return []
        if not isinstance(v, list):
            v = [v]
        return [e for e in v if isinstance(e, (str, dict))]

    @field_validator("caveats", mode="before")
    @classmethod
    def _caveats(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        return [str(x) for x in v if x]


class ScoreDraft(SchemaModel):
    """Five raw dimensions; missing or invalid values are neutral (0.5)."""

    epistemic: float = 0.5
    insight: float = 0.5
    practical: float = 0.5
    relational: float = 0.5
    effort: float = 0.5

    @model_validator(mode="before")
    @classmethod
    def _lowercase_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(k).lower(): v for k, v in data.items()}
        return data

    @field_validator(*VALUE_DIMENSIONS, mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp01(v, default=0.5)


class CommentInsightDraft(SchemaModel):
    comment_id: str = Field(validation_alias=AliasChoices("comment_id", "commentId", "id"))
    role: DiscussionRole = DiscussionRole.OTHER
    contribution: ScoreDraft = Field(default_factory=ScoreDraft)
    total: float | None = None
    rationale: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, v: Any) -> DiscussionRole:
        return coerce_enum(v, DiscussionRole, DiscussionRole.OTHER)

    @field_validator("total", mode="before")
    @classmethod
    def _total(cls, v: Any) -> float | None:
        return None if v is None else clamp01(v, default=0.5)

    @model_validator(mode="before")
    @classmethod
    def _lift_total(cls, data: Any) -> Any:
        # {"contribution": {..., "total": x}} carries the total inside the vector
        if isinstance(data, dict) and isinstance(data.get("contribution"), dict):
            contribution = data["contribution"]
            if data.get("total") is None and "total" in contribution:
                data = {**data, "total": contribution.get("total")}
        return data


class DiscussionAnnotation(SchemaModel):
    kind: Literal["discussion"] = "discussion"
    thread_quality: DiscussionQuality = Field(
        default_factory=DiscussionQuality,
        validation_alias=AliasChoices("thread_quality", "threadQuality"),
    )
    comment_insights: list[CommentInsightDraft] = Field(
        default_factory=list,
        validation_alias=AliasChoices("comment_insights", "commentInsights"),
    )

    @field_validator("thread_quality", mode="before")
    @classmethod
    def _thread(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {
                "informativeness": v.get("informativeness"),
                "civility": v.get("civility"),
                "reasoning_depth": v.get("reasoning_depth", v.get("reasoningDepth")),
                "cross_perspective": v.get("cross_perspective", v.get("crossPerspective")),
                "summary": v.get("summary", ""),
            }
        return {}

    @field_validator("comment_insights", mode="before")
    @classmethod
    def _insights(cls, v: Any) -> list[Any]:
        if isinstance(v, dict):
            # {"<commentId>": {...}} form
            return [{**item, "comment_id": key} for key, item in v.items() if isinstance(item, dict)]
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]


class ValueAnnotation(SchemaModel):
    kind: Literal["value"] = "value"
    scores: ScoreDraft = Field(default_factory=ScoreDraft)
    confidence: float = 0.7
    drivers: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_flat(cls, data: Any) -> Any:
        # Accept nested {"scores": {...}}, flat lowercase or flat capitalized.
        if isinstance(data, dict) and not isinstance(data.get("scores"), dict):
            flat = {k: v for k, v in data.items() if str(k).lower() in VALUE_DIMENSIONS}
            data = {**data, "scores": flat}
        return data

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp01(v, default=0.7)

    @field_validator("drivers", mode="before")
    @classmethod
    def _drivers(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        return [str(x) for x in v if x][:8]


class ExplanationAnnotation(SchemaModel):
    kind: Literal["explanation"] = "explanation"
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return str(v or "").strip()[:2000]


AnnotationResult = Annotated[
    Union[
        PreCheckAnnotation,
        ClaimListAnnotation,
        FactCheckAnnotation,
        DiscussionAnnotation,
        ValueAnnotation,
        ExplanationAnnotation,
    ],
    Field(discriminator="kind"),
]

_ADAPTER: TypeAdapter[Any] = TypeAdapter(AnnotationResult)


def parse_annotation(kind: AnnotationKind, payload: Any) -> Any:
    """
    Validate a raw JSON payload as the result type for `kind`.

    Raises LLMCallError(SCHEMA_VALIDATION_FAILED) when the payload is not a
    JSON object or a required field is missing.
    """
    if not isinstance(payload, dict):
        raise LLMCallError(
            f"Annotation payload for {kind} is not a JSON object",
            kind=LLMFailureKind.SCHEMA_VALIDATION_FAILED,
            task=kind,
        )
    try:
        return _ADAPTER.validate_python({**payload, "kind": kind})
    except ValidationError as e:
        raise LLMCallError(
            f"Annotation payload for {kind} failed validation: {e.error_count()} errors",
            kind=LLMFailureKind.SCHEMA_VALIDATION_FAILED,
            task=kind,
        ) from e
