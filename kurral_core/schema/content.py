# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 Kurral Contributors
"""
Content Pydantic Models

ContentItem (a post) and Comment are the documents the pipeline mutates.
Claims and FactChecks are embedded in their owning item.

Key Design Principles:
1. Claims are owned by exactly one item; FactCheck.claim_id points inside that item
2. ModerationStatus is derived by the pipeline, never set by a user
3. pipeline_state is cleared to NONE only on successful completion
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import Field, field_validator, model_validator

from kurral_core.schema.coercion import clamp01, coerce_enum
from kurral_core.schema.serialization import SchemaModel
from kurral_core.schema.value import CommentInsight, DiscussionQuality, DiscussionRole, ValueVector

MAX_CLAIM_TEXT = 240

_URL_RE = re.compile(r"https?://[^\s)\"'>]+", re.IGNORECASE)


class ClaimType(str, Enum):
    FACT = "fact"
    OPINION = "opinion"
    EXPERIENCE = "experience"


class ClaimDomain(str, Enum):
    HEALTH = "health"
    FINANCE = "finance"
    POLITICS = "politics"
    TECHNOLOGY = "technology"
    SCIENCE = "science"
    SOCIETY = "society"
    GENERAL = "general"


HIGH_RISK_DOMAINS = frozenset({ClaimDomain.HEALTH, ClaimDomain.FINANCE, ClaimDomain.POLITICS})


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> float:
        return {RiskLevel.LOW: 1.0, RiskLevel.MEDIUM: 1.5, RiskLevel.HIGH: 2.0}[self]


class Verdict(str, Enum):
    TRUE = "true"
    FALSE = "false"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class ModerationStatus(str, Enum):
    """Ordered: clean < needs_review < blocked."""

    CLEAN = "clean"
    NEEDS_REVIEW = "needs_review"
    BLOCKED = "blocked"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def upgrade(self, other: "ModerationStatus") -> "ModerationStatus":
        """Return the more severe of the two statuses."""
        return other if other.rank > self.rank else self


_STATUS_RANK = {
    ModerationStatus.CLEAN: 0,
    ModerationStatus.NEEDS_REVIEW: 1,
    ModerationStatus.BLOCKED: 2,
}


class PipelineState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class Evidence(SchemaModel):
    """A single piece of evidence; quality None means "not scored yet"."""

    source: str = ""
    url: str | None = None
    snippet: str = ""
    quality: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        # Annotation output sometimes lists evidence as bare strings.
        if isinstance(data, str):
            match = _URL_RE.search(data)
            return {
                "source": "",
                "url": match.group(0).rstrip(".,;") if match else None,
                "snippet": data.strip()[:500],
            }
        return data

    @field_validator("quality", mode="before")
    @classmethod
    def _clamp_quality(cls, v: Any) -> float | None:
        if v is None:
            return None
        return clamp01(v, default=0.5)

    @field_validator("url", mode="before")
    @classmethod
    def _clean_url(cls, v: Any) -> str | None:
        s = str(v or "").strip()
        return s or None

    @field_validator("source", "snippet", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return str(v or "").strip()[:500]


class Claim(SchemaModel):
    id: str
    text: str
    type: ClaimType = ClaimType.FACT
    domain: ClaimDomain = ClaimDomain.GENERAL
    risk_level: RiskLevel = RiskLevel.LOW
    confidence: float = 0.5
    evidence: list[str] = Field(default_factory=list)

    @field_validator("text", mode="before")
    @classmethod
    def _cap_text(cls, v: Any) -> str:
        return str(v or "").strip()[:MAX_CLAIM_TEXT]

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

    @property
    def is_high_risk(self) -> bool:
        return self.risk_level == RiskLevel.HIGH or self.domain in HIGH_RISK_DOMAINS


class FactCheck(SchemaModel):
    id: str
    claim_id: str
    verdict: Verdict = Verdict.UNKNOWN
    confidence: float = 0.0
    evidence: list[Evidence] = Field(default_factory=list)
    caveats: list[str] = Field(default_factory=list)
    checked_at: datetime | None = None

    @field_validator("verdict", mode="before")
    @classmethod
    def _verdict(cls, v: Any) -> Verdict:
        return coerce_enum(v, Verdict, Verdict.UNKNOWN)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp01(v, default=0.0)

    @field_validator("caveats", mode="before")
    @classmethod
    def _caveats(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        return [str(x) for x in v if x]

    def is_confident_false(self, threshold: float = 0.7) -> bool:
        return self.verdict == Verdict.FALSE and self.confidence > threshold


def fact_checks_by_claim(fact_checks: Iterable[FactCheck]) -> dict[str, FactCheck]:
    """One FactCheck per claim; the first one wins."""
    out: dict[str, FactCheck] = {}
    for fc in fact_checks:
        out.setdefault(fc.claim_id, fc)
    return out


class _Annotated(SchemaModel):
    """Fields shared by posts and comments."""

    id: str
    author_id: str
    text: str = ""
    image_url: str | None = None
    created_at: datetime | None = None

    claims: list[Claim] = Field(default_factory=list)
    fact_checks: list[FactCheck] = Field(default_factory=list)
    moderation_status: ModerationStatus | None = None

    pipeline_state: PipelineState = PipelineState.NONE
    pipeline_started_at: datetime | None = None
    pipeline_completed_at: datetime | None = None
    pipeline_error: str | None = None

    @field_validator("pipeline_state", mode="before")
    @classmethod
    def _state(cls, v: Any) -> PipelineState:
        return coerce_enum(v, PipelineState, PipelineState.NONE)

    @property
    def has_image(self) -> bool:
        return bool((self.image_url or "").strip())

    def has_complete_fact_check_data(self) -> bool:
        """A terminal moderation status, or claims plus fact-checks."""
        if self.moderation_status is not None:
            return True
        return bool(self.claims) and bool(self.fact_checks)

    def is_still_processing(self) -> bool:
        return self.pipeline_state in (PipelineState.PENDING, PipelineState.IN_PROGRESS)


class ContentItem(_Annotated):
    topic: str | None = None
    reshare_of_id: str | None = None
    quote_of_id: str | None = None
    comment_count: int = 0

    value_score: ValueVector | None = None
    value_explanation: str | None = None
    discussion_quality: DiscussionQuality | None = None

    @property
    def is_reshare(self) -> bool:
        return bool(self.reshare_of_id)


class Comment(_Annotated):
    content_id: str
    discussion_role: DiscussionRole | None = None
    value_contribution: ValueVector | None = None

    def with_insight(self, insight: CommentInsight) -> "Comment":
        return self.model_copy(update={
            "discussion_role": insight.role,
            "value_contribution": insight.contribution,
        })
