# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 Kurral Contributors
"""
Value and Discussion Models

ValueVector is the five-dimension contribution score attached to posts
(and, per comment, to discussion participants). DiscussionQuality is the
thread-level signal produced by the discussion analyzer.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from kurral_core.schema.coercion import clamp01, coerce_enum
from kurral_core.schema.serialization import SchemaModel

VALUE_DIMENSIONS = ("epistemic", "insight", "practical", "relational", "effort")


class DiscussionRole(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    EVIDENCE = "evidence"
    OPINION = "opinion"
    MODERATION = "moderation"
    OTHER = "other"


class ValueVector(SchemaModel):
    """
    Five independent dimensions in [0, 1] plus the domain-weighted total.

    Invalid dimension values default to 0.5 (neutral) so a single bad field
    does not crater the score.
    """

    epistemic: float = 0.5
    insight: float = 0.5
    practical: float = 0.5
    relational: float = 0.5
    effort: float = 0.5
    total: float = 0.0
    confidence: float = 0.7
    drivers: list[str] = Field(default_factory=list)
    updated_at: datetime | None = None

    @field_validator(*VALUE_DIMENSIONS, mode="before")
    @classmethod
    def _clamp_dimension(cls, v: Any) -> float:
        return clamp01(v, default=0.5)

    @field_validator("total", mode="before")
    @classmethod
    def _clamp_total(cls, v: Any) -> float:
        return clamp01(v, default=0.0)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        return clamp01(v, default=0.7)

    @field_validator("drivers", mode="before")
    @classmethod
    def _coerce_drivers(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(x) for x in v if str(x).strip()][:8]

    def dimensions(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in VALUE_DIMENSIONS}


class DiscussionQuality(SchemaModel):
    informativeness: float = 0.0
    civility: float = 0.0
    reasoning_depth: float = 0.0
    cross_perspective: float = 0.0
    summary: str = ""

    @field_validator("informativeness", "civility", "reasoning_depth", "cross_perspective", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp01(v, default=0.0)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        return str(v or "").strip()[:1000]

    def average(self) -> float:
        return (self.informativeness + self.civility + self.reasoning_depth + self.cross_perspective) / 4


class CommentInsight(SchemaModel):
    comment_id: str
    role: DiscussionRole = DiscussionRole.OTHER
    contribution: ValueVector = Field(default_factory=ValueVector)
    rationale: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, v: Any) -> DiscussionRole:
        return coerce_enum(v, DiscussionRole, DiscussionRole.OTHER)


class DiscussionAnalysis(SchemaModel):
    thread_quality: DiscussionQuality
    comment_insights: dict[str, CommentInsight] = Field(default_factory=dict)
