# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from kurral_core.utils.runtime import utcnow


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if hasattr(value, "to_datetime"):
        return value.to_datetime()
    return utcnow()


@dataclass(frozen=True, slots=True)
class TrustComponents:
    """Sub-signals, each stored as a rounded 0-100 integer."""

    quality_history: int = 50
    violation_history: int = 0
    engagement_quality: int = 40
    consistency: int = 0
    community_trust: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality_history": self.quality_history,
            "violation_history": self.violation_history,
            "engagement_quality": self.engagement_quality,
            "consistency": self.consistency,
            "community_trust": self.community_trust,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustComponents":
        defaults = cls()
        return cls(**{
            name: int(data.get(name, getattr(defaults, name)))
            for name in defaults.to_dict()
        })


@dataclass(frozen=True, slots=True)
class TrustHistoryEntry:
    score: int
    delta: int
    reason: str
    date: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "delta": self.delta, "reason": self.reason, "date": self.date}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustHistoryEntry":
        return cls(
            score=int(data.get("score", 0)),
            delta=int(data.get("delta", 0)),
            reason=str(data.get("reason") or "score_update"),
            date=_parse_dt(data.get("date")),
        )


@dataclass(frozen=True, slots=True)
class TrustScore:
    """Kurral Score: bounded 0-100 author trust with most-recent-first history."""

    score: int
    last_updated: datetime
    components: TrustComponents = field(default_factory=TrustComponents)
    history: tuple[TrustHistoryEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "last_updated": self.last_updated,
            "components": self.components.to_dict(),
            "history": [h.to_dict() for h in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustScore":
        return cls(
            score=int(data.get("score", 0)),
            last_updated=_parse_dt(data.get("last_updated")),
            components=TrustComponents.from_dict(data.get("components") or {}),
            history=tuple(TrustHistoryEntry.from_dict(h) for h in (data.get("history") or [])),
        )
