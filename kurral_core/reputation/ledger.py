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
from enum import Enum
from typing import Any, Dict

from kurral_core.utils.runtime import ensure_aware, utcnow


class ContributionType(str, Enum):
    POST = "post"
    COMMENT = "comment"


@dataclass(frozen=True, slots=True)
class ReputationContribution:
    """Immutable ledger entry. Append-only: never mutated or deleted."""

    key: str
    user_id: str
    type: ContributionType
    value: float
    content_id: str
    domain: str | None = None
    comment_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "key": self.key,
            "user_id": self.user_id,
            "type": self.type.value,
            "value": self.value,
            "content_id": self.content_id,
            "domain": self.domain,
            "comment_id": self.comment_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReputationContribution":
        """Load from dictionary."""
        created = data.get("created_at")
        if isinstance(created, str):
            created = datetime.fromisoformat(created)
        elif created is not None and not isinstance(created, datetime) and hasattr(created, "to_datetime"):
            created = created.to_datetime()

        return cls(
            key=data.get("key", ""),
            user_id=data.get("user_id", ""),
            type=ContributionType(data.get("type", ContributionType.POST.value)),
            value=float(data.get("value") or 0.0),
            content_id=data.get("content_id", ""),
            domain=data.get("domain"),
            comment_id=data.get("comment_id"),
            created_at=ensure_aware(created) if created else utcnow(),
        )


@dataclass(frozen=True, slots=True)
class ReputationStats:
    """Per-user aggregates, always recomputed from the ledger."""

    post_value_30d: float = 0.0
    comment_value_30d: float = 0.0
    lifetime_post_value: float = 0.0
    lifetime_comment_value: float = 0.0
    last_updated: datetime | None = None

    @property
    def rolling_total(self) -> float:
        return self.post_value_30d + self.comment_value_30d

    def to_dict(self) -> Dict[str, Any]:
        return {
            "post_value_30d": self.post_value_30d,
            "comment_value_30d": self.comment_value_30d,
            "lifetime_post_value": self.lifetime_post_value,
            "lifetime_comment_value": self.lifetime_comment_value,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReputationStats":
        updated = data.get("last_updated")
        if isinstance(updated, str):
            updated = datetime.fromisoformat(updated)
        return cls(
            post_value_30d=float(data.get("post_value_30d") or 0.0),
            comment_value_30d=float(data.get("comment_value_30d") or 0.0),
            lifetime_post_value=float(data.get("lifetime_post_value") or 0.0),
            lifetime_comment_value=float(data.get("lifetime_comment_value") or 0.0),
            last_updated=updated,
        )


def build_contribution_key(*parts: str) -> str:
    cleaned = [p.strip() for p in parts if p and p.strip()]
    return ":".join(cleaned)
