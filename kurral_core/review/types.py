from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from kurral_core.utils.runtime import utcnow


class ReviewAction(str, Enum):
    VALIDATE = "validate"
    INVALIDATE = "invalidate"


@dataclass(frozen=True, slots=True)
class ReviewVote:
    """One crowd vote; immutable once submitted."""

    content_id: str
    submitted_by: str
    action: ReviewAction
    created_at: datetime = field(default_factory=utcnow)
    sources: str | None = None
    context: str | None = None

    @property
    def key(self) -> str:
        return f"{self.content_id}:{self.submitted_by}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_id": self.content_id,
            "submitted_by": self.submitted_by,
            "action": self.action.value,
            "created_at": self.created_at,
            "sources": self.sources,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewVote":
        created = data.get("created_at")
        if isinstance(created, str):
            created = datetime.fromisoformat(created)
        elif created is not None and hasattr(created, "to_datetime"):
            created = created.to_datetime()
        return cls(
            content_id=data.get("content_id", ""),
            submitted_by=data.get("submitted_by", ""),
            action=ReviewAction(data.get("action", ReviewAction.VALIDATE.value)),
            created_at=created or utcnow(),
            sources=data.get("sources"),
            context=data.get("context"),
        )
