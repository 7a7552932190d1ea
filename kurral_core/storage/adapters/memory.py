# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Dict, TypeVar

from kurral_core.reputation.ledger import ReputationContribution, ReputationStats
from kurral_core.review.types import ReviewVote
from kurral_core.schema.content import Comment, ContentItem, ModerationStatus, PipelineState
from kurral_core.storage.store import (
    ClaimConflictError,
    ContributionExistsError,
    DocumentNotFoundError,
    KurralStore,
    claim_fields,
    is_claimable,
)
from kurral_core.trust.types import TrustScore
from kurral_core.utils.runtime import ensure_aware

M = TypeVar("M", ContentItem, Comment)


def _merge(model: M, fields: dict[str, Any]) -> M:
    data = model.to_document()
    for name, value in fields.items():
        if value is None:
            data.pop(name, None)
        else:
            data[name] = value
    return type(model).model_validate(data)


class InMemoryKurralStore(KurralStore):
    """Process-local store for tests and the CLI. Thread-safe, not durable."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._content: Dict[str, ContentItem] = {}
        self._comments: Dict[str, Comment] = {}
        self._contributions: Dict[str, ReputationContribution] = {}
        self._value_stats: Dict[str, ReputationStats] = {}
        self._trust_scores: Dict[str, TrustScore] = {}
        self._reviews: Dict[str, ReviewVote] = {}

    # Content items

    def get_content(self, content_id: str) -> ContentItem | None:
        item = self._content.get(content_id)
        return item.model_copy(deep=True) if item is not None else None

    def save_content(self, item: ContentItem) -> None:
        with self._lock:
            self._content[item.id] = item.model_copy(deep=True)

    def update_content(self, content_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            existing = self._content.get(content_id)
            if existing is None:
                raise DocumentNotFoundError(f"Content not found: {content_id}")
            self._content[content_id] = _merge(existing, fields)

    def claim_content(self, content_id: str, *, now: datetime, stale_after: timedelta) -> ContentItem | None:
        with self._lock:
            existing = self._content.get(content_id)
            if existing is None:
                return None
            if not is_claimable(
                existing.pipeline_state, existing.pipeline_started_at, now=now, stale_after=stale_after
            ):
                raise ClaimConflictError(f"Content {content_id} is already being processed.")
            claimed = _merge(existing, claim_fields(now))
            self._content[content_id] = claimed
            return claimed.model_copy(deep=True)

    def list_reshares(self, original_id: str) -> list[ContentItem]:
        return [
            item.model_copy(deep=True)
            for item in self._content.values()
            if item.reshare_of_id == original_id
        ]

    def list_content_by_state(self, state: PipelineState, *, limit: int) -> list[ContentItem]:
        matches = [item for item in self._content.values() if item.pipeline_state == state]
        return [item.model_copy(deep=True) for item in matches[:limit]]

    def update_moderation_status_if(
        self,
        content_id: str,
        *,
        expected: ModerationStatus,
        status: ModerationStatus,
    ) -> bool:
        with self._lock:
            existing = self._content.get(content_id)
            if existing is None or existing.moderation_status != expected:
                return False
            self._content[content_id] = existing.model_copy(update={"moderation_status": status})
            return True

    # Comments

    def get_comment(self, comment_id: str) -> Comment | None:
        comment = self._comments.get(comment_id)
        return comment.model_copy(deep=True) if comment is not None else None

    def save_comment(self, comment: Comment) -> None:
        with self._lock:
            self._comments[comment.id] = comment.model_copy(deep=True)

    def update_comment(self, comment_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            existing = self._comments.get(comment_id)
            if existing is None:
                raise DocumentNotFoundError(f"Comment not found: {comment_id}")
            self._comments[comment_id] = _merge(existing, fields)

    def claim_comment(self, comment_id: str, *, now: datetime, stale_after: timedelta) -> Comment | None:
        with self._lock:
            existing = self._comments.get(comment_id)
            if existing is None:
                return None
            if not is_claimable(
                existing.pipeline_state, existing.pipeline_started_at, now=now, stale_after=stale_after
            ):
                raise ClaimConflictError(f"Comment {comment_id} is already being processed.")
            claimed = _merge(existing, claim_fields(now))
            self._comments[comment_id] = claimed
            return claimed.model_copy(deep=True)

    def list_comments(self, content_id: str) -> list[Comment]:
        return [
            comment.model_copy(deep=True)
            for comment in self._comments.values()
            if comment.content_id == content_id
        ]

    # Reputation ledger

    def get_contribution(self, key: str) -> ReputationContribution | None:
        return self._contributions.get(key)

    def write_contribution(self, entry: ReputationContribution) -> ReputationContribution:
        with self._lock:
            existing = self._contributions.get(entry.key)
            if existing is not None:
                raise ContributionExistsError(f"Contribution already recorded: {entry.key}")
            self._contributions[entry.key] = entry
            return entry

    def list_contributions(self, user_id: str, *, since: datetime | None = None) -> list[ReputationContribution]:
        entries = [e for e in self._contributions.values() if e.user_id == user_id]
        if since is not None:
            since = ensure_aware(since)
            entries = [e for e in entries if ensure_aware(e.created_at) >= since]
        return entries

    def get_value_stats(self, user_id: str) -> ReputationStats | None:
        return self._value_stats.get(user_id)

    def save_value_stats(self, user_id: str, stats: ReputationStats) -> None:
        with self._lock:
            self._value_stats[user_id] = stats

    # Trust score

    def get_trust_score(self, user_id: str) -> TrustScore | None:
        return self._trust_scores.get(user_id)

    def save_trust_score(self, user_id: str, score: TrustScore) -> None:
        with self._lock:
            self._trust_scores[user_id] = score

    def create_trust_score_if_absent(self, user_id: str, score: TrustScore) -> TrustScore:
        with self._lock:
            existing = self._trust_scores.get(user_id)
            if existing is not None:
                return existing
            self._trust_scores[user_id] = score
            return score

    # Crowd review

    def add_review(self, vote: ReviewVote) -> bool:
        with self._lock:
            if vote.key in self._reviews:
                return False
            self._reviews[vote.key] = vote
            return True

    def list_reviews(self, content_id: str) -> list[ReviewVote]:
        return [v for v in self._reviews.values() if v.content_id == content_id]
