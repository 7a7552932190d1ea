# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Persistent store boundary.

Documents: content items and comments (claims and fact-checks embedded),
append-only reputation ledger, per-user value stats and trust score, and
crowd review votes.

Field updates are partial merges; a value of None clears the field.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from kurral_core.reputation.ledger import ReputationContribution, ReputationStats
from kurral_core.review.types import ReviewVote
from kurral_core.schema.content import Comment, ContentItem, ModerationStatus, PipelineState
from kurral_core.trust.types import TrustScore


class StoreError(RuntimeError):
    pass


class ContributionExistsError(StoreError):
    pass


class ClaimConflictError(StoreError):
    """Another worker holds a live in_progress claim on the document."""


class DocumentNotFoundError(StoreError):
    pass


def is_claimable(
    state: PipelineState,
    started_at: datetime | None,
    *,
    now: datetime,
    stale_after: timedelta,
) -> bool:
    """Anything not in flight, or an in_progress lock older than `stale_after`."""
    if state != PipelineState.IN_PROGRESS:
        return True
    if started_at is None:
        return True
    if started_at.tzinfo is None and now.tzinfo is not None:
        started_at = started_at.replace(tzinfo=now.tzinfo)
    return now - started_at >= stale_after


def claim_fields(now: datetime) -> dict[str, Any]:
    return {
        "pipeline_state": PipelineState.IN_PROGRESS.value,
        "pipeline_started_at": now,
        "pipeline_error": None,
    }


@runtime_checkable
class KurralStore(Protocol):
    # Content items
    def get_content(self, content_id: str) -> ContentItem | None:
        ...

    def save_content(self, item: ContentItem) -> None:
        ...

    def update_content(self, content_id: str, fields: dict[str, Any]) -> None:
        ...

    def claim_content(self, content_id: str, *, now: datetime, stale_after: timedelta) -> ContentItem | None:
        """Transactional read-check-write; None if missing, ClaimConflictError if held."""
        ...

    def list_reshares(self, original_id: str) -> list[ContentItem]:
        ...

    def list_content_by_state(self, state: PipelineState, *, limit: int) -> list[ContentItem]:
        ...

    def update_moderation_status_if(
        self,
        content_id: str,
        *,
        expected: ModerationStatus,
        status: ModerationStatus,
    ) -> bool:
        """Transactional compare-and-set on moderation_status."""
        ...

    # Comments
    def get_comment(self, comment_id: str) -> Comment | None:
        ...

    def save_comment(self, comment: Comment) -> None:
        ...

    def update_comment(self, comment_id: str, fields: dict[str, Any]) -> None:
        ...

    def claim_comment(self, comment_id: str, *, now: datetime, stale_after: timedelta) -> Comment | None:
        ...

    def list_comments(self, content_id: str) -> list[Comment]:
        ...

    # Reputation ledger
    def get_contribution(self, key: str) -> ReputationContribution | None:
        ...

    def write_contribution(self, entry: ReputationContribution) -> ReputationContribution:
        ...

    def list_contributions(self, user_id: str, *, since: datetime | None = None) -> list[ReputationContribution]:
        ...

    def get_value_stats(self, user_id: str) -> ReputationStats | None:
        ...

    def save_value_stats(self, user_id: str, stats: ReputationStats) -> None:
        ...

    # Trust score
    def get_trust_score(self, user_id: str) -> TrustScore | None:
        ...

    def save_trust_score(self, user_id: str, score: TrustScore) -> None:
        ...

    def create_trust_score_if_absent(self, user_id: str, score: TrustScore) -> TrustScore:
        """Transactional; returns the stored score (existing or the new one)."""
        ...

    # Crowd review
    def add_review(self, vote: ReviewVote) -> bool:
        """False if this voter already voted on this item."""
        ...

    def list_reviews(self, content_id: str) -> list[ReviewVote]:
        ...
