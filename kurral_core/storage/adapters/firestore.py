# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from firebase_admin import firestore
from pydantic import BaseModel

from kurral_core.reputation.ledger import ReputationContribution, ReputationStats
from kurral_core.review.types import ReviewVote
from kurral_core.schema.content import Comment, ContentItem, ModerationStatus, PipelineState
from kurral_core.storage.config import StorageConfig
from kurral_core.storage.store import (
    ClaimConflictError,
    ContributionExistsError,
    DocumentNotFoundError,
    KurralStore,
    claim_fields,
    is_claimable,
)
from kurral_core.trust.types import TrustScore


def _timestamp_to_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if hasattr(value, "to_datetime"):
        return value.to_datetime()
    return None


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _encode(value.model_dump(mode="python", exclude_none=True))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _update_payload(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        name: firestore.DELETE_FIELD if value is None else _encode(value)
        for name, value in fields.items()
    }


class FirestoreKurralStore(KurralStore):
    def __init__(self, db: firestore.Client, *, config: StorageConfig | None = None) -> None:
        self._db = db
        self._config = config or StorageConfig()
        self._content = self._db.collection(self._config.content_collection)
        self._comments = self._db.collection(self._config.comment_collection)
        self._contributions = self._db.collection(self._config.contribution_collection)
        self._users = self._db.collection(self._config.user_collection)
        self._reviews = self._db.collection(self._config.review_collection)

    # Content items

    def get_content(self, content_id: str) -> ContentItem | None:
        snapshot = self._content.document(content_id).get()
        if not snapshot.exists:
            return None
        return self._content_from_snapshot(snapshot)

    def save_content(self, item: ContentItem) -> None:
        self._content.document(item.id).set(_encode(item))

    def update_content(self, content_id: str, fields: dict[str, Any]) -> None:
        doc_ref = self._content.document(content_id)
        if not doc_ref.get().exists:
            raise DocumentNotFoundError(f"Content not found: {content_id}")
        doc_ref.update(_update_payload(fields))

    def claim_content(self, content_id: str, *, now: datetime, stale_after: timedelta) -> ContentItem | None:
        doc_ref = self._content.document(content_id)
        transaction = self._db.transaction()

        @firestore.transactional
        def _claim(transaction):  # type: ignore[no-untyped-def]
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            item = self._content_from_snapshot(snapshot)
            if not is_claimable(item.pipeline_state, item.pipeline_started_at, now=now, stale_after=stale_after):
                raise ClaimConflictError(f"Content {content_id} is already being processed.")
            fields = claim_fields(now)
            transaction.update(doc_ref, _update_payload(fields))
            return item.model_copy(update={
                "pipeline_state": PipelineState.IN_PROGRESS,
                "pipeline_started_at": now,
                "pipeline_error": None,
            })

        return _claim(transaction)

    def list_reshares(self, original_id: str) -> list[ContentItem]:
        query = (
            self._content.where("reshare_of_id", "==", original_id)
            .limit(self._config.max_reshares_per_sync)
        )
        return [self._content_from_snapshot(s) for s in query.stream()]

    def list_content_by_state(self, state: PipelineState, *, limit: int) -> list[ContentItem]:
        query = self._content.where("pipeline_state", "==", state.value).limit(limit)
        return [self._content_from_snapshot(s) for s in query.stream()]

    def update_moderation_status_if(
        self,
        content_id: str,
        *,
        expected: ModerationStatus,
        status: ModerationStatus,
    ) -> bool:
        doc_ref = self._content.document(content_id)
        transaction = self._db.transaction()

        @firestore.transactional
        def _cas(transaction):  # type: ignore[no-untyped-def]
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            if (snapshot.to_dict() or {}).get("moderation_status") != expected.value:
                return False
            transaction.update(doc_ref, {"moderation_status": status.value})
            return True

        return _cas(transaction)

    # Comments

    def get_comment(self, comment_id: str) -> Comment | None:
        snapshot = self._comments.document(comment_id).get()
        if not snapshot.exists:
            return None
        return self._comment_from_snapshot(snapshot)

    def save_comment(self, comment: Comment) -> None:
        self._comments.document(comment.id).set(_encode(comment))

    def update_comment(self, comment_id: str, fields: dict[str, Any]) -> None:
        doc_ref = self._comments.document(comment_id)
        if not doc_ref.get().exists:
            raise DocumentNotFoundError(f"Comment not found: {comment_id}")
        doc_ref.update(_update_payload(fields))

    def claim_comment(self, comment_id: str, *, now: datetime, stale_after: timedelta) -> Comment | None:
        doc_ref = self._comments.document(comment_id)
        transaction = self._db.transaction()

        @firestore.transactional
        def _claim(transaction):  # type: ignore[no-untyped-def]
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            comment = self._comment_from_snapshot(snapshot)
            if not is_claimable(
                comment.pipeline_state, comment.pipeline_started_at, now=now, stale_after=stale_after
            ):
                raise ClaimConflictError(f"Comment {comment_id} is already being processed.")
            transaction.update(doc_ref, _update_payload(claim_fields(now)))
            return comment.model_copy(update={
                "pipeline_state": PipelineState.IN_PROGRESS,
                "pipeline_started_at": now,
                "pipeline_error": None,
            })

        return _claim(transaction)

    def list_comments(self, content_id: str) -> list[Comment]:
        query = self._comments.where("content_id", "==", content_id)
        return [self._comment_from_snapshot(s) for s in query.stream()]

    # Reputation ledger

    def get_contribution(self, key: str) -> ReputationContribution | None:
        snapshot = self._contributions.document(key).get()
        if not snapshot.exists:
            return None
        return ReputationContribution.from_dict(self._normalize(snapshot.to_dict() or {}))

    def write_contribution(self, entry: ReputationContribution) -> ReputationContribution:
        doc_ref = self._contributions.document(entry.key)
        transaction = self._db.transaction()

        @firestore.transactional
        def _write(transaction):  # type: ignore[no-untyped-def]
            snapshot = doc_ref.get(transaction=transaction)
            if snapshot.exists:
                raise ContributionExistsError(f"Contribution already recorded: {entry.key}")
            transaction.set(doc_ref, entry.to_dict())
            return entry

        return _write(transaction)

    def list_contributions(self, user_id: str, *, since: datetime | None = None) -> list[ReputationContribution]:
        query = self._contributions.where("user_id", "==", user_id)
        if since is not None:
            query = query.where("created_at", ">=", since)
        return [
            ReputationContribution.from_dict(self._normalize(s.to_dict() or {}))
            for s in query.stream()
        ]

    def get_value_stats(self, user_id: str) -> ReputationStats | None:
        data = self._user_field(user_id, self._config.value_stats_field)
        if data is None:
            return None
        return ReputationStats.from_dict(self._normalize(data))

    def save_value_stats(self, user_id: str, stats: ReputationStats) -> None:
        self._users.document(user_id).set({self._config.value_stats_field: stats.to_dict()}, merge=True)

    # Trust score

    def get_trust_score(self, user_id: str) -> TrustScore | None:
        data = self._user_field(user_id, self._config.trust_score_field)
        if data is None:
            return None
        return TrustScore.from_dict(data)

    def save_trust_score(self, user_id: str, score: TrustScore) -> None:
        self._users.document(user_id).set({self._config.trust_score_field: score.to_dict()}, merge=True)

    def create_trust_score_if_absent(self, user_id: str, score: TrustScore) -> TrustScore:
        user_ref = self._users.document(user_id)
        field_name = self._config.trust_score_field
        transaction = self._db.transaction()

        @firestore.transactional
        def _create(transaction):  # type: ignore[no-untyped-def]
            snapshot = user_ref.get(transaction=transaction)
            existing = (snapshot.to_dict() or {}).get(field_name) if snapshot.exists else None
            if isinstance(existing, dict):
                return TrustScore.from_dict(existing)
            transaction.set(user_ref, {field_name: score.to_dict()}, merge=True)
            return score

        return _create(transaction)

    # Crowd review

    def add_review(self, vote: ReviewVote) -> bool:
        doc_ref = self._reviews.document(vote.key)
        transaction = self._db.transaction()

        @firestore.transactional
        def _add(transaction):  # type: ignore[no-untyped-def]
            snapshot = doc_ref.get(transaction=transaction)
            if snapshot.exists:
                return False
            transaction.set(doc_ref, vote.to_dict())
            return True

        return _add(transaction)

    def list_reviews(self, content_id: str) -> list[ReviewVote]:
        query = self._reviews.where("content_id", "==", content_id)
        return [ReviewVote.from_dict(self._normalize(s.to_dict() or {})) for s in query.stream()]

    # Helpers

    def _user_field(self, user_id: str, field_name: str) -> dict[str, Any] | None:
        snapshot = self._users.document(user_id).get()
        if not snapshot.exists:
            return None
        value = (snapshot.to_dict() or {}).get(field_name)
        return value if isinstance(value, dict) else None

    @staticmethod
    def _normalize(data: dict[str, Any]) -> dict[str, Any]:
        out = dict(data)
        for name in ("created_at", "last_updated", "date"):
            if name in out:
                out[name] = _timestamp_to_datetime(out[name])
        return out

    def _content_from_snapshot(self, snapshot: Any) -> ContentItem:
        data = snapshot.to_dict() or {}
        data.setdefault("id", snapshot.id)
        return ContentItem.from_dict(data)

    def _comment_from_snapshot(self, snapshot: Any) -> Comment:
        data = snapshot.to_dict() or {}
        data.setdefault("id", snapshot.id)
        return Comment.from_dict(data)
