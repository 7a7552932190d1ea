# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Reputation ledger service.

Post contributions record the full value total the first time an item is
scored and only the delta afterwards. Stats are always recomputed from the
ledger so late or corrected contributions are picked up.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from kurral_core.agents.skills.value_scoring import dominant_domain
from kurral_core.reputation.ledger import (
    ContributionType,
    ReputationContribution,
    ReputationStats,
    build_contribution_key,
)
from kurral_core.runtime_config import PipelineRuntimeConfig, ScoringRuntimeConfig
from kurral_core.schema.content import Claim, Comment, ContentItem
from kurral_core.schema.value import ValueVector
from kurral_core.storage.store import ContributionExistsError, KurralStore
from kurral_core.utils.runtime import ensure_aware, utcnow

logger = logging.getLogger(__name__)


class ReputationLedger:
    def __init__(
        self,
        store: KurralStore,
        *,
        scoring: ScoringRuntimeConfig | None = None,
        pipeline: PipelineRuntimeConfig | None = None,
    ) -> None:
        self._store = store
        self._scoring = scoring or ScoringRuntimeConfig()
        self._pipeline = pipeline or PipelineRuntimeConfig()

    def record_post_value(
        self,
        item: ContentItem,
        value: ValueVector,
        claims: list[Claim],
        *,
        now: datetime | None = None,
    ) -> ReputationContribution | None:
        """
        Record the post's value, or on a rescore only the change since the
        entries already in the ledger. Revision n is keyed `rev-<n>`.
        """
        now = now or utcnow()
        recorded = [
            e for e in self._store.list_contributions(item.author_id)
            if e.type == ContributionType.POST and e.content_id == item.id
        ]
        if not recorded:
            key = build_contribution_key(ContributionType.POST.value, item.id, item.author_id)
            amount = value.total
        else:
            amount = value.total - sum(e.value for e in recorded)
            if abs(amount) <= self._pipeline.value_delta_threshold:
                logger.debug("[Reputation] Value delta %.4f below threshold for %s", amount, item.id)
                return None
            key = build_contribution_key(
                ContributionType.POST.value, item.id, item.author_id, f"rev-{len(recorded)}"
            )

        entry = ReputationContribution(
            key=key,
            user_id=item.author_id,
            type=ContributionType.POST,
            value=round(amount, 6),
            content_id=item.id,
            domain=dominant_domain(claims, item.topic),
            created_at=now,
        )
        return self._append(entry, now=now)

    def record_comment_value(
        self,
        comment: Comment,
        contribution: ValueVector,
        domain: str | None,
        *,
        now: datetime | None = None,
    ) -> ReputationContribution | None:
        now = now or utcnow()
        entry = ReputationContribution(
            key=build_contribution_key(
                ContributionType.COMMENT.value, comment.content_id, comment.id, comment.author_id
            ),
            user_id=comment.author_id,
            type=ContributionType.COMMENT,
            value=round(contribution.total, 6),
            content_id=comment.content_id,
            domain=domain,
            comment_id=comment.id,
            created_at=now,
        )
        return self._append(entry, now=now)

    def recompute_stats(self, user_id: str, *, now: datetime | None = None) -> ReputationStats:
        now = now or utcnow()
        since = now - timedelta(days=self._scoring.reputation_window_days)
        post_30d = comment_30d = lifetime_post = lifetime_comment = 0.0

        for entry in self._store.list_contributions(user_id):
            recent = ensure_aware(entry.created_at) >= since
            if entry.type == ContributionType.POST:
                lifetime_post += entry.value
                if recent:
                    post_30d += entry.value
            else:
                lifetime_comment += entry.value
                if recent:
                    comment_30d += entry.value

        stats = ReputationStats(
            post_value_30d=round(post_30d, 6),
            comment_value_30d=round(comment_30d, 6),
            lifetime_post_value=round(lifetime_post, 6),
            lifetime_comment_value=round(lifetime_comment, 6),
            last_updated=now,
        )
        self._store.save_value_stats(user_id, stats)
        return stats

    def _append(self, entry: ReputationContribution, *, now: datetime) -> ReputationContribution | None:
        if self._store.get_contribution(entry.key) is not None:
            logger.debug("[Reputation] Contribution %s already recorded, skipping", entry.key)
            return None
        try:
            written = self._store.write_contribution(entry)
        except ContributionExistsError:
            logger.debug("[Reputation] Contribution %s written concurrently, skipping", entry.key)
            return None

        logger.info(
            "[Reputation] Recorded %s contribution %.4f for user %s (%s)",
            entry.type.value,
            entry.value,
            entry.user_id,
            entry.content_id,
        )
        self.recompute_stats(entry.user_id, now=now)
        return written
