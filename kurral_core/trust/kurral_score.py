# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Kurral Score aggregation.

Five sub-signals, each in [0, 1], recombined into a bounded 0-100 score:

    quality      40%  weighted blend of the latest value vector
    violations   25%  subtracted; moderation status plus confident-false share
    engagement   15%  mean of the discussion quality dimensions
    consistency  10%  min(1, rolling 30-day contribution value / 5)
    trust        10%  community standing from the latest moderation status

The net score is clamped to [-0.25, 0.75] and rescaled linearly to [0, 100].
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from kurral_core.runtime_config import ScoringRuntimeConfig
from kurral_core.schema.coercion import clamp
from kurral_core.schema.content import FactCheck, ModerationStatus
from kurral_core.schema.value import DiscussionQuality, ValueVector
from kurral_core.storage.store import KurralStore
from kurral_core.trust.types import TrustComponents, TrustHistoryEntry, TrustScore
from kurral_core.utils.runtime import utcnow

logger = logging.getLogger(__name__)

SCORE_WEIGHTS = {
    "quality": 0.40,
    "violations": 0.25,
    "engagement": 0.15,
    "consistency": 0.10,
    "trust": 0.10,
}

QUALITY_BLEND = {
    "epistemic": 0.3,
    "insight": 0.2,
    "practical": 0.2,
    "relational": 0.2,
    "effort": 0.1,
}

MIN_SCORE = 0
MAX_SCORE = 100
NET_FLOOR = -0.25
NET_CEILING = 0.75

DEFAULT_REASON = "score_update"
REASON_POST_VALUE = "post_value_update"
REASON_COMMENT_VALUE = "comment_value_update"
REASON_POST_COMMENT = "post_comment_update"

RECENT_VIOLATION_PENALTY = 0.4
CONSISTENCY_TARGET = 5.0


def quality_signal(value: ValueVector | None, previous: TrustComponents | None = None) -> float:
    if value is None:
        baseline = previous.quality_history if previous is not None else TrustComponents().quality_history
        return baseline / 100
    dims = value.dimensions()
    return clamp(sum(dims[name] * weight for name, weight in QUALITY_BLEND.items()), 0.0, 1.0)


def violation_penalty(
    status: ModerationStatus | None,
    fact_checks: Iterable[FactCheck] = (),
    *,
    threshold: float = 0.7,
) -> float:
    penalty = 0.0
    if status == ModerationStatus.BLOCKED:
        penalty += 1.0
    elif status == ModerationStatus.NEEDS_REVIEW:
        penalty += 0.4

    checks = list(fact_checks)
    if checks:
        false_share = sum(1 for fc in checks if fc.is_confident_false(threshold)) / len(checks)
        penalty += min(1.0, false_share)
    return clamp(penalty, 0.0, 1.0)


def engagement_signal(discussion: DiscussionQuality | None, previous: TrustComponents | None = None) -> float:
    if discussion is None:
        baseline = previous.engagement_quality if previous is not None else TrustComponents().engagement_quality
        return baseline / 100
    return clamp(discussion.average(), 0.0, 1.0)


def consistency_signal(rolling_value: float) -> float:
    return clamp(rolling_value / CONSISTENCY_TARGET, 0.0, 1.0)


def community_trust_signal(status: ModerationStatus | None, penalty: float) -> float:
    if status == ModerationStatus.BLOCKED:
        return 0.0
    if penalty > RECENT_VIOLATION_PENALTY:
        return 0.3
    if status == ModerationStatus.NEEDS_REVIEW:
        return 0.6
    return 1.0


def score_from_signals(quality: float, penalty: float, engagement: float, consistency: float, trust: float) -> int:
    positive = (
        quality * SCORE_WEIGHTS["quality"]
        + engagement * SCORE_WEIGHTS["engagement"]
        + consistency * SCORE_WEIGHTS["consistency"]
        + trust * SCORE_WEIGHTS["trust"]
    )
    net = clamp(positive - penalty * SCORE_WEIGHTS["violations"], NET_FLOOR, NET_CEILING)
    scaled = (net - NET_FLOOR) * (MAX_SCORE - MIN_SCORE)
    return int(clamp(round(scaled), MIN_SCORE, MAX_SCORE))


def compute_kurral_score(
    previous: TrustScore | None,
    *,
    value: ValueVector | None = None,
    policy_status: ModerationStatus | None = None,
    discussion: DiscussionQuality | None = None,
    fact_checks: Iterable[FactCheck] = (),
    rolling_value: float = 0.0,
    reason: str | None = None,
    now: datetime | None = None,
    history_limit: int = 20,
    start_score: int = 65,
    confident_false_threshold: float = 0.7,
) -> TrustScore:
    """Pure recombination; the same inputs always produce the same score."""
    now = now or utcnow()
    prev_components = previous.components if previous is not None else None
    prev_score = previous.score if previous is not None else start_score

    quality = quality_signal(value, prev_components)
    penalty = violation_penalty(policy_status, fact_checks, threshold=confident_false_threshold)
    engagement = engagement_signal(discussion, prev_components)
    consistency = consistency_signal(rolling_value)
    trust = community_trust_signal(policy_status, penalty)

    score = score_from_signals(quality, penalty, engagement, consistency, trust)
    entry = TrustHistoryEntry(score=score, delta=score - prev_score, reason=reason or DEFAULT_REASON, date=now)
    history = (entry,) + (previous.history if previous is not None else ())

    return TrustScore(
        score=score,
        last_updated=now,
        components=TrustComponents(
            quality_history=round(quality * 100),
            violation_history=round(penalty * 100),
            engagement_quality=round(engagement * 100),
            consistency=round(consistency * 100),
            community_trust=round(trust * 100),
        ),
        history=history[: max(0, history_limit)],
    )


def neutral_baseline(*, start_score: int = 65, now: datetime | None = None) -> TrustScore:
    return TrustScore(score=start_score, last_updated=now or utcnow(), components=TrustComponents(), history=())


class KurralScoreService:
    def __init__(self, store: KurralStore, *, scoring: ScoringRuntimeConfig | None = None) -> None:
        self._store = store
        self._scoring = scoring or ScoringRuntimeConfig()

    def initialize(self, user_id: str, *, now: datetime | None = None) -> TrustScore:
        """Create the neutral baseline if the user has no score yet."""
        baseline = neutral_baseline(start_score=self._scoring.trust_start_score, now=now)
        stored = self._store.create_trust_score_if_absent(user_id, baseline)
        if stored is baseline:
            logger.info("[KurralScore] Initialized score %d for user %s", baseline.score, user_id)
        return stored

    def update(
        self,
        user_id: str,
        *,
        value: ValueVector | None = None,
        policy_status: ModerationStatus | None = None,
        discussion: DiscussionQuality | None = None,
        fact_checks: Iterable[FactCheck] = (),
        reason: str | None = None,
        now: datetime | None = None,
    ) -> TrustScore:
        now = now or utcnow()
        previous = self._store.get_trust_score(user_id) or self.initialize(user_id, now=now)
        stats = self._store.get_value_stats(user_id)

        updated = compute_kurral_score(
            previous,
            value=value,
            policy_status=policy_status,
            discussion=discussion,
            fact_checks=fact_checks,
            rolling_value=stats.rolling_total if stats is not None else 0.0,
            reason=reason,
            now=now,
            history_limit=self._scoring.trust_history_limit,
            start_score=self._scoring.trust_start_score,
            confident_false_threshold=self._scoring.confident_false_threshold,
        )
        self._store.save_trust_score(user_id, updated)
        logger.info(
            "[KurralScore] User %s: %d -> %d (%s)",
            user_id,
            previous.score,
            updated.score,
            updated.history[0].reason if updated.history else DEFAULT_REASON,
        )
        return updated
