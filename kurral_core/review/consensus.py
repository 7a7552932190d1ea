# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Review Consensus Engine.

Resolves needs_review items from crowd votes weighted by each voter's
Kurral Score, blended with the item's existing fact-check verdicts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from kurral_core.agents.skills.value_scoring import dominant_domain
from kurral_core.runtime_config import ConsensusRuntimeConfig, ScoringRuntimeConfig
from kurral_core.review.types import ReviewAction, ReviewVote
from kurral_core.schema.coercion import clamp
from kurral_core.schema.content import FactCheck, ModerationStatus, Verdict
from kurral_core.storage.store import KurralStore, StoreError
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

MIN_VOTE_WEIGHT = 0.1
MAX_VOTE_WEIGHT = 1.0
DEFAULT_VOTER_SCORE = 50
LOOKUP_FAILURE_WEIGHT = 0.5


@dataclass(frozen=True, slots=True)
class ConsensusResult:
    has_consensus: bool
    review_count: int
    validate_weight: float = 0.0
    invalidate_weight: float = 0.0
    total_weight: float = 0.0
    confidence: float = 0.0
    proposed_status: ModerationStatus | None = None

    @property
    def validate_ratio(self) -> float:
        return self.validate_weight / self.total_weight if self.total_weight > 0 else 0.0

    @property
    def invalidate_ratio(self) -> float:
        return self.invalidate_weight / self.total_weight if self.total_weight > 0 else 0.0


def vote_weight(score: float | None) -> float:
    """Voter Kurral Score (0-100) normalized to [0.1, 1.0]."""
    if score is None:
        score = DEFAULT_VOTER_SCORE
    return clamp(score / 100, MIN_VOTE_WEIGHT, MAX_VOTE_WEIGHT)


def compute_consensus(
    votes: list[ReviewVote],
    weight_for: Callable[[str], float],
    *,
    min_reviews: int = 50,
    threshold: float = 0.6,
) -> ConsensusResult:
    if len(votes) < min_reviews:
        return ConsensusResult(has_consensus=False, review_count=len(votes))

    validate = invalidate = 0.0
    for vote in votes:
        weight = weight_for(vote.submitted_by)
        if vote.action == ReviewAction.VALIDATE:
            validate += weight
        else:
            invalidate += weight
    total = validate + invalidate
    confidence = abs(validate - invalidate) / total if total > 0 else 0.0

    result = ConsensusResult(
        has_consensus=False,
        review_count=len(votes),
        validate_weight=validate,
        invalidate_weight=invalidate,
        total_weight=total,
        confidence=confidence,
    )
    if result.validate_ratio >= threshold:
        return replace(result, has_consensus=True, proposed_status=ModerationStatus.CLEAN)
    if result.invalidate_ratio >= threshold:
        return replace(result, has_consensus=True, proposed_status=ModerationStatus.BLOCKED)
    return result


def decide_final_status(
    consensus: ConsensusResult,
    fact_checks: Iterable[FactCheck],
    *,
    threshold: float = 0.6,
    min_confidence: float = 0.2,
    ambiguous_override_confidence: float = 0.7,
    confident_false_threshold: float = 0.7,
) -> ModerationStatus:
    checks = list(fact_checks)
    has_confident_false = any(fc.is_confident_false(confident_false_threshold) for fc in checks)
    ambiguous = any(fc.verdict in (Verdict.MIXED, Verdict.UNKNOWN) for fc in checks)
    narrow = consensus.confidence < ambiguous_override_confidence

    if consensus.validate_ratio >= threshold and consensus.confidence >= min_confidence:
        if has_confident_false:
            return ModerationStatus.BLOCKED
        if ambiguous and narrow:
            return ModerationStatus.NEEDS_REVIEW
        return ModerationStatus.CLEAN

    if consensus.invalidate_ratio >= threshold and consensus.confidence >= min_confidence:
        if has_confident_false:
            return ModerationStatus.BLOCKED
        if ambiguous and narrow:
            return ModerationStatus.NEEDS_REVIEW
        return ModerationStatus.BLOCKED

    return ModerationStatus.NEEDS_REVIEW


class ReviewConsensusEngine:
    def __init__(
        self,
        store: KurralStore,
        *,
        consensus: ConsensusRuntimeConfig | None = None,
        scoring: ScoringRuntimeConfig | None = None,
    ) -> None:
        self._store = store
        self._config = consensus or ConsensusRuntimeConfig()
        self._scoring = scoring or ScoringRuntimeConfig()

    def voter_weight(self, user_id: str) -> float:
        try:
            trust = self._store.get_trust_score(user_id)
        except StoreError as exc:
            logger.warning("[Consensus] Trust lookup failed for voter %s: %s", user_id, exc)
            return LOOKUP_FAILURE_WEIGHT
        return vote_weight(trust.score if trust is not None else None)

    def submit_vote(self, vote: ReviewVote) -> ModerationStatus | None:
        """Store the vote (first vote per voter wins) and re-evaluate the item."""
        if not self._store.add_review(vote):
            logger.info("[Consensus] Voter %s already reviewed %s", vote.submitted_by, vote.content_id)
            return None
        return self.evaluate(vote.content_id)

    def evaluate(self, content_id: str) -> ModerationStatus | None:
        """Return the new status if one was written, else None."""
        votes = self._store.list_reviews(content_id)
        result = compute_consensus(
            votes,
            self.voter_weight,
            min_reviews=self._config.min_reviews,
            threshold=self._config.consensus_threshold,
        )
        if not result.has_consensus:
            logger.debug(
                "[Consensus] No consensus for %s (votes=%d, confidence=%.2f)",
                content_id,
                result.review_count,
                result.confidence,
            )
            return None

        item = self._store.get_content(content_id)
        if item is None:
            logger.warning("[Consensus] Content %s not found", content_id)
            return None
        if item.moderation_status != ModerationStatus.NEEDS_REVIEW:
            logger.info(
                "[Consensus] %s is no longer needs_review (%s), skipping",
                content_id,
                item.moderation_status.value if item.moderation_status else None,
            )
            return None

        domain = dominant_domain(item.claims, item.topic)
        final = decide_final_status(
            result,
            item.fact_checks,
            threshold=self._config.consensus_threshold,
            min_confidence=self._config.min_confidence,
            ambiguous_override_confidence=self._config.override_confidence_for(domain),
            confident_false_threshold=self._scoring.confident_false_threshold,
        )
        Trace.event("consensus.decision", {
            "content_id": content_id,
            "votes": result.review_count,
            "validate_ratio": round(result.validate_ratio, 4),
            "confidence": round(result.confidence, 4),
            "status": final.value,
        })
        if final == ModerationStatus.NEEDS_REVIEW:
            return None

        written = self._store.update_moderation_status_if(
            content_id,
            expected=ModerationStatus.NEEDS_REVIEW,
            status=final,
        )
        if not written:
            logger.info("[Consensus] Status of %s changed concurrently, not overwriting", content_id)
            return None
        logger.info(
            "[Consensus] %s resolved to %s (votes=%d, confidence=%.2f)",
            content_id,
            final.value,
            result.review_count,
            result.confidence,
        )
        return final
