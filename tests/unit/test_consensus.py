# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Unit tests for crowd review consensus."""

import pytest

from kurral_core.review import ReviewAction, ReviewVote
from kurral_core.review.consensus import (
    ConsensusResult,
    ReviewConsensusEngine,
    compute_consensus,
    decide_final_status,
    vote_weight,
)
from kurral_core.runtime_config import ConsensusRuntimeConfig
from kurral_core.schema.content import Claim, ClaimDomain, ContentItem, FactCheck, ModerationStatus, Verdict
from kurral_core.storage.store import StoreError
from kurral_core.trust.kurral_score import neutral_baseline


def _votes(validate: int, invalidate: int, content_id: str = "p1") -> list[ReviewVote]:
    votes = [ReviewVote(content_id, f"v{i}", ReviewAction.VALIDATE) for i in range(validate)]
    votes += [ReviewVote(content_id, f"x{i}", ReviewAction.INVALIDATE) for i in range(invalidate)]
    return votes


def _equal_weight(_user_id: str) -> float:
    return 1.0


def _split(validate_share: float, confidence: float) -> ConsensusResult:
    total = 50.0
    return ConsensusResult(
        has_consensus=True,
        review_count=50,
        validate_weight=total * validate_share,
        invalidate_weight=total * (1 - validate_share),
        total_weight=total,
        confidence=confidence,
    )


TRUE_CHECK = FactCheck(id="a-fact-check", claim_id="a", verdict=Verdict.TRUE, confidence=0.9)
FALSE_CHECK = FactCheck(id="b-fact-check", claim_id="b", verdict=Verdict.FALSE, confidence=0.9)
MIXED_CHECK = FactCheck(id="c-fact-check", claim_id="c", verdict=Verdict.MIXED, confidence=0.5)
UNKNOWN_CHECK = FactCheck(id="d-fact-check", claim_id="d", verdict=Verdict.UNKNOWN, confidence=0.25)


@pytest.mark.parametrize("score,expected", [(None, 0.5), (0, 0.1), (5, 0.1), (65, 0.65), (100, 1.0), (140, 1.0)])
def test_vote_weight_is_normalized(score, expected):
    assert vote_weight(score) == pytest.approx(expected)


class TestComputeConsensus:
    def test_49_unanimous_votes_make_no_decision(self):
        result = compute_consensus(_votes(49, 0), _equal_weight, min_reviews=50)
        assert result.has_consensus is False
        assert result.review_count == 49

    def test_50_votes_with_supermajority(self):
        result = compute_consensus(_votes(35, 15), _equal_weight, min_reviews=50)
        assert result.has_consensus is True
        assert result.proposed_status == ModerationStatus.CLEAN
        assert result.validate_ratio == pytest.approx(0.7)
        assert result.confidence == pytest.approx(0.4)

    def test_invalidate_supermajority(self):
        result = compute_consensus(_votes(10, 40), _equal_weight, min_reviews=50)
        assert result.proposed_status == ModerationStatus.BLOCKED

    def test_split_vote_has_no_consensus(self):
        result = compute_consensus(_votes(27, 23), _equal_weight, min_reviews=50)
        assert result.has_consensus is False

    def test_weights_shift_the_outcome(self):
        def weight(user_id: str) -> float:
            return 1.0 if user_id.startswith("x") else 0.1

        result = compute_consensus(_votes(30, 20), weight, min_reviews=50)
        assert result.proposed_status == ModerationStatus.BLOCKED


class TestDecideFinalStatus:
    def test_validate_majority_is_clean(self):
        assert decide_final_status(_split(0.65, 0.3), [TRUE_CHECK]) == ModerationStatus.CLEAN

    def test_confident_false_overrides_validate_majority(self):
        assert decide_final_status(_split(0.65, 0.3), [TRUE_CHECK, FALSE_CHECK]) == ModerationStatus.BLOCKED

    def test_confident_false_beats_ambiguous_evidence(self):
        status = decide_final_status(_split(0.65, 0.3), [FALSE_CHECK, UNKNOWN_CHECK])
        assert status == ModerationStatus.BLOCKED

    def test_invalidate_majority_with_confident_false_blocks_despite_ambiguity(self):
        status = decide_final_status(_split(0.35, 0.3), [FALSE_CHECK, MIXED_CHECK])
        assert status == ModerationStatus.BLOCKED

    def test_ambiguous_evidence_with_narrow_margin_stays_in_review(self):
        assert decide_final_status(_split(0.65, 0.3), [MIXED_CHECK]) == ModerationStatus.NEEDS_REVIEW

    def test_ambiguous_evidence_with_wide_margin_resolves(self):
        assert decide_final_status(_split(0.9, 0.8), [MIXED_CHECK]) == ModerationStatus.CLEAN

    def test_invalidate_majority_blocks(self):
        assert decide_final_status(_split(0.3, 0.4), [TRUE_CHECK]) == ModerationStatus.BLOCKED

    def test_low_confidence_stays_in_review(self):
        assert decide_final_status(_split(0.6, 0.1), [TRUE_CHECK]) == ModerationStatus.NEEDS_REVIEW

    def test_override_threshold_is_a_parameter(self):
        status = decide_final_status(_split(0.9, 0.8), [MIXED_CHECK], ambiguous_override_confidence=0.85)
        assert status == ModerationStatus.NEEDS_REVIEW


class TestReviewConsensusEngine:
    @pytest.fixture
    def item(self, store):
        item = ContentItem(
            id="p1",
            author_id="author",
            text="Claim under review",
            claims=[Claim(id="a", text="Claim under review", domain=ClaimDomain.HEALTH)],
            fact_checks=[TRUE_CHECK],
            moderation_status=ModerationStatus.NEEDS_REVIEW,
        )
        store.save_content(item)
        return item

    def test_resolves_on_the_fiftieth_vote(self, store, item):
        engine = ReviewConsensusEngine(store)
        results = [engine.submit_vote(v) for v in _votes(35, 15)]

        assert results[:-1] == [None] * 49
        assert results[-1] == ModerationStatus.CLEAN
        assert store.get_content("p1").moderation_status == ModerationStatus.CLEAN

    def test_duplicate_vote_is_ignored(self, store, item):
        engine = ReviewConsensusEngine(store)
        vote = ReviewVote("p1", "v1", ReviewAction.VALIDATE)

        engine.submit_vote(vote)
        assert engine.submit_vote(ReviewVote("p1", "v1", ReviewAction.INVALIDATE)) is None
        assert len(store.list_reviews("p1")) == 1
        assert store.list_reviews("p1")[0].action == ReviewAction.VALIDATE

    def test_only_needs_review_items_are_resolved(self, store, item):
        store.update_content("p1", {"moderation_status": ModerationStatus.BLOCKED})
        engine = ReviewConsensusEngine(store)
        for vote in _votes(50, 0):
            store.add_review(vote)

        assert engine.evaluate("p1") is None
        assert store.get_content("p1").moderation_status == ModerationStatus.BLOCKED

    def test_voter_weight_uses_trust_score(self, store):
        store.save_trust_score("v1", neutral_baseline(start_score=80))
        engine = ReviewConsensusEngine(store)
        assert engine.voter_weight("v1") == pytest.approx(0.8)
        assert engine.voter_weight("nobody") == pytest.approx(0.5)

    def test_voter_weight_lookup_failure(self, store):
        class BrokenStore(type(store)):
            def get_trust_score(self, user_id):
                raise StoreError("unavailable")

        assert ReviewConsensusEngine(BrokenStore()).voter_weight("v1") == 0.5

    def test_domain_override_applies(self, store):
        item = ContentItem(
            id="p2",
            author_id="author",
            text="Mixed evidence",
            claims=[Claim(id="c", text="Mixed evidence", domain=ClaimDomain.HEALTH)],
            fact_checks=[MIXED_CHECK],
            moderation_status=ModerationStatus.NEEDS_REVIEW,
        )
        store.save_content(item)
        for vote in _votes(46, 4, content_id="p2"):
            store.add_review(vote)

        # confidence 0.84: resolves under the 0.7 default, not under a stricter health override
        strict = ConsensusRuntimeConfig(domain_overrides={"health": 0.9})
        assert ReviewConsensusEngine(store, consensus=strict).evaluate("p2") is None
        assert ReviewConsensusEngine(store).evaluate("p2") == ModerationStatus.CLEAN
