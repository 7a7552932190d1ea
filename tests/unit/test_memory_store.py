# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from datetime import timedelta

import pytest

from kurral_core.review.types import ReviewAction, ReviewVote
from kurral_core.schema.content import Claim, Comment, ContentItem, ModerationStatus, PipelineState
from kurral_core.storage import ClaimConflictError, DocumentNotFoundError, KurralStore
from kurral_core.storage.store import is_claimable
from kurral_core.trust.kurral_score import neutral_baseline
from kurral_core.utils.runtime import utcnow

STALE = timedelta(minutes=30)


def test_satisfies_protocol(store):
    assert isinstance(store, KurralStore)


class TestIsClaimable:
    def test_states(self):
        now = utcnow()
        assert is_claimable(PipelineState.NONE, None, now=now, stale_after=STALE)
        assert is_claimable(PipelineState.FAILED, now, now=now, stale_after=STALE)
        assert not is_claimable(PipelineState.IN_PROGRESS, now, now=now, stale_after=STALE)
        assert is_claimable(PipelineState.IN_PROGRESS, now - STALE, now=now, stale_after=STALE)
        assert is_claimable(PipelineState.IN_PROGRESS, None, now=now, stale_after=STALE)

    def test_naive_start_treated_as_now_zone(self):
        now = utcnow()
        naive = (now - timedelta(hours=1)).replace(tzinfo=None)
        assert is_claimable(PipelineState.IN_PROGRESS, naive, now=now, stale_after=STALE)


class TestContent:
    def test_returns_copies(self, store):
        store.save_content(ContentItem(id="p1", author_id="u1", claims=[Claim(id="c", text="x")]))
        item = store.get_content("p1")
        item.claims.clear()
        assert len(store.get_content("p1").claims) == 1

    def test_update_merges_and_none_clears(self, store):
        store.save_content(ContentItem(id="p1", author_id="u1", text="hi", pipeline_error="boom"))
        store.update_content("p1", {"moderation_status": ModerationStatus.CLEAN, "pipeline_error": None})

        item = store.get_content("p1")
        assert item.text == "hi"
        assert item.moderation_status == ModerationStatus.CLEAN
        assert item.pipeline_error is None

    def test_update_missing(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update_content("nope", {"text": "x"})

    def test_claim_is_exclusive(self, store):
        store.save_content(ContentItem(id="p1", author_id="u1"))
        now = utcnow()

        claimed = store.claim_content("p1", now=now, stale_after=STALE)
        assert claimed.pipeline_state == PipelineState.IN_PROGRESS
        with pytest.raises(ClaimConflictError):
            store.claim_content("p1", now=now + timedelta(minutes=1), stale_after=STALE)
        assert store.claim_content("p1", now=now + STALE, stale_after=STALE) is not None

    def test_claim_missing(self, store):
        assert store.claim_content("nope", now=utcnow(), stale_after=STALE) is None

    def test_queries(self, store):
        store.save_content(ContentItem(id="o", author_id="u1"))
        store.save_content(ContentItem(id="r1", author_id="u2", reshare_of_id="o", pipeline_state="pending"))
        store.save_content(ContentItem(id="r2", author_id="u3", reshare_of_id="o"))

        assert {i.id for i in store.list_reshares("o")} == {"r1", "r2"}
        assert [i.id for i in store.list_content_by_state(PipelineState.PENDING, limit=10)] == ["r1"]
        assert len(store.list_content_by_state(PipelineState.NONE, limit=1)) == 1

    def test_moderation_compare_and_set(self, store):
        store.save_content(ContentItem(id="p1", author_id="u1", moderation_status=ModerationStatus.NEEDS_REVIEW))
        assert not store.update_moderation_status_if(
            "p1", expected=ModerationStatus.CLEAN, status=ModerationStatus.BLOCKED
        )
        assert store.update_moderation_status_if(
            "p1", expected=ModerationStatus.NEEDS_REVIEW, status=ModerationStatus.BLOCKED
        )
        assert store.get_content("p1").moderation_status == ModerationStatus.BLOCKED


class TestComments:
    def test_lifecycle(self, store):
        store.save_comment(Comment(id="c1", author_id="u9", content_id="p1", text="hey"))
        store.save_comment(Comment(id="c2", author_id="u9", content_id="p2", text="yo"))

        assert [c.id for c in store.list_comments("p1")] == ["c1"]
        store.claim_comment("c1", now=utcnow(), stale_after=STALE)
        with pytest.raises(ClaimConflictError):
            store.claim_comment("c1", now=utcnow(), stale_after=STALE)
        store.update_comment("c1", {"pipeline_state": PipelineState.COMPLETED})
        assert store.get_comment("c1").pipeline_state == PipelineState.COMPLETED


class TestTrustAndReviews:
    def test_create_if_absent(self, store):
        first = neutral_baseline()
        assert store.create_trust_score_if_absent("u1", first) is first
        assert store.create_trust_score_if_absent("u1", neutral_baseline(start_score=10)) is first

    def test_one_vote_per_voter(self, store):
        vote = ReviewVote(content_id="p1", submitted_by="u2", action=ReviewAction.VALIDATE)
        assert store.add_review(vote) is True
        assert store.add_review(ReviewVote(content_id="p1", submitted_by="u2", action=ReviewAction.INVALIDATE)) is False
        assert store.list_reviews("p1") == [vote]
