# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from datetime import datetime, timedelta, timezone

import pytest

from kurral_core.agents.skills.discussion import (
    EMPTY_SUMMARY,
    HEURISTIC_SUMMARY,
    DiscussionSkill,
    heuristic_comment_insight,
    select_recent_comments,
)
from kurral_core.schema.content import Comment, ContentItem
from kurral_core.schema.value import DiscussionRole

POST = ContentItem(id="p1", author_id="u1", text="Rates rose in May")
T0 = datetime(2025, 5, 1, tzinfo=timezone.utc)


def _comment(cid, text="Interesting take", minutes=0):
    return Comment(id=cid, author_id=f"user-{cid}", content_id="p1", text=text,
                   created_at=T0 + timedelta(minutes=minutes))


def test_heuristic_insight_scales_with_length():
    short = heuristic_comment_insight(_comment("c1", "Why?"))
    long = heuristic_comment_insight(_comment("c2", "y" * 400))

    assert short.role == DiscussionRole.QUESTION
    assert long.role == DiscussionRole.OPINION
    assert long.contribution.total == pytest.approx(0.56)
    assert long.contribution.effort == 1.0
    assert short.contribution.total < long.contribution.total


def test_select_recent_comments_keeps_latest_oldest_first():
    comments = [_comment("c3", minutes=3), _comment("c1", minutes=1), _comment("c2", minutes=2)]
    assert [c.id for c in select_recent_comments(comments, 2)] == ["c2", "c3"]
    assert select_recent_comments(comments, 0) == []


class TestDiscussionSkill:
    @pytest.mark.asyncio
    async def test_no_comments(self, config, annotation, sleep):
        analysis = await DiscussionSkill(config, annotation, sleep=sleep).run(POST, [])
        assert analysis.thread_quality.summary == EMPTY_SUMMARY
        assert analysis.thread_quality.informativeness == pytest.approx(0.4)
        assert analysis.thread_quality.civility == pytest.approx(0.7)
        assert analysis.thread_quality.reasoning_depth == pytest.approx(0.35)
        assert analysis.thread_quality.cross_perspective == pytest.approx(0.3)
        assert analysis.comment_insights == {}
        assert annotation.calls == []

    @pytest.mark.asyncio
    async def test_offline_heuristic(self, offline_config):
        analysis = await DiscussionSkill(offline_config, None).run(POST, [_comment("c1"), _comment("c2", "Source?")])
        assert analysis.thread_quality.summary == HEURISTIC_SUMMARY
        assert analysis.comment_insights["c2"].role == DiscussionRole.QUESTION

    @pytest.mark.asyncio
    async def test_annotated_insights_fill_gaps_and_drop_unknown_ids(self, config, annotation_factory, sleep):
        client = annotation_factory({"discussion": {
            "thread_quality": {"informativeness": 0.8, "civility": 0.9, "reasoning_depth": 0.7,
                               "cross_perspective": 0.5, "summary": "Good exchange"},
            "comment_insights": [
                {"comment_id": "c1", "role": "answer",
                 "contribution": {"epistemic": 1.0, "insight": 1.0, "practical": 1.0, "relational": 1.0,
                                  "effort": 0.5}},
                {"comment_id": "ghost", "role": "evidence"},
            ],
        }})
        comments = [_comment("c1"), _comment("c2", "Any source?")]

        analysis = await DiscussionSkill(config, client, sleep=sleep).run(POST, comments)

        assert analysis.thread_quality.summary == "Good exchange"
        assert set(analysis.comment_insights) == {"c1", "c2"}
        c1 = analysis.comment_insights["c1"]
        assert c1.role == DiscussionRole.ANSWER
        # no explicit total: mean of the dimensions
        assert c1.contribution.total == pytest.approx(0.9)
        assert analysis.comment_insights["c2"].role == DiscussionRole.QUESTION

    @pytest.mark.asyncio
    async def test_prompt_limited_to_recent_comments(self, config, annotation_factory, sleep):
        client = annotation_factory({"discussion": {"thread_quality": {"summary": "ok"}}})
        comments = [_comment(f"c{i}", f"comment number {i}", minutes=i) for i in range(25)]

        await DiscussionSkill(config, client, sleep=sleep).run(POST, comments)

        prompt = client.calls[0]["input"]
        assert "comment number 24" in prompt
        assert "[c5]" in prompt
        assert "[c4]" not in prompt

    @pytest.mark.asyncio
    async def test_failure_falls_back(self, config, annotation_factory, sleep):
        analysis = await DiscussionSkill(config, annotation_factory({}), sleep=sleep).run(POST, [_comment("c1")])
        assert analysis.thread_quality.summary == HEURISTIC_SUMMARY
