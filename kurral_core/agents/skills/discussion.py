from __future__ import annotations

from datetime import datetime, timezone

from kurral_core.agents.skills.base_skill import BaseSkill, logger
from kurral_core.agents.skills.prompts import build_discussion_instructions, build_discussion_prompt
from kurral_core.schema.annotations import CommentInsightDraft, DiscussionAnnotation
from kurral_core.schema.content import Comment, ContentItem
from kurral_core.schema.value import (
    CommentInsight,
    DiscussionAnalysis,
    DiscussionQuality,
    DiscussionRole,
    ValueVector,
)
from kurral_core.utils.runtime import ensure_aware
from kurral_core.utils.trace import Trace

EMPTY_SUMMARY = "No discussion yet."
HEURISTIC_SUMMARY = "Heuristic estimate: discussion not analyzed."

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def conservative_thread_quality(summary: str) -> DiscussionQuality:
    """Fixed defaults for threads that were not analyzed or have no comments."""
    return DiscussionQuality(
        informativeness=0.4,
        civility=0.7,
        reasoning_depth=0.35,
        cross_perspective=0.3,
        summary=summary,
    )


def empty_discussion() -> DiscussionAnalysis:
    return DiscussionAnalysis(thread_quality=conservative_thread_quality(EMPTY_SUMMARY))


def heuristic_comment_insight(comment: Comment) -> CommentInsight:
    """Contribution scales with text length only; role from a question mark."""
    length_score = min(1.0, len(comment.text or "") / 400)
    return CommentInsight(
        comment_id=comment.id,
        role=DiscussionRole.QUESTION if "?" in (comment.text or "") else DiscussionRole.OPINION,
        contribution=ValueVector(
            epistemic=0.6 * length_score,
            insight=0.5 * length_score,
            practical=0.3 * length_score,
            relational=0.4,
            effort=length_score,
            total=0.56 * length_score,
            confidence=0.3,
            drivers=["Heuristic estimate"],
        ),
    )


def heuristic_discussion(comments: list[Comment]) -> DiscussionAnalysis:
    if not comments:
        return empty_discussion()
    return DiscussionAnalysis(
        thread_quality=conservative_thread_quality(HEURISTIC_SUMMARY),
        comment_insights={c.id: heuristic_comment_insight(c) for c in comments},
    )


def select_recent_comments(comments: list[Comment], limit: int) -> list[Comment]:
    """Most recent `limit` comments, returned oldest first."""
    ordered = sorted(comments, key=lambda c: ensure_aware(c.created_at) if c.created_at else _EPOCH)
    return ordered[-limit:] if limit > 0 else []


def _insight_from_draft(draft: CommentInsightDraft) -> CommentInsight:
    dims = draft.contribution.model_dump()
    total = draft.total if draft.total is not None else sum(dims.values()) / len(dims)
    return CommentInsight(
        comment_id=draft.comment_id,
        role=draft.role,
        contribution=ValueVector(**dims, total=total),
        rationale=draft.rationale,
    )


class DiscussionSkill(BaseSkill):
    task = "discussion"

    async def run(self, item: ContentItem, comments: list[Comment]) -> DiscussionAnalysis:
        recent = select_recent_comments(comments, self.runtime.pipeline.max_discussion_comments)
        if not recent:
            return empty_discussion()
        if not self.annotation_available:
            return heuristic_discussion(recent)

        try:
            result: DiscussionAnnotation = await self.annotate(
                input=build_discussion_prompt(
                    post_text=self.prompt_text(item.text),
                    comments=[(c.id, self.prompt_text(c.text)[:500]) for c in recent],
                ),
                instructions=build_discussion_instructions(),
            )
        except Exception as e:
            logger.warning("[Discussion] %s analysis failed, using heuristic: %s", item.id, e)
            Trace.event("discussion.fallback", {"content_id": item.id, "error": str(e)[:200]})
            return heuristic_discussion(recent)

        known_ids = {c.id for c in recent}
        insights = {
            draft.comment_id: _insight_from_draft(draft)
            for draft in result.comment_insights
            if draft.comment_id in known_ids
        }
        for comment in recent:
            if comment.id not in insights:
                insights[comment.id] = heuristic_comment_insight(comment)

        return DiscussionAnalysis(thread_quality=result.thread_quality, comment_insights=insights)
