# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Comment pipeline.

Runs pre-check, claims, fact-check and policy scoped to one comment, then
folds the comment into its parent: per-comment contribution from the thread
analysis, a ledger entry for the commenter, and a re-scored parent value.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from kurral_core.agents.skills.discussion import heuristic_comment_insight
from kurral_core.agents.skills.value_scoring import dominant_domain
from kurral_core.pipeline.core import Pipeline, PipelineContext
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation
from kurral_core.pipeline.orchestrator import ContentPipeline, OutcomeStatus, PipelineOutcome, new_trace_id
from kurral_core.pipeline.steps import ExtractClaimsStep, FactCheckStep, PolicyStep, PreCheckStep
from kurral_core.schema.coercion import clamp
from kurral_core.schema.content import Comment, ContentItem, PipelineState
from kurral_core.schema.value import CommentInsight, DiscussionAnalysis
from kurral_core.storage.store import ClaimConflictError
from kurral_core.trust.kurral_score import REASON_COMMENT_VALUE, REASON_POST_COMMENT
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)


class CommentPipeline:
    """Shares skills, store and services with the content pipeline it wraps."""

    def __init__(self, content: ContentPipeline):
        self.content = content
        self.store = content.store
        self.runtime = content.runtime
        self._clock = content._clock
        self.pipeline = Pipeline(
            name="comment",
            steps=[
                PreCheckStep(content.precheck),
                ExtractClaimsStep(content.claims),
                FactCheckStep(content.fact_checker),
                PolicyStep(confident_false_threshold=self.runtime.scoring.confident_false_threshold),
            ],
        )

    async def process(self, comment_id: str) -> PipelineOutcome:
        now = self._clock()
        stale_after = timedelta(minutes=self.runtime.pipeline.stale_lock_minutes)
        try:
            comment = self.store.claim_comment(comment_id, now=now, stale_after=stale_after)
        except ClaimConflictError as e:
            logger.info("[CommentPipeline] %s", e)
            return PipelineOutcome(comment_id, OutcomeStatus.SKIPPED, error=str(e))
        if comment is None:
            logger.warning("[CommentPipeline] Comment %s not found", comment_id)
            return PipelineOutcome(comment_id, OutcomeStatus.SKIPPED, error="not_found")

        Trace.start(new_trace_id(comment_id), runtime=self.runtime)
        try:
            return await self._run_claimed(comment)
        finally:
            Trace.stop()

    async def _run_claimed(self, comment: Comment) -> PipelineOutcome:
        Trace.event("comment_pipeline.start", {"comment_id": comment.id, "content_id": comment.content_id})
        try:
            ctx = PipelineContext.for_item(comment, persist=self.store.update_comment)
            ctx = await self.pipeline.run(ctx)
            parent = self.store.get_content(comment.content_id)
            if parent is None:
                raise PipelineViolation("load_parent", comment.id, f"parent post {comment.content_id} is gone")

            analysis = await self.content.discussion.run(parent, self.store.list_comments(parent.id))
            insight = analysis.comment_insights.get(comment.id) or heuristic_comment_insight(comment)
            ctx = ctx.checkpoint(
                "discussion",
                discussion_role=insight.role,
                value_contribution=insight.contribution,
            )
        except (PipelineExecutionError, PipelineViolation) as e:
            logger.error("[CommentPipeline] %s failed: %s", comment.id, e)
            Trace.event("comment_pipeline.failed", {"comment_id": comment.id, **e.to_trace_dict()})
            self.store.update_comment(comment.id, {
                "pipeline_state": PipelineState.FAILED,
                "pipeline_error": str(e)[:500],
            })
            return PipelineOutcome(comment.id, OutcomeStatus.FAILED, error=str(e))

        final: Comment = ctx.item
        self._credit_commenter(final, insight, parent)
        await self._rescore_parent(parent, ctx, analysis)

        self.store.update_comment(final.id, {
            "pipeline_state": PipelineState.COMPLETED,
            "pipeline_started_at": None,
            "pipeline_completed_at": self._clock(),
            "pipeline_error": None,
        })
        Trace.event("comment_pipeline.completed", {
            "comment_id": final.id,
            "status": ctx.status.value if ctx.status else None,
            "role": insight.role.value,
        })
        return PipelineOutcome(final.id, OutcomeStatus.COMPLETED)

    def _credit_commenter(self, comment: Comment, insight: CommentInsight, parent: ContentItem) -> None:
        contribution = insight.contribution
        try:
            self.content.ledger.record_comment_value(
                comment,
                contribution,
                parent.topic or dominant_domain(parent.claims, parent.topic),
            )
        except Exception as e:
            logger.error("[CommentPipeline] %s: reputation update failed: %s", comment.id, e)

        signal = contribution.model_copy(update={"confidence": clamp(contribution.total, 0.3, 1.0)})
        try:
            self.content.trust.update(
                comment.author_id,
                value=signal,
                policy_status=comment.moderation_status,
                fact_checks=comment.fact_checks,
                reason=REASON_COMMENT_VALUE,
            )
        except Exception as e:
            logger.error("[CommentPipeline] %s: commenter trust update failed: %s", comment.id, e)

    async def _rescore_parent(
        self,
        parent: ContentItem,
        ctx: PipelineContext,
        analysis: DiscussionAnalysis,
    ) -> None:
        """Comments count toward the parent's value; claims from both feed the scorer."""
        claims = list(parent.claims) + list(ctx.claims)
        fact_checks = list(parent.fact_checks) + list(ctx.fact_checks)
        discussion = analysis.thread_quality
        try:
            value = await self.content.value.run(parent, claims, fact_checks, discussion)
            self.store.update_content(parent.id, {
                "value_score": value,
                "discussion_quality": discussion,
            })
        except Exception as e:
            logger.error("[CommentPipeline] %s: parent re-score failed: %s", parent.id, e)
            return

        try:
            self.content.ledger.record_post_value(parent, value, claims)
        except Exception as e:
            logger.error("[CommentPipeline] %s: parent reputation update failed: %s", parent.id, e)

        try:
            self.content.trust.update(
                parent.author_id,
                value=value,
                policy_status=parent.moderation_status,
                discussion=discussion,
                fact_checks=parent.fact_checks,
                reason=REASON_POST_COMMENT,
            )
        except Exception as e:
            logger.error("[CommentPipeline] %s: author trust update failed: %s", parent.id, e)
