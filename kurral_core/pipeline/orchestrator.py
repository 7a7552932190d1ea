# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Content pipeline orchestrator.

    claim -> reshare inheritance -> pre-check -> claims -> fact-check
          -> policy -> discussion -> value -> complete -> fan-out
          -> reputation + trust

Every stage checkpoints its output, so a crashed run resumes from the last
completed stage once its in_progress lock goes stale.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable
from uuid import uuid4

from kurral_core.agents.llm_client import AnnotationClient
from kurral_core.agents.skills.claims import ClaimExtractionSkill
from kurral_core.agents.skills.discussion import DiscussionSkill
from kurral_core.agents.skills.explainer import ExplainerSkill
from kurral_core.agents.skills.fact_check import FactCheckSkill
from kurral_core.agents.skills.precheck import PreCheckSkill
from kurral_core.agents.skills.value_scoring import ValueScoringSkill
from kurral_core.config import KurralConfig
from kurral_core.llm.retry import Sleep
from kurral_core.pipeline.contracts import FAILED_STAGES_KEY
from kurral_core.pipeline.core import Pipeline, PipelineContext
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation
from kurral_core.pipeline.steps import (
    DiscussionStep,
    ExtractClaimsStep,
    FactCheckStep,
    PolicyStep,
    PreCheckStep,
    ResolveReshareStep,
    ValueScoringStep,
    inherited_fields,
)
from kurral_core.reputation.service import ReputationLedger
from kurral_core.schema.content import ContentItem, PipelineState
from kurral_core.storage.store import ClaimConflictError, KurralStore, is_claimable
from kurral_core.trust.kurral_score import REASON_POST_VALUE, KurralScoreService
from kurral_core.utils.runtime import utcnow
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    DEFERRED = "deferred"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PipelineOutcome:
    content_id: str
    status: OutcomeStatus
    item: ContentItem | None = None
    failed_stages: list[str] = field(default_factory=list)
    reshares_synced: int = 0
    error: str | None = None


def new_trace_id(subject_id: str) -> str:
    return f"{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}_{subject_id}_{str(uuid4())[:6]}"


class ContentPipeline:
    """
    Runs content items through the trust pipeline.

    Dependencies are injected: pass a fake AnnotationClient and an
    InMemoryKurralStore for tests.
    """

    def __init__(
        self,
        config: KurralConfig,
        store: KurralStore,
        *,
        llm_client: AnnotationClient | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self.runtime = config.resolved_runtime()
        self.store = store
        self._clock = clock
        if llm_client is None and config.annotation_enabled:
            llm_client = AnnotationClient(
                openai_api_key=config.openai_api_key,
                default_timeout=self.runtime.annotation.timeout_sec,
                concurrency=self.runtime.annotation.concurrency,
            )
        self.llm_client = llm_client

        self.precheck = PreCheckSkill(config, llm_client, sleep=sleep)
        self.claims = ClaimExtractionSkill(config, llm_client, sleep=sleep)
        self.fact_checker = FactCheckSkill(config, llm_client, sleep=sleep)
        self.discussion = DiscussionSkill(config, llm_client, sleep=sleep)
        self.value = ValueScoringSkill(config, llm_client, sleep=sleep)
        self.explainer = ExplainerSkill(config, llm_client, sleep=sleep)

        self.ledger = ReputationLedger(store, scoring=self.runtime.scoring, pipeline=self.runtime.pipeline)
        self.trust = KurralScoreService(store, scoring=self.runtime.scoring)
        self.pipeline = self.build_pipeline()

    @property
    def stale_after(self) -> timedelta:
        return timedelta(minutes=self.runtime.pipeline.stale_lock_minutes)

    def build_pipeline(self) -> Pipeline:
        return Pipeline(
            name="content",
            steps=[
                ResolveReshareStep(self.store),
                PreCheckStep(self.precheck),
                ExtractClaimsStep(
                    self.claims,
                    store=self.store,
                    similarity_threshold=self.runtime.pipeline.similarity_threshold,
                ),
                FactCheckStep(self.fact_checker),
                PolicyStep(confident_false_threshold=self.runtime.scoring.confident_false_threshold),
                DiscussionStep(self.discussion, self.store),
                ValueScoringStep(self.value, self.explainer),
            ],
        )

    async def process(self, content_id: str, *, reset: bool = False) -> PipelineOutcome:
        """
        Claim the item and run it to completion.

        `reset` discards checkpointed claims and fact-checks first (edited content).
        """
        now = self._clock()
        try:
            item = self.store.claim_content(content_id, now=now, stale_after=self.stale_after)
        except ClaimConflictError as e:
            logger.info("[Pipeline] %s", e)
            return PipelineOutcome(content_id, OutcomeStatus.SKIPPED, error=str(e))
        if item is None:
            logger.warning("[Pipeline] Content %s not found", content_id)
            return PipelineOutcome(content_id, OutcomeStatus.SKIPPED, error="not_found")

        Trace.start(new_trace_id(content_id), runtime=self.runtime)
        try:
            return await self._run_claimed(item, reset=reset)
        finally:
            Trace.stop()

    async def _run_claimed(self, item: ContentItem, *, reset: bool) -> PipelineOutcome:
        Trace.event("pipeline.start", {
            "content_id": item.id,
            "reshare_of": item.reshare_of_id,
            "quote_of": item.quote_of_id,
            "resumed_claims": len(item.claims),
        })
        try:
            if not item.author_id:
                raise PipelineViolation("load", item.id, "content item has no author")
            if reset:
                self.store.update_content(item.id, {"claims": [], "fact_checks": []})
                item = item.model_copy(update={"claims": [], "fact_checks": []})
            ctx = PipelineContext.for_item(item, persist=self.store.update_content)
            ctx = await self.pipeline.run(ctx)
        except (PipelineExecutionError, PipelineViolation) as e:
            return self._mark_failed(item, e)

        failed_stages = list(ctx.get_extra(FAILED_STAGES_KEY, []))
        if ctx.halted:
            Trace.event("pipeline.deferred", {"content_id": item.id})
            return PipelineOutcome(item.id, OutcomeStatus.DEFERRED, item=ctx.item, failed_stages=failed_stages)

        completed_at = self._clock()
        try:
            ctx = ctx.checkpoint(
                "complete",
                pipeline_state=PipelineState.NONE,
                pipeline_started_at=None,
                pipeline_completed_at=completed_at,
                pipeline_error=None,
            )
        except PipelineExecutionError as e:
            return self._mark_failed(item, e)

        final = ctx.item
        logger.info(
            "[Pipeline] %s completed: status=%s claims=%d value=%s degraded=%s",
            final.id,
            final.moderation_status.value if final.moderation_status else None,
            len(ctx.claims),
            f"{ctx.value.total:.3f}" if ctx.value else None,
            ",".join(failed_stages) or "none",
        )
        Trace.event("pipeline.completed", {
            "content_id": final.id,
            "status": final.moderation_status.value if final.moderation_status else None,
            "failed_stages": failed_stages,
        })

        synced = 0
        if not final.is_reshare and final.has_complete_fact_check_data():
            try:
                synced = await self.sync_reshares_from_original(final)
            except Exception as e:
                logger.error("[Pipeline] %s: reshare fan-out failed: %s", final.id, e)

        self._apply_side_effects(final, ctx)
        return PipelineOutcome(
            final.id,
            OutcomeStatus.COMPLETED,
            item=final,
            failed_stages=failed_stages,
            reshares_synced=synced,
        )

    def _apply_side_effects(self, item: ContentItem, ctx: PipelineContext) -> None:
        if ctx.value is not None:
            try:
                self.ledger.record_post_value(item, ctx.value, ctx.claims)
            except Exception as e:
                logger.error("[Pipeline] %s: reputation update failed: %s", item.id, e)

        discussion = ctx.discussion.thread_quality if ctx.discussion else None
        has_signal = bool(ctx.value or ctx.status or ctx.fact_checks or discussion)
        if not has_signal:
            return
        try:
            self.trust.update(
                item.author_id,
                value=ctx.value,
                policy_status=ctx.status,
                discussion=discussion,
                fact_checks=ctx.fact_checks,
                reason=REASON_POST_VALUE,
            )
        except Exception as e:
            logger.error("[Pipeline] %s: trust score update failed: %s", item.id, e)

    def _mark_failed(self, item: ContentItem, error: PipelineExecutionError | PipelineViolation) -> PipelineOutcome:
        logger.error("[Pipeline] %s failed: %s", item.id, error)
        Trace.event("pipeline.failed", {"content_id": item.id, **error.to_trace_dict()})
        try:
            self.store.update_content(item.id, {
                "pipeline_state": PipelineState.FAILED,
                "pipeline_error": str(error)[:500],
            })
        except Exception as e:
            logger.exception("[Pipeline] %s: could not mark failed: %s", item.id, e)
        return PipelineOutcome(item.id, OutcomeStatus.FAILED, item=item, error=str(error))

    async def sync_reshares_from_original(self, original: ContentItem) -> int:
        """Push the original's fact-check data to pending or incomplete reshares."""
        if original.is_reshare or not original.has_complete_fact_check_data():
            return 0

        fields = inherited_fields(original)
        synced = 0
        for reshare in self.store.list_reshares(original.id):
            if reshare.pipeline_state == PipelineState.IN_PROGRESS:
                continue
            if reshare.pipeline_state != PipelineState.PENDING and reshare.has_complete_fact_check_data():
                continue
            self.store.update_content(reshare.id, {
                **fields,
                "pipeline_state": PipelineState.COMPLETED,
                "pipeline_started_at": None,
                "pipeline_completed_at": self._clock(),
                "pipeline_error": None,
            })
            synced += 1
            Trace.event("fanout.reshare", {"original_id": original.id, "reshare_id": reshare.id})

        if synced:
            logger.info("[Pipeline] %s: synced %d reshares", original.id, synced)
        return synced

    async def process_pending_reshares(self, limit: int | None = None) -> list[PipelineOutcome]:
        """Retry reshares that were deferred while their original was in flight."""
        limit = limit or self.runtime.pipeline.pending_reshare_batch
        outcomes: list[PipelineOutcome] = []
        for item in self.store.list_content_by_state(PipelineState.PENDING, limit=limit):
            if not item.is_reshare:
                continue
            outcomes.append(await self.process(item.id))
        return outcomes

    async def process_failed(self, limit: int | None = None) -> list[PipelineOutcome]:
        """Re-run failed items and items whose in_progress lock has gone stale."""
        limit = limit or self.runtime.pipeline.failed_sweep_batch
        now = self._clock()
        candidates = self.store.list_content_by_state(PipelineState.FAILED, limit=limit)
        for item in self.store.list_content_by_state(PipelineState.IN_PROGRESS, limit=limit):
            if is_claimable(item.pipeline_state, item.pipeline_started_at, now=now, stale_after=self.stale_after):
                candidates.append(item)

        outcomes: list[PipelineOutcome] = []
        for item in candidates[:limit]:
            logger.info("[Pipeline] Sweeping %s (state=%s)", item.id, item.pipeline_state.value)
            outcomes.append(await self.process(item.id))
        return outcomes
