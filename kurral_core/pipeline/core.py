# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Pipeline Core

Defines the Step protocol and Pipeline executor.

Design Principles:
- Steps are composable units of work with a single run() method
- Pipeline executes steps in order, threading context through
- Each step checkpoints its own output through ctx.checkpoint()
- A failing step is logged and skipped; later steps run on partial data

Usage:
    from kurral_core.pipeline.core import Pipeline, PipelineContext

    class MyStep:
        name = "my_step"

        async def run(self, ctx: PipelineContext) -> PipelineContext:
            return ctx.with_update(status=ModerationStatus.CLEAN)

    pipeline = Pipeline(name="content", steps=[MyStep()])
    result = await pipeline.run(PipelineContext.for_item(item, persist=store.update_content))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Protocol, Union, runtime_checkable

from kurral_core.pipeline.contracts import DEFERRED_KEY, FAILED_STAGES_KEY
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation
from kurral_core.schema.content import Claim, Comment, ContentItem, FactCheck, ModerationStatus
from kurral_core.schema.value import DiscussionAnalysis, ValueVector
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

Subject = Union[ContentItem, Comment]
Persist = Callable[[str, dict[str, Any]], None]


# ─────────────────────────────────────────────────────────────────────────────
# Pipeline Context
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class PipelineContext:
    """
    Context passed through pipeline steps.

    Each step receives context, does work, and returns new context.
    Context is never mutated in place.

    Attributes:
        item: The post or comment being processed (kept in sync with checkpoints)
        persist: Partial-update writer for the item's document
        claims: Current claims (resumed from the item, extracted, or inherited)
        fact_checks: Current fact-checks, at most one per claim
        status: Moderation status decided this run
        discussion: Discussion analysis produced this run
        value: Value vector produced this run
        explanation: Human-readable value explanation
        extras: Step-to-step flags (see pipeline.contracts)
    """

    item: Subject
    persist: Persist | None = None
    claims: list[Claim] = field(default_factory=list)
    fact_checks: list[FactCheck] = field(default_factory=list)
    status: ModerationStatus | None = None
    discussion: DiscussionAnalysis | None = None
    value: ValueVector | None = None
    explanation: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_item(cls, item: Subject, *, persist: Persist | None = None) -> PipelineContext:
        """Resume from whatever the item already has checkpointed."""
        if not item.id:
            raise PipelineViolation("load", item.id, "item has no id")
        return cls(
            item=item,
            persist=persist,
            claims=list(item.claims),
            fact_checks=list(item.fact_checks),
        )

    def with_update(self, **kwargs: Any) -> PipelineContext:
        """Create a new context with updated fields."""
        return replace(self, **kwargs)

    def set_extra(self, key: str, value: Any) -> PipelineContext:
        new_extras = {**self.extras, key: value}
        return self.with_update(extras=new_extras)

    def get_extra(self, key: str, default: Any = None) -> Any:
        return self.extras.get(key, default)

    @property
    def halted(self) -> bool:
        return bool(self.get_extra(DEFERRED_KEY))

    def checkpoint(self, step_name: str, **fields: Any) -> PipelineContext:
        """
        Persist `fields` on the item immediately and mirror them onto ctx.item.

        A failed write is fatal for the run: later stages would otherwise
        build on state that was never stored.
        """
        if self.persist is not None:
            try:
                self.persist(self.item.id, fields)
            except Exception as e:
                raise PipelineExecutionError(step_name, "checkpoint write failed", cause=e) from e
        Trace.event("pipeline.checkpoint", {"item_id": self.item.id, "step": step_name, "fields": sorted(fields)})
        return self.with_update(item=self.item.model_copy(update=fields))


# ─────────────────────────────────────────────────────────────────────────────
# Step Protocol
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class Step(Protocol):
    """
    Protocol for pipeline steps.

    - Has a unique name for logging/tracing
    - Receives context, does work, returns updated context
    - Checkpoints its own output
    """

    name: str

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        ...


# ─────────────────────────────────────────────────────────────────────────────
# Pipeline Executor
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Pipeline:
    """
    Executes a sequence of steps, threading context through.

    Stops early when a step defers the item (ctx.halted). Any exception
    other than PipelineViolation / PipelineExecutionError is contained at
    the step boundary.
    """

    name: str
    steps: list[Step]

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        Trace.event("pipeline.run", {
            "pipeline": self.name,
            "item_id": ctx.item.id,
            "steps": [s.name for s in self.steps],
        })

        current_ctx = ctx
        for i, step in enumerate(self.steps):
            if current_ctx.halted:
                Trace.event("pipeline.deferred", {"pipeline": self.name, "item_id": ctx.item.id, "at": step.name})
                break

            Trace.event("pipeline.stage.start", {"step": step.name, "index": i})
            try:
                current_ctx = await step.run(current_ctx)
            except (PipelineViolation, PipelineExecutionError):
                raise
            except Exception as e:
                logger.warning("[Pipeline] %s: stage %s failed, continuing: %s", ctx.item.id, step.name, e)
                Trace.event("pipeline.stage.error", {
                    "step": step.name,
                    "index": i,
                    "error": str(e)[:500],
                    "error_type": type(e).__name__,
                })
                failed = [*current_ctx.get_extra(FAILED_STAGES_KEY, []), step.name]
                current_ctx = current_ctx.set_extra(FAILED_STAGES_KEY, failed)
                continue
            Trace.event("pipeline.stage.end", {"step": step.name, "index": i})

        return current_ctx

    def __repr__(self) -> str:
        step_names = [s.name for s in self.steps]
        return f"Pipeline(name={self.name}, steps={step_names})"
