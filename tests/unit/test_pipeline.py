# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Unit tests for the pipeline executor and context checkpoints."""

from dataclasses import dataclass, field

import pytest

from kurral_core.pipeline.contracts import DEFERRED_KEY, FAILED_STAGES_KEY
from kurral_core.pipeline.core import Pipeline, PipelineContext
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation
from kurral_core.schema.content import ContentItem, ModerationStatus


@dataclass
class RecordingStep:
    name: str
    seen: list = field(default_factory=list)

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        self.seen.append(self.name)
        return ctx


@dataclass
class ExplodingStep:
    name: str = "exploding"
    error: Exception = field(default_factory=lambda: ValueError("boom"))

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        raise self.error


@dataclass
class DeferringStep:
    name: str = "defer"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        return ctx.set_extra(DEFERRED_KEY, True)


@pytest.fixture
def item():
    return ContentItem(id="p1", author_id="u1", text="hello")


class TestPipelineContext:
    def test_for_item_requires_id(self):
        with pytest.raises(PipelineViolation):
            PipelineContext.for_item(ContentItem(id="", author_id="u1"))

    def test_checkpoint_persists_and_mirrors(self, item):
        writes = []
        ctx = PipelineContext.for_item(item, persist=lambda cid, fields: writes.append((cid, fields)))

        ctx = ctx.checkpoint("policy", moderation_status=ModerationStatus.CLEAN)

        assert writes == [("p1", {"moderation_status": ModerationStatus.CLEAN})]
        assert ctx.item.moderation_status == ModerationStatus.CLEAN
        assert item.moderation_status is None

    def test_checkpoint_failure_is_fatal(self, item):
        def broken(_cid, _fields):
            raise RuntimeError("store down")

        ctx = PipelineContext.for_item(item, persist=broken)
        with pytest.raises(PipelineExecutionError) as exc_info:
            ctx.checkpoint("policy", moderation_status=ModerationStatus.CLEAN)
        assert exc_info.value.step_name == "policy"

    def test_extras_are_copied_on_write(self, item):
        ctx = PipelineContext.for_item(item)
        updated = ctx.set_extra("k", 1)
        assert ctx.get_extra("k") is None
        assert updated.get_extra("k") == 1


class TestPipeline:
    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, item):
        seen: list = []
        pipeline = Pipeline("test", [RecordingStep("a", seen), RecordingStep("b", seen)])

        await pipeline.run(PipelineContext.for_item(item))

        assert seen == ["a", "b"]

    @pytest.mark.asyncio
    async def test_stage_error_is_contained(self, item):
        seen: list = []
        pipeline = Pipeline("test", [ExplodingStep(), RecordingStep("after", seen)])

        ctx = await pipeline.run(PipelineContext.for_item(item))

        assert seen == ["after"]
        assert ctx.get_extra(FAILED_STAGES_KEY) == ["exploding"]

    @pytest.mark.asyncio
    async def test_execution_error_propagates(self, item):
        error = PipelineExecutionError("x", "checkpoint write failed")
        pipeline = Pipeline("test", [ExplodingStep(error=error)])

        with pytest.raises(PipelineExecutionError):
            await pipeline.run(PipelineContext.for_item(item))

    @pytest.mark.asyncio
    async def test_violation_propagates(self, item):
        violation = PipelineViolation("x", "p1", "no author")
        pipeline = Pipeline("test", [ExplodingStep(error=violation)])

        with pytest.raises(PipelineViolation):
            await pipeline.run(PipelineContext.for_item(item))

    @pytest.mark.asyncio
    async def test_deferral_halts_later_steps(self, item):
        seen: list = []
        pipeline = Pipeline("test", [DeferringStep(), RecordingStep("after", seen)])

        ctx = await pipeline.run(PipelineContext.for_item(item))

        assert ctx.halted
        assert seen == []


class TestErrors:
    def test_violation_message_names_subject(self):
        violation = PipelineViolation("load", "p1", "content item has no author")
        assert str(violation) == "p1: content item has no author (at 'load')"
        assert violation.to_trace_dict()["subject_id"] == "p1"

    def test_execution_error_keeps_cause(self):
        cause = RuntimeError("store down")
        error = PipelineExecutionError("policy", "checkpoint write failed", cause=cause)
        assert error.cause is cause
        assert "RuntimeError: store down" in str(error)
        assert error.to_trace_dict()["step_name"] == "policy"
