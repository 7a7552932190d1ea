# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging
from dataclasses import dataclass

from kurral_core.agents.skills.fact_check import FactCheckSkill
from kurral_core.pipeline.contracts import INHERITED_KEY, SKIP_FACT_CHECK_KEY, SOURCE_TEXT_KEY
from kurral_core.pipeline.core import PipelineContext

logger = logging.getLogger(__name__)


@dataclass
class FactCheckStep:
    """Fact-check every claim that has no verdict yet."""

    skill: FactCheckSkill
    name: str = "fact_check"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        if ctx.get_extra(INHERITED_KEY) or ctx.get_extra(SKIP_FACT_CHECK_KEY):
            return ctx
        if not ctx.claims:
            return ctx

        checked = {fc.claim_id for fc in ctx.fact_checks}
        pending = [c for c in ctx.claims if c.id not in checked]
        if not pending:
            logger.debug("[FactCheck] %s: all %d claims already checked", ctx.item.id, len(ctx.claims))
            return ctx

        results = await self.skill.check_claims(
            pending,
            context_text=ctx.get_extra(SOURCE_TEXT_KEY) or ctx.item.text,
            content_id=ctx.item.id,
        )
        fact_checks = [*ctx.fact_checks, *results]
        ctx = ctx.checkpoint(self.name, fact_checks=fact_checks)
        return ctx.with_update(fact_checks=fact_checks)
