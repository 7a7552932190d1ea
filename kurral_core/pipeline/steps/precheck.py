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

from kurral_core.agents.skills.precheck import PreCheckSkill
from kurral_core.pipeline.contracts import INHERITED_KEY, PRECHECK_KEY, SKIP_FACT_CHECK_KEY, SOURCE_TEXT_KEY
from kurral_core.pipeline.core import PipelineContext

logger = logging.getLogger(__name__)


@dataclass
class PreCheckStep:
    """Gate: decide whether the item needs fact-checking at all."""

    skill: PreCheckSkill
    name: str = "precheck"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        if ctx.get_extra(INHERITED_KEY):
            return ctx
        if ctx.claims:
            # Resumed run: the gate already passed before claims were checkpointed.
            return ctx

        item = ctx.item
        result = await self.skill.run(
            ctx.get_extra(SOURCE_TEXT_KEY) or item.text,
            topic=getattr(item, "topic", None),
            image_url=item.image_url,
            subject_id=item.id,
        )
        ctx = ctx.set_extra(PRECHECK_KEY, result)
        if not result.needs_fact_check:
            logger.info(
                "[PreCheck] %s: no fact-check needed (%s, risk=%.2f)",
                item.id,
                result.content_type,
                result.risk_score,
            )
            return ctx.with_update(claims=[], fact_checks=[]).set_extra(SKIP_FACT_CHECK_KEY, True)
        return ctx
