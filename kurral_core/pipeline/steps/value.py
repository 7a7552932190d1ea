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

from kurral_core.agents.skills.explainer import ExplainerSkill
from kurral_core.agents.skills.value_scoring import ValueScoringSkill
from kurral_core.pipeline.contracts import INHERITED_KEY
from kurral_core.pipeline.core import PipelineContext
from kurral_core.schema.content import ContentItem

logger = logging.getLogger(__name__)


@dataclass
class ValueScoringStep:
    """
    Score the item's value and explain it.

    Inherited reshares are not scored: the value belongs to the original.

    Context Output:
        - value, explanation
    """

    skill: ValueScoringSkill
    explainer: ExplainerSkill | None = None
    name: str = "value_scoring"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        item = ctx.item
        if not isinstance(item, ContentItem) or ctx.get_extra(INHERITED_KEY):
            return ctx

        discussion = ctx.discussion.thread_quality if ctx.discussion else item.discussion_quality
        value = await self.skill.run(item, ctx.claims, ctx.fact_checks, discussion)

        explanation = None
        if self.explainer is not None:
            try:
                explanation = await self.explainer.run(item, value, ctx.claims, ctx.fact_checks, discussion)
            except Exception as e:
                logger.warning("[Value] %s: explanation failed: %s", item.id, e)

        logger.info("[Value] %s total=%.3f confidence=%.2f", item.id, value.total, value.confidence)
        fields = {"value_score": value}
        if explanation:
            fields["value_explanation"] = explanation
        ctx = ctx.checkpoint(self.name, **fields)
        return ctx.with_update(value=value, explanation=explanation)
