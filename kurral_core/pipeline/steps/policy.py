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

from kurral_core.pipeline.contracts import INHERITED_KEY, POLICY_DECISION_KEY, SKIP_FACT_CHECK_KEY
from kurral_core.pipeline.core import PipelineContext
from kurral_core.policy.engine import PolicyDecision, evaluate_policy
from kurral_core.schema.content import ModerationStatus

logger = logging.getLogger(__name__)

PRECHECK_CLEAN_REASON = "Pre-check: no fact-check needed"
INHERITED_REASON = "Inherited from original"


@dataclass
class PolicyStep:
    confident_false_threshold: float = 0.7
    name: str = "policy"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        if ctx.get_extra(INHERITED_KEY) and ctx.status is not None:
            decision = PolicyDecision(ctx.status, (INHERITED_REASON,))
            return ctx.set_extra(POLICY_DECISION_KEY, decision)

        if ctx.get_extra(SKIP_FACT_CHECK_KEY):
            decision = PolicyDecision(ModerationStatus.CLEAN, (PRECHECK_CLEAN_REASON,))
        else:
            decision = evaluate_policy(
                ctx.claims,
                ctx.fact_checks,
                confident_false_threshold=self.confident_false_threshold,
            )

        logger.info(
            "[Policy] %s -> %s%s",
            ctx.item.id,
            decision.status.value,
            " (escalate)" if decision.escalate_to_human else "",
        )
        ctx = ctx.checkpoint(self.name, moderation_status=decision.status)
        return ctx.with_update(status=decision.status).set_extra(POLICY_DECISION_KEY, decision)
