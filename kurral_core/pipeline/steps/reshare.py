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
from typing import Any

from kurral_core.pipeline.contracts import DEFERRED_KEY, INHERITED_KEY, SOURCE_TEXT_KEY
from kurral_core.pipeline.core import PipelineContext
from kurral_core.schema.content import ContentItem, PipelineState
from kurral_core.storage.store import KurralStore
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)


def inherited_fields(original: ContentItem) -> dict[str, Any]:
    """Claims, fact-checks and status copied verbatim from an original."""
    return {
        "claims": [c.model_copy(deep=True) for c in original.claims],
        "fact_checks": [fc.model_copy(deep=True) for fc in original.fact_checks],
        "moderation_status": original.moderation_status,
    }


@dataclass
class ResolveReshareStep:
    """
    Inherit fact-check data for reshares.

    Context Output:
        - claims / fact_checks / status (inherited)
        - extras: inherited, deferred, source_text
    """

    store: KurralStore
    name: str = "resolve_reshare"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        item = ctx.item
        if not isinstance(item, ContentItem) or not item.is_reshare:
            return ctx

        try:
            original = self.store.get_content(item.reshare_of_id)
        except Exception as e:
            # Unreadable original is handled like a missing one.
            logger.warning("[Reshare] %s: failed to load original %s: %s", item.id, item.reshare_of_id, e)
            original = None

        if original is None:
            if item.claims:
                logger.info("[Reshare] %s: original %s missing, keeping inherited data", item.id, item.reshare_of_id)
                return ctx.with_update(status=item.moderation_status).set_extra(INHERITED_KEY, True)
            logger.info("[Reshare] %s: original %s missing, treating as original content", item.id, item.reshare_of_id)
            return ctx

        if original.has_complete_fact_check_data():
            fields = inherited_fields(original)
            ctx = ctx.checkpoint(self.name, **fields)
            logger.info(
                "[Reshare] %s inherited %d claims from %s (status=%s)",
                item.id,
                len(fields["claims"]),
                original.id,
                original.moderation_status.value if original.moderation_status else None,
            )
            return ctx.with_update(
                claims=list(fields["claims"]),
                fact_checks=list(fields["fact_checks"]),
                status=original.moderation_status,
            ).set_extra(INHERITED_KEY, True)

        if original.is_still_processing():
            ctx = ctx.checkpoint(self.name, pipeline_state=PipelineState.PENDING, pipeline_started_at=None)
            logger.info("[Reshare] %s deferred: original %s still processing", item.id, original.id)
            Trace.event("pipeline.deferred", {"item_id": item.id, "original_id": original.id})
            return ctx.set_extra(DEFERRED_KEY, True)

        # Original exists but never finished: judge the reshared text itself.
        logger.info("[Reshare] %s: original %s incomplete, processing reshared text", item.id, original.id)
        return ctx.set_extra(SOURCE_TEXT_KEY, original.text or item.text)
