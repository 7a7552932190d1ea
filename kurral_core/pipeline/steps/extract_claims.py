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

from kurral_core.agents.skills.claims import ClaimExtractionSkill
from kurral_core.pipeline.contracts import (
    INHERITED_KEY,
    REUSED_FACT_CHECKS_KEY,
    SKIP_FACT_CHECK_KEY,
    SOURCE_TEXT_KEY,
)
from kurral_core.pipeline.core import PipelineContext, Subject
from kurral_core.pipeline.similarity import match_claims_to_original, reuse_fact_checks
from kurral_core.schema.content import ContentItem
from kurral_core.storage.store import KurralStore
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)


@dataclass
class ExtractClaimsStep:
    """
    Extract claims unless inheritance, the pre-check gate or a previous
    checkpoint already settled them.

    Quotes of fully checked items extract from the new text only and reuse
    verdicts of near-identical quoted claims.
    """

    skill: ClaimExtractionSkill
    store: KurralStore | None = None
    similarity_threshold: float = 0.7
    name: str = "extract_claims"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        if ctx.get_extra(INHERITED_KEY) or ctx.get_extra(SKIP_FACT_CHECK_KEY):
            return ctx
        if ctx.claims:
            return ctx

        item = ctx.item
        text = ctx.get_extra(SOURCE_TEXT_KEY) or item.text
        topic = getattr(item, "topic", None)
        quoted = self._load_quoted(item)

        if quoted is not None and quoted.has_complete_fact_check_data():
            claims = await self.skill.run(content_id=item.id, text=text, image_url=item.image_url, topic=topic)
            matches = match_claims_to_original(claims, quoted.claims, threshold=self.similarity_threshold)
            reused = reuse_fact_checks(matches, quoted.fact_checks)
            logger.info(
                "[Claims] %s: quote of %s, reusing %d of %d verdicts",
                item.id,
                quoted.id,
                len(reused),
                len(claims),
            )
            Trace.event("claims.quote_match", {
                "item_id": item.id,
                "quoted_id": quoted.id,
                "claims": len(claims),
                "matched": {cid: round(m.similarity, 3) for cid, m in matches.items()},
            })
            if not claims:
                return ctx
            fields = {"claims": claims}
            if reused:
                fields["fact_checks"] = reused
            ctx = ctx.checkpoint(self.name, **fields)
            return ctx.with_update(claims=claims, fact_checks=reused).set_extra(REUSED_FACT_CHECKS_KEY, len(reused))

        claims = await self.skill.run(
            content_id=item.id,
            text=text,
            image_url=item.image_url,
            topic=topic,
            quoted_text=quoted.text if quoted is not None else None,
        )
        if not claims:
            return ctx
        ctx = ctx.checkpoint(self.name, claims=claims)
        return ctx.with_update(claims=claims)

    def _load_quoted(self, item: Subject) -> ContentItem | None:
        quote_of = getattr(item, "quote_of_id", None)
        if not quote_of or self.store is None:
            return None
        try:
            quoted = self.store.get_content(quote_of)
        except Exception as e:
            logger.warning("[Claims] %s: failed to load quoted %s: %s", item.id, quote_of, e)
            return None
        if quoted is None:
            logger.info("[Claims] %s: quoted item %s not found, extracting from own text", item.id, quote_of)
        return quoted
