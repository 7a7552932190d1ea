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

from kurral_core.agents.skills.discussion import DiscussionSkill
from kurral_core.pipeline.contracts import INHERITED_KEY
from kurral_core.pipeline.core import PipelineContext
from kurral_core.schema.content import ContentItem
from kurral_core.storage.store import KurralStore

logger = logging.getLogger(__name__)


@dataclass
class DiscussionStep:
    """Analyze the item's comment thread; an empty thread gets the conservative defaults."""

    skill: DiscussionSkill
    store: KurralStore
    name: str = "discussion"

    async def run(self, ctx: PipelineContext) -> PipelineContext:
        item = ctx.item
        if not isinstance(item, ContentItem) or ctx.get_extra(INHERITED_KEY):
            return ctx

        comments = self.store.list_comments(item.id)
        if not comments:
            logger.debug("[Discussion] %s: no comments, using defaults", item.id)

        analysis = await self.skill.run(item, comments)
        ctx = ctx.checkpoint(self.name, discussion_quality=analysis.thread_quality)
        return ctx.with_update(discussion=analysis)
