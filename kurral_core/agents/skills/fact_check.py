# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Fact Checker.

Resolves a claim to a verdict with scored evidence. Mode cascade:
evidence-grounded (live web search) -> knowledge-only -> fixed fallback.
Once fact-checking was attempted, a claim never ends up without a FactCheck.
"""

from __future__ import annotations

from enum import Enum

from kurral_core.agents.skills.base_skill import BaseSkill, logger
from kurral_core.agents.skills.prompts import build_fact_check_instructions, build_fact_check_prompt
from kurral_core.schema.annotations import FactCheckAnnotation
from kurral_core.schema.content import Claim, Evidence, FactCheck, Verdict
from kurral_core.utils.runtime import utcnow
from kurral_core.utils.trace import Trace
from kurral_core.verification.trusted_sources import score_evidence_url

FALLBACK_CONFIDENCE = 0.25
FALLBACK_CAVEAT = "Automatic fallback: unable to verify claim"
UNGROUNDED_CAVEAT = "Unverified output: no retrieved source URLs support this verdict"
# Confidence ceiling for a verdict that no retrieved source supports.
UNGROUNDED_CONFIDENCE_CAP = 0.7
MIN_EVIDENCE_QUALITY = 0.1


class FactCheckMode(str, Enum):
    EVIDENCE_GROUNDED = "evidence_grounded"
    KNOWLEDGE_ONLY = "knowledge_only"


def fact_check_id(claim_id: str) -> str:
    return f"{claim_id}-fact-check"


def fallback_fact_check(claim: Claim) -> FactCheck:
    return FactCheck(
        id=f"{claim.id}-fallback",
        claim_id=claim.id,
        verdict=Verdict.UNKNOWN,
        confidence=FALLBACK_CONFIDENCE,
        evidence=[],
        caveats=[FALLBACK_CAVEAT],
        checked_at=utcnow(),
    )


def finalize_fact_check(claim: Claim, result: FactCheckAnnotation, mode: FactCheckMode) -> FactCheck:
    """Score evidence, apply mode rules and key the result to the claim."""
    evidence: list[Evidence] = []
    for e in result.evidence:
        if mode == FactCheckMode.EVIDENCE_GROUNDED and not e.url:
            continue
        quality = e.quality if e.quality is not None else score_evidence_url(e.url)
        if quality <= MIN_EVIDENCE_QUALITY:
            continue
        evidence.append(e.model_copy(update={"quality": quality}))

    caveats = list(result.caveats)
    confidence = result.confidence
    if (
        mode == FactCheckMode.EVIDENCE_GROUNDED
        and result.verdict != Verdict.UNKNOWN
        and not any(e.url for e in evidence)
    ):
        caveats.append(UNGROUNDED_CAVEAT)
        confidence = min(confidence, UNGROUNDED_CONFIDENCE_CAP)

    return FactCheck(
        id=fact_check_id(claim.id),
        claim_id=claim.id,
        verdict=result.verdict,
        confidence=confidence,
        evidence=evidence,
        caveats=caveats,
        checked_at=utcnow(),
    )


class FactCheckSkill(BaseSkill):
    task = "fact_check"

    async def run(self, *, claim: Claim, context_text: str | None = None, content_id: str | None = None) -> FactCheck:
        if not self.annotation_available:
            return fallback_fact_check(claim)

        modes = [FactCheckMode.KNOWLEDGE_ONLY]
        if self.runtime.features.fact_check_web_search:
            modes.insert(0, FactCheckMode.EVIDENCE_GROUNDED)

        prompt = build_fact_check_prompt(
            claim_text=claim.text,
            domain=claim.domain.value,
            context=self.prompt_text(context_text),
        )
        for mode in modes:
            grounded = mode == FactCheckMode.EVIDENCE_GROUNDED
            try:
                result: FactCheckAnnotation = await self.annotate(
                    input=prompt,
                    instructions=build_fact_check_instructions(web_search=grounded),
                    model=self.config.fact_check_model,
                    web_search=grounded,
                    label=f"annotation.fact_check.{mode.value}",
                )
            except Exception as e:
                logger.warning("[FactCheck] %s %s mode failed: %s", claim.id, mode.value, e)
                Trace.event("fact_check.mode_failed", {
                    "content_id": content_id,
                    "claim_id": claim.id,
                    "mode": mode.value,
                    "error": str(e)[:200],
                })
                continue
            fact_check = finalize_fact_check(claim, result, mode)
            Trace.event("fact_check.result", {
                "claim_id": claim.id,
                "mode": mode.value,
                "verdict": fact_check.verdict.value,
                "confidence": fact_check.confidence,
                "evidence_count": len(fact_check.evidence),
            })
            return fact_check

        logger.info("[FactCheck] %s: all modes failed, using fallback verdict", claim.id)
        return fallback_fact_check(claim)

    async def check_claims(
        self,
        claims: list[Claim],
        *,
        context_text: str | None = None,
        content_id: str | None = None,
    ) -> list[FactCheck]:
        out: list[FactCheck] = []
        for claim in claims:
            out.append(await self.run(claim=claim, context_text=context_text, content_id=content_id))
        return out
