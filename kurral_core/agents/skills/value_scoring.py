# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Value Scorer.

Combines claims, verdicts and discussion signal into a five-dimension
ValueVector. Dimension weights depend on the dominant claim domain:

| Domain                          | epistemic | insight | practical | relational | effort |
|---------------------------------|-----------|---------|-----------|------------|--------|
| health, politics                | 0.35      | 0.25    | 0.20      | 0.10       | 0.10   |
| technology, startups, ai        | 0.25      | 0.35    | 0.20      | 0.10       | 0.10   |
| productivity, design            | 0.20      | 0.25    | 0.35      | 0.10       | 0.10   |
| everything else (default)       | 0.30      | 0.25    | 0.20      | 0.15       | 0.10   |
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping

from kurral_core.agents.skills.base_skill import BaseSkill, logger
from kurral_core.agents.skills.prompts import build_value_instructions, build_value_prompt
from kurral_core.schema.annotations import ValueAnnotation
from kurral_core.schema.coercion import clamp01
from kurral_core.schema.content import Claim, ClaimDomain, ContentItem, FactCheck, Verdict
from kurral_core.schema.value import VALUE_DIMENSIONS, DiscussionQuality, ValueVector
from kurral_core.utils.runtime import utcnow
from kurral_core.utils.trace import Trace

WeightProfile = Mapping[str, float]

EPISTEMIC_FIRST: WeightProfile = {
    "epistemic": 0.35, "insight": 0.25, "practical": 0.2, "relational": 0.1, "effort": 0.1,
}
INSIGHT_FIRST: WeightProfile = {
    "epistemic": 0.25, "insight": 0.35, "practical": 0.2, "relational": 0.1, "effort": 0.1,
}
PRACTICAL_FIRST: WeightProfile = {
    "epistemic": 0.2, "insight": 0.25, "practical": 0.35, "relational": 0.1, "effort": 0.1,
}
DEFAULT_WEIGHTS: WeightProfile = {
    "epistemic": 0.3, "insight": 0.25, "practical": 0.2, "relational": 0.15, "effort": 0.1,
}

_PROFILE_BY_DOMAIN: dict[str, WeightProfile] = {
    "health": EPISTEMIC_FIRST,
    "politics": EPISTEMIC_FIRST,
    "technology": INSIGHT_FIRST,
    "startups": INSIGHT_FIRST,
    "ai": INSIGHT_FIRST,
    "productivity": PRACTICAL_FIRST,
    "design": PRACTICAL_FIRST,
}

UNVERIFIED_EPISTEMIC_CAP = 0.35
MAX_FALSE_PENALTY = 0.8
PENALTY_PER_FALSE = 0.25


def weights_for_domain(domain: str | None) -> WeightProfile:
    return _PROFILE_BY_DOMAIN.get((domain or "").strip().lower(), DEFAULT_WEIGHTS)


def dominant_domain(claims: Iterable[Claim], topic: str | None = None) -> str:
    """
    Most frequent non-general claim domain, tie-broken toward higher risk.

    Falls back to the item topic, then "general".
    """
    counts: Counter[ClaimDomain] = Counter()
    max_risk: dict[ClaimDomain, float] = {}
    order: list[ClaimDomain] = []
    for claim in claims:
        if claim.domain == ClaimDomain.GENERAL:
            continue
        if claim.domain not in counts:
            order.append(claim.domain)
        counts[claim.domain] += 1
        max_risk[claim.domain] = max(max_risk.get(claim.domain, 0.0), claim.risk_level.weight)

    if counts:
        best = max(order, key=lambda d: (counts[d], max_risk[d], -order.index(d)))
        return best.value
    return (topic or "").strip().lower() or ClaimDomain.GENERAL.value


def count_confident_false(fact_checks: Iterable[FactCheck], threshold: float = 0.7) -> int:
    return sum(1 for fc in fact_checks if fc.is_confident_false(threshold))


def apply_penalties(
    scores: Mapping[str, float],
    *,
    claims: list[Claim],
    fact_checks: list[FactCheck],
    threshold: float = 0.7,
) -> tuple[dict[str, float], list[str]]:
    """Scale down for confident-false claims; cap epistemic for unverified claims."""
    out = dict(scores)
    notes: list[str] = []

    false_count = count_confident_false(fact_checks, threshold)
    if false_count:
        penalty = min(MAX_FALSE_PENALTY, false_count * PENALTY_PER_FALSE)
        out["epistemic"] = out["epistemic"] * (1 - penalty)
        out["insight"] = out["insight"] * (1 - 0.3 * penalty)
        notes.append(f"{false_count} claim(s) rated false")

    if claims and not fact_checks:
        out["epistemic"] = min(out["epistemic"], UNVERIFIED_EPISTEMIC_CAP)
        notes.append("Claims not yet verified")

    return out, notes


def compute_value_vector(
    raw_scores: Mapping[str, object],
    *,
    claims: list[Claim],
    fact_checks: list[FactCheck],
    topic: str | None = None,
    confidence: float = 0.7,
    drivers: Iterable[str] = (),
    threshold: float = 0.7,
) -> ValueVector:
    # Invalid values are neutral so a single bad field does not crater the score
    scores = {name: clamp01(raw_scores.get(name), default=0.5) for name in VALUE_DIMENSIONS}
    scores, notes = apply_penalties(scores, claims=claims, fact_checks=fact_checks, threshold=threshold)
    scores = {name: clamp01(v, default=0.5) for name, v in scores.items()}

    weights = weights_for_domain(dominant_domain(claims, topic))
    total = clamp01(sum(scores[name] * weights[name] for name in VALUE_DIMENSIONS))

    return ValueVector(
        **scores,
        total=total,
        confidence=confidence,
        drivers=[*drivers, *notes],
        updated_at=utcnow(),
    )


def heuristic_scores(
    item: ContentItem,
    claims: list[Claim],
    fact_checks: list[FactCheck],
    discussion: DiscussionQuality | None,
) -> dict[str, float]:
    verified = [fc.confidence for fc in fact_checks if fc.verdict == Verdict.TRUE]
    return {
        "epistemic": sum(verified) / len(verified) if verified else 0.5,
        "insight": min(0.7, 0.3 + 0.1 * len(claims)),
        "practical": 0.4,
        "relational": discussion.civility if discussion else 0.5,
        "effort": min(1.0, len(item.text or "") / 400),
    }


class ValueScoringSkill(BaseSkill):
    task = "value"

    async def run(
        self,
        item: ContentItem,
        claims: list[Claim],
        fact_checks: list[FactCheck],
        discussion: DiscussionQuality | None = None,
    ) -> ValueVector:
        threshold = self.runtime.scoring.confident_false_threshold
        if not self.annotation_available:
            return self._heuristic(item, claims, fact_checks, discussion)

        verdict_lines = [
            f"{fc.claim_id}: {fc.verdict.value} ({fc.confidence:.2f})" for fc in fact_checks
        ]
        try:
            result: ValueAnnotation = await self.annotate(
                input=build_value_prompt(
                    text=self.prompt_text(item.text),
                    topic=item.topic,
                    claims=[c.text for c in claims],
                    verdicts=verdict_lines,
                    discussion_summary=discussion.summary if discussion else None,
                ),
                instructions=build_value_instructions(),
            )
        except Exception as e:
            logger.warning("[Value] %s scoring failed, using heuristic: %s", item.id, e)
            Trace.event("value.fallback", {"content_id": item.id, "error": str(e)[:200]})
            return self._heuristic(item, claims, fact_checks, discussion)

        vector = compute_value_vector(
            result.scores.model_dump(),
            claims=claims,
            fact_checks=fact_checks,
            topic=item.topic,
            confidence=result.confidence,
            drivers=result.drivers,
            threshold=threshold,
        )
        Trace.event("value.scored", {"content_id": item.id, "total": vector.total})
        return vector

    def _heuristic(
        self,
        item: ContentItem,
        claims: list[Claim],
        fact_checks: list[FactCheck],
        discussion: DiscussionQuality | None,
    ) -> ValueVector:
        return compute_value_vector(
            heuristic_scores(item, claims, fact_checks, discussion),
            claims=claims,
            fact_checks=fact_checks,
            topic=item.topic,
            confidence=0.3,
            drivers=["Heuristic estimate"],
            threshold=self.runtime.scoring.confident_false_threshold,
        )
