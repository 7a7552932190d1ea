# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Fact-check pre-check gate.

Decides whether a post or comment needs claim extraction and fact-checking
at all. Pure opinion/experience/conversation content is short-circuited to
`clean` so expensive verification is only spent on factual content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from kurral_core.agents.skills.base_skill import BaseSkill, logger
from kurral_core.agents.skills.prompts import build_precheck_instructions, build_precheck_prompt
from kurral_core.schema.annotations import PreCheckAnnotation
from kurral_core.schema.coercion import clamp01
from kurral_core.utils.trace import Trace

HIGH_RISK_TOPICS = (
    "health", "medical", "finance", "money", "invest", "stocks", "economy", "politics", "election", "science",
)
HIGH_RISK_KEYWORDS = (
    "vaccine", "treatment", "cancer", "covid", "virus", "pandemic", "inflation", "recession",
    "investment", "returns", "guaranteed", "election", "vote", "fraud", "war", "nuclear",
)
STAT_INDICATORS = (
    re.compile(r"\d+%"),
    re.compile(r"\d+ out of \d+"),
    re.compile(r"\d{4}"),
    re.compile(r"\b(million|billion|trillion)\b", re.IGNORECASE),
)
AUTHORITY_INDICATORS = (
    re.compile(r"according to", re.IGNORECASE),
    re.compile(r"study shows", re.IGNORECASE),
    re.compile(r"research indicates", re.IGNORECASE),
    re.compile(r"experts? (say|claim)", re.IGNORECASE),
    re.compile(r"scientists", re.IGNORECASE),
    re.compile(r"doctors", re.IGNORECASE),
)
OPINION_INDICATORS = (
    re.compile(r"^i think", re.IGNORECASE),
    re.compile(r"^i believe", re.IGNORECASE),
    re.compile(r"^in my opinion", re.IGNORECASE),
    re.compile(r"^i feel", re.IGNORECASE),
    re.compile(r"just my opinion", re.IGNORECASE),
    re.compile(r"personally", re.IGNORECASE),
)

FACT_CHECK_RISK_THRESHOLD = 0.35
OPINION_RISK_CEILING = 0.3


@dataclass(frozen=True, slots=True)
class PreCheckResult:
    needs_fact_check: bool
    confidence: float
    reasoning: str
    content_type: str
    risk_score: float
    signals: tuple[str, ...] = ()
    source: str = "heuristic"


def _matches_any(text: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(p.search(text) for p in patterns)


def _contains_keyword(text: str, keywords: Iterable[str]) -> bool:
    return any(kw and kw in text for kw in keywords)


def calculate_content_risk_score(
    text: str | None,
    *,
    topic: str | None = None,
    entities: Iterable[str] = (),
    image_url: str | None = None,
) -> float:
    raw = text or ""
    lowered = raw.lower()
    topic_l = (topic or "").lower()

    score = 0.1
    if _contains_keyword(topic_l, HIGH_RISK_TOPICS):
        score += 0.35
    if any(_contains_keyword(e.lower(), HIGH_RISK_TOPICS) for e in entities):
        score += 0.15
    if _matches_any(lowered, STAT_INDICATORS):
        score += 0.2
    if _matches_any(lowered, AUTHORITY_INDICATORS):
        score += 0.15
    if _contains_keyword(lowered, HIGH_RISK_KEYWORDS):
        score += 0.2

    if len(raw) > 200:
        score += 0.1
    if len(raw) < 40:
        score -= 0.05
    if (image_url or "").strip():
        score += 0.05

    return clamp01(score)


def detect_signals(text: str | None, *, topic: str | None = None, image_url: str | None = None) -> tuple[str, ...]:
    lowered = (text or "").lower()
    signals: list[str] = []
    if _matches_any(lowered, STAT_INDICATORS):
        signals.append("stats_or_numbers")
    if _matches_any(lowered, AUTHORITY_INDICATORS):
        signals.append("authority_cue")
    if _contains_keyword(lowered, HIGH_RISK_KEYWORDS):
        signals.append("high_risk_keywords")
    if _contains_keyword((topic or "").lower(), HIGH_RISK_TOPICS):
        signals.append("high_risk_topic")
    if (image_url or "").strip():
        signals.append("has_image")
    if _matches_any(lowered.strip(), OPINION_INDICATORS):
        signals.append("opinion_marker")
    if len(lowered.split()) >= 25:
        signals.append("long_text")
    return tuple(signals)


def heuristic_precheck(
    text: str | None,
    *,
    topic: str | None = None,
    image_url: str | None = None,
    entities: Iterable[str] = (),
) -> PreCheckResult:
    """Lexical-cue decision used when the annotation service is unavailable."""
    risk = calculate_content_risk_score(text, topic=topic, entities=entities, image_url=image_url)
    signals = detect_signals(text, topic=topic, image_url=image_url)

    if not (text or "").strip() and not (image_url or "").strip():
        return PreCheckResult(False, 0.9, "Heuristic: empty content", "conversation", risk, signals)

    factual = "stats_or_numbers" in signals or "authority_cue" in signals
    if "opinion_marker" in signals and not factual and risk < OPINION_RISK_CEILING:
        return PreCheckResult(False, 0.7, "Heuristic: opinion/experience detected", "opinion", risk, signals)

    if factual:
        return PreCheckResult(True, 0.6, "Heuristic: factual indicators present", "factual", risk, signals)

    needs = risk >= FACT_CHECK_RISK_THRESHOLD
    return PreCheckResult(
        needs,
        0.5,
        f"Heuristic: risk score {risk:.2f}",
        "factual" if needs else "conversation",
        risk,
        signals,
    )


class PreCheckSkill(BaseSkill):
    task = "precheck"

    async def run(
        self,
        text: str | None,
        *,
        topic: str | None = None,
        image_url: str | None = None,
        entities: Iterable[str] = (),
        subject_id: str | None = None,
    ) -> PreCheckResult:
        entities = tuple(entities)
        fallback = heuristic_precheck(text, topic=topic, image_url=image_url, entities=entities)
        logger.info(
            "[PreCheck] %s risk=%.2f signals=%s",
            subject_id or "-",
            fallback.risk_score,
            ",".join(fallback.signals) or "none",
        )
        if not (text or "").strip() and not (image_url or "").strip():
            return fallback
        if not self.annotation_available:
            return fallback

        try:
            result: PreCheckAnnotation = await self.annotate(
                input=build_precheck_prompt(text=self.prompt_text(text), topic=topic, has_image=bool(image_url)),
                instructions=build_precheck_instructions(),
                model=self.config.vision_model if image_url else None,
                image_url=image_url,
            )
        except Exception as e:
            logger.warning("[PreCheck] %s annotation failed, using heuristic: %s", subject_id or "-", e)
            Trace.event("precheck.fallback", {"subject_id": subject_id, "error": str(e)[:200]})
            return fallback

        return PreCheckResult(
            needs_fact_check=result.needs_fact_check,
            confidence=result.confidence,
            reasoning=result.reasoning or "annotation",
            content_type=result.content_type,
            risk_score=fallback.risk_score,
            signals=fallback.signals,
            source="annotation",
        )
