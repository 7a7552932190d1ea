# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import pytest

from kurral_core.agents.skills.fact_check import (
    FALLBACK_CAVEAT,
    UNGROUNDED_CAVEAT,
    FactCheckMode,
    FactCheckSkill,
    fallback_fact_check,
    finalize_fact_check,
)
from kurral_core.config import KurralConfig
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.runtime_config import KurralFeatureFlags, KurralRuntimeConfig
from kurral_core.schema.annotations import FactCheckAnnotation
from kurral_core.schema.content import Claim, Verdict
from kurral_core.verification.trusted_sources import score_evidence_url

CLAIM = Claim(id="p1-rates", text="Rates rose in May", domain="finance")


@pytest.mark.parametrize(
    "url,quality",
    [
        ("https://www.reuters.com/markets/x", 0.95),
        ("https://data.cdc.gov/report", 0.95),
        ("https://stats.example.gov/page", 0.85),
        ("https://cs.example.edu/paper", 0.85),
        ("https://wikipedia.org/wiki/Rates", 0.7),
        ("https://old.reddit.com/r/finance", 0.0),
        ("https://someblog.net/post", 0.5),
        ("ftp://files.example.com", 0.4),
        (None, 0.4),
    ],
)
def test_score_evidence_url(url, quality):
    assert score_evidence_url(url) == quality


class TestFinalize:
    def test_grounded_drops_evidence_without_url(self):
        result = FactCheckAnnotation(verdict="true", confidence=0.9, evidence=[
            {"source": "Reuters", "url": "https://www.reuters.com/a", "snippet": "x"},
            {"source": "Memory", "snippet": "I recall"},
        ])
        fc = finalize_fact_check(CLAIM, result, FactCheckMode.EVIDENCE_GROUNDED)

        assert fc.id == "p1-rates-fact-check"
        assert fc.claim_id == "p1-rates"
        assert [e.source for e in fc.evidence] == ["Reuters"]
        assert fc.evidence[0].quality == 0.95
        assert fc.confidence == pytest.approx(0.9)
        assert UNGROUNDED_CAVEAT not in fc.caveats

    def test_grounded_without_urls_is_capped(self):
        result = FactCheckAnnotation(verdict="false", confidence=0.95, evidence=[{"source": "Memory"}])
        fc = finalize_fact_check(CLAIM, result, FactCheckMode.EVIDENCE_GROUNDED)

        assert fc.evidence == []
        assert fc.confidence == pytest.approx(0.7)
        assert UNGROUNDED_CAVEAT in fc.caveats
        assert not fc.is_confident_false()

    def test_unknown_verdict_is_not_capped(self):
        result = FactCheckAnnotation(verdict="unknown", confidence=0.8)
        fc = finalize_fact_check(CLAIM, result, FactCheckMode.EVIDENCE_GROUNDED)
        assert fc.confidence == pytest.approx(0.8)
        assert fc.caveats == []

    def test_knowledge_only_keeps_unlinked_evidence(self):
        result = FactCheckAnnotation(verdict="true", confidence=0.9, evidence=[
            {"source": "Textbook", "snippet": "Known fact"},
            {"source": "Forum", "url": "https://reddit.com/r/x"},
        ])
        fc = finalize_fact_check(CLAIM, result, FactCheckMode.KNOWLEDGE_ONLY)

        assert [e.source for e in fc.evidence] == ["Textbook"]
        assert fc.evidence[0].quality == 0.4
        assert fc.confidence == pytest.approx(0.9)

    def test_explicit_quality_wins(self):
        result = FactCheckAnnotation(verdict="true", confidence=0.9, evidence=[
            {"source": "Blog", "url": "https://someblog.net/a", "quality": 0.8},
        ])
        fc = finalize_fact_check(CLAIM, result, FactCheckMode.EVIDENCE_GROUNDED)
        assert fc.evidence[0].quality == pytest.approx(0.8)

    def test_fallback(self):
        fc = fallback_fact_check(CLAIM)
        assert fc.id == "p1-rates-fallback"
        assert fc.verdict == Verdict.UNKNOWN
        assert fc.confidence == pytest.approx(0.25)
        assert fc.caveats == [FALLBACK_CAVEAT]
        assert fc.checked_at is not None


class TestFactCheckSkill:
    @pytest.mark.asyncio
    async def test_offline_returns_fallback(self, offline_config):
        fc = await FactCheckSkill(offline_config, None).run(claim=CLAIM)
        assert fc.id == "p1-rates-fallback"

    @pytest.mark.asyncio
    async def test_grounded_mode_first(self, config, annotation_factory, sleep):
        client = annotation_factory({"fact_check": {
            "verdict": "true", "confidence": 0.85,
            "evidence": [{"source": "AP", "url": "https://apnews.com/a"}],
        }})
        fc = await FactCheckSkill(config, client, sleep=sleep).run(claim=CLAIM, context_text="post")

        assert fc.verdict == Verdict.TRUE
        call = client.calls[0]
        assert call["web_search"] is True
        assert call["model"] == config.fact_check_model

    @pytest.mark.asyncio
    async def test_cascades_to_knowledge_only(self, config, annotation_factory, sleep):
        client = annotation_factory({"fact_check": [
            LLMCallError("bad json", kind=LLMFailureKind.INVALID_JSON),
            {"verdict": "mixed", "confidence": 0.6},
        ]})
        fc = await FactCheckSkill(config, client, sleep=sleep).run(claim=CLAIM)

        assert fc.verdict == Verdict.MIXED
        assert [c["web_search"] for c in client.calls] == [True, False]

    @pytest.mark.asyncio
    async def test_all_modes_failing_falls_back(self, config, annotation_factory, sleep):
        client = annotation_factory({})
        fc = await FactCheckSkill(config, client, sleep=sleep).run(claim=CLAIM)
        assert fc.id == "p1-rates-fallback"
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_web_search_disabled(self, runtime, annotation_factory, sleep):
        runtime = KurralRuntimeConfig(
            retry=runtime.retry,
            features=KurralFeatureFlags(trace_enabled=False, fact_check_web_search=False),
        )
        config = KurralConfig(openai_api_key="sk-test-key", runtime=runtime)
        client = annotation_factory({"fact_check": {"verdict": "true", "confidence": 0.9}})

        fc = await FactCheckSkill(config, client, sleep=sleep).run(claim=CLAIM)

        assert [c["web_search"] for c in client.calls] == [False]
        assert fc.confidence == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_check_claims_one_per_claim(self, offline_config):
        other = Claim(id="p1-other", text="Other claim")
        results = await FactCheckSkill(offline_config, None).check_claims([CLAIM, other])
        assert [fc.claim_id for fc in results] == ["p1-rates", "p1-other"]
