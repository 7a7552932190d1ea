# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import pytest

from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.schema.annotations import (
    ClaimListAnnotation,
    DiscussionAnnotation,
    FactCheckAnnotation,
    PreCheckAnnotation,
    ValueAnnotation,
    parse_annotation,
)
from kurral_core.schema.content import ClaimDomain, ClaimType, RiskLevel, Verdict
from kurral_core.schema.value import DiscussionRole


def test_precheck_aliases_and_string_bool():
    result = parse_annotation("precheck", {"needsFactCheck": "no", "confidence": 3, "contentType": "opinion"})
    assert isinstance(result, PreCheckAnnotation)
    assert result.needs_fact_check is False
    assert result.confidence == 1.0
    assert result.content_type == "opinion"


def test_claims_defaults_and_drops_empty_text():
    result = parse_annotation("claims", {"claims": [
        {"id": "rates-up", "text": "Rates rose", "type": "prediction", "domain": "Finance", "riskLevel": "HIGH",
         "confidence": "0.8"},
        {"text": "   "},
        "not a claim",
    ]})
    assert isinstance(result, ClaimListAnnotation)
    assert len(result.claims) == 1
    draft = result.claims[0]
    assert draft.slug == "rates-up"
    assert draft.type == ClaimType.FACT
    assert draft.domain == ClaimDomain.FINANCE
    assert draft.risk_level == RiskLevel.HIGH
    assert draft.confidence == pytest.approx(0.8)


def test_claims_non_list_is_empty():
    assert parse_annotation("claims", {"claims": "none"}).claims == []


def test_fact_check_clamps_and_accepts_string_evidence():
    result = parse_annotation("fact_check", {
        "verdict": "Mostly true",
        "confidence": -2,
        "evidence": ["See https://www.cdc.gov/report. for details", {"source": "WHO", "url": ""}],
        "caveats": "Limited data",
    })
    assert isinstance(result, FactCheckAnnotation)
    assert result.verdict == Verdict.UNKNOWN
    assert result.confidence == 0.0
    assert result.evidence[0].url == "https://www.cdc.gov/report"
    assert result.evidence[1].url is None
    assert result.caveats == ["Limited data"]


def test_value_flat_and_capitalized_payload():
    result = parse_annotation("value", {"Epistemic": 0.9, "insight": "bad", "practical": 2, "confidence": 0.6})
    assert isinstance(result, ValueAnnotation)
    assert result.scores.epistemic == pytest.approx(0.9)
    assert result.scores.insight == 0.5
    assert result.scores.practical == 1.0
    assert result.scores.relational == 0.5
    assert result.confidence == pytest.approx(0.6)


def test_discussion_insights_keyed_by_comment_id():
    result = parse_annotation("discussion", {
        "threadQuality": {"informativeness": 0.7, "civility": 1.4, "reasoningDepth": 0.5, "summary": "ok"},
        "commentInsights": {
            "c1": {"role": "answer", "contribution": {"epistemic": 0.8, "total": 0.6}},
            "c2": {"role": "shouting"},
            "c3": "junk",
        },
    })
    assert isinstance(result, DiscussionAnnotation)
    quality = result.thread_quality
    assert quality.civility == 1.0
    assert quality.reasoning_depth == pytest.approx(0.5)
    assert quality.cross_perspective == 0.0
    by_id = {i.comment_id: i for i in result.comment_insights}
    assert set(by_id) == {"c1", "c2"}
    assert by_id["c1"].role == DiscussionRole.ANSWER
    assert by_id["c1"].total == pytest.approx(0.6)
    assert by_id["c2"].role == DiscussionRole.OTHER
    assert by_id["c2"].total is None


def test_explanation_is_trimmed():
    assert parse_annotation("explanation", {"explanation": "  Solid.  "}).explanation == "Solid."


@pytest.mark.parametrize("payload", [None, [], "text", 3])
def test_non_object_payload_is_schema_failure(payload):
    with pytest.raises(LLMCallError) as exc_info:
        parse_annotation("value", payload)
    assert exc_info.value.kind == LLMFailureKind.SCHEMA_VALIDATION_FAILED
    assert exc_info.value.task == "value"


def test_missing_required_field_is_schema_failure():
    with pytest.raises(LLMCallError) as exc_info:
        parse_annotation("discussion", {"comment_insights": [{"role": "answer"}]})
    assert exc_info.value.kind == LLMFailureKind.SCHEMA_VALIDATION_FAILED
