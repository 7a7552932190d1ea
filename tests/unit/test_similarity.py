# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Unit tests for claim text similarity and verdict reuse."""

from kurral_core.pipeline.similarity import match_claims_to_original, reuse_fact_checks, text_similarity
from kurral_core.schema.content import Claim, FactCheck, Verdict


def test_identical_text_is_one():
    assert text_similarity("The market fell 5% today", "The market fell 5% today") == 1.0


def test_case_and_punctuation_are_ignored():
    assert text_similarity("The market FELL, today!", "the market fell today") == 1.0


def test_disjoint_words_are_zero():
    assert text_similarity("apples and pears", "rockets to mars") == 0.0


def test_empty_text_is_zero():
    assert text_similarity("", "") == 0.0
    assert text_similarity(None, "something") == 0.0


def test_match_at_threshold_is_kept():
    original = Claim(id="orig-1", text="one two three four five six seven eight nine ten")
    new = Claim(id="new-1", text="one two three four five six seven")

    matches = match_claims_to_original([new], [original], threshold=0.7)

    assert "new-1" in matches
    assert matches["new-1"].similarity == 0.7


def test_match_below_threshold_is_dropped():
    original = Claim(id="orig-1", text="one two three four five six seven eight nine ten")
    new = Claim(id="new-1", text="one two three four five six")

    assert match_claims_to_original([new], [original], threshold=0.7) == {}


def test_best_original_wins():
    originals = [
        Claim(id="orig-1", text="inflation rose to 9 percent last year in the uk"),
        Claim(id="orig-2", text="inflation rose to 9 percent last year"),
    ]
    new = Claim(id="new-1", text="Inflation rose to 9 percent last year")

    matches = match_claims_to_original([new], originals)

    assert matches["new-1"].original.id == "orig-2"


def test_reused_fact_checks_are_rekeyed():
    original = Claim(id="orig-1", text="The stock market dropped 5% today")
    new = Claim(id="quote-1-claim-1", text="the stock market dropped 5% today")
    source = FactCheck(id="orig-1-fact-check", claim_id="orig-1", verdict=Verdict.TRUE, confidence=0.9)

    reused = reuse_fact_checks(match_claims_to_original([new], [original]), [source])

    assert len(reused) == 1
    assert reused[0].claim_id == "quote-1-claim-1"
    assert reused[0].id == "quote-1-claim-1-fact-check"
    assert reused[0].verdict == Verdict.TRUE
    assert source.claim_id == "orig-1"


def test_match_without_source_verdict_reuses_nothing():
    original = Claim(id="orig-1", text="same words here")
    new = Claim(id="new-1", text="same words here")

    assert reuse_fact_checks(match_claims_to_original([new], [original]), []) == []
