# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Claim text similarity for reusing verdicts from quoted content."""

from __future__ import annotations

import re
from dataclasses import dataclass

from kurral_core.agents.skills.fact_check import fact_check_id
from kurral_core.schema.content import Claim, FactCheck, fact_checks_by_claim

_PUNCT = re.compile(r"[^\w\s]")


def _tokens(text: str | None) -> set[str]:
    return set(_PUNCT.sub(" ", (text or "").lower()).split())


def text_similarity(a: str | None, b: str | None) -> float:
    """Jaccard similarity over lowercased, punctuation-stripped word sets."""
    left, right = _tokens(a), _tokens(b)
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


@dataclass(frozen=True, slots=True)
class ClaimMatch:
    claim_id: str
    original: Claim
    similarity: float


def match_claims_to_original(
    claims: list[Claim],
    original_claims: list[Claim],
    *,
    threshold: float = 0.7,
) -> dict[str, ClaimMatch]:
    """Best original claim per new claim, kept only at or above `threshold`."""
    matches: dict[str, ClaimMatch] = {}
    for claim in claims:
        best: ClaimMatch | None = None
        for original in original_claims:
            score = text_similarity(claim.text, original.text)
            if score >= threshold and (best is None or score > best.similarity):
                best = ClaimMatch(claim.id, original, score)
        if best is not None:
            matches[claim.id] = best
    return matches


def reuse_fact_checks(
    matches: dict[str, ClaimMatch],
    original_fact_checks: list[FactCheck],
) -> list[FactCheck]:
    """Copy matched originals' verdicts, re-keyed to the new claim ids."""
    by_claim = fact_checks_by_claim(original_fact_checks)
    reused: list[FactCheck] = []
    for claim_id, match in matches.items():
        source = by_claim.get(match.original.id)
        if source is None:
            continue
        reused.append(source.model_copy(update={"id": fact_check_id(claim_id), "claim_id": claim_id}, deep=True))
    return reused
