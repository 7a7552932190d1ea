# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Policy Engine.

Pure function (claims, fact-checks) -> moderation decision. Status only
ever moves up within one evaluation: clean < needs_review < blocked.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kurral_core.schema.content import Claim, FactCheck, ModerationStatus, Verdict, fact_checks_by_claim

NO_CLAIMS_REASON = "No extractable claims"
ALL_VERIFIED_REASON = "All claims verified."


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    status: ModerationStatus
    reasons: tuple[str, ...] = field(default_factory=tuple)
    escalate_to_human: bool = False


def evaluate_policy(
    claims: list[Claim],
    fact_checks: list[FactCheck],
    *,
    confident_false_threshold: float = 0.7,
) -> PolicyDecision:
    if not claims:
        return PolicyDecision(ModerationStatus.CLEAN, (NO_CLAIMS_REASON,))

    by_claim = fact_checks_by_claim(fact_checks)
    status = ModerationStatus.CLEAN
    reasons: list[str] = []
    escalate = False

    for claim in claims:
        fc = by_claim.get(claim.id)

        if fc is None:
            if claim.is_high_risk:
                status = status.upgrade(ModerationStatus.NEEDS_REVIEW)
                reasons.append(f"High-risk claim {claim.id} has no fact-check")
                escalate = True
            continue

        if fc.is_confident_false(confident_false_threshold):
            status = status.upgrade(ModerationStatus.BLOCKED)
            reasons.append(f"Claim {claim.id} rated false ({fc.confidence:.2f})")
        elif fc.verdict == Verdict.MIXED and claim.is_high_risk:
            status = status.upgrade(ModerationStatus.NEEDS_REVIEW)
            reasons.append(f"High-risk claim {claim.id} has mixed evidence")
            escalate = True
        elif fc.verdict == Verdict.UNKNOWN:
            status = status.upgrade(ModerationStatus.NEEDS_REVIEW)
            reasons.append(f"Claim {claim.id} could not be verified")

    if not reasons:
        reasons.append(ALL_VERIFIED_REASON)
    return PolicyDecision(status, tuple(reasons), escalate)
