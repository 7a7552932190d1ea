# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 Kurral Contributors
"""
Schema Module

Pydantic models for stored documents (content items, comments, claims,
fact-checks, value vectors) and for validated annotation results.
"""

from kurral_core.schema.content import (
    Claim,
    ClaimDomain,
    ClaimType,
    Comment,
    ContentItem,
    Evidence,
    FactCheck,
    HIGH_RISK_DOMAINS,
    ModerationStatus,
    PipelineState,
    RiskLevel,
    Verdict,
    fact_checks_by_claim,
)
from kurral_core.schema.value import (
    CommentInsight,
    DiscussionAnalysis,
    DiscussionQuality,
    DiscussionRole,
    ValueVector,
)

__all__ = [
    "Claim",
    "ClaimDomain",
    "ClaimType",
    "Comment",
    "CommentInsight",
    "ContentItem",
    "DiscussionAnalysis",
    "DiscussionQuality",
    "DiscussionRole",
    "Evidence",
    "FactCheck",
    "HIGH_RISK_DOMAINS",
    "ModerationStatus",
    "PipelineState",
    "RiskLevel",
    "ValueVector",
    "Verdict",
    "fact_checks_by_claim",
]
