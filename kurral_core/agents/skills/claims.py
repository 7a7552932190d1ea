from __future__ import annotations

import re

from kurral_core.agents.skills.base_skill import BaseSkill, logger
from kurral_core.agents.skills.prompts import build_claims_instructions, build_claims_prompt
from kurral_core.schema.annotations import ClaimDraft, ClaimListAnnotation
from kurral_core.schema.content import Claim, ClaimDomain, ClaimType, RiskLevel
from kurral_core.utils.trace import Trace

MAX_CLAIMS = 5
MAX_HEURISTIC_CLAIMS = 3
MIN_SENTENCE_CHARS = 8

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

# Keyword cues per domain; first match wins, in this order.
_DOMAIN_PATTERNS: tuple[tuple[ClaimDomain, re.Pattern[str]], ...] = (
    (ClaimDomain.HEALTH, re.compile(
        r"\b(health|medical|medicine|vaccin\w*|disease|covid|cancer|virus|doctors?|hospital\w*)", re.IGNORECASE)),
    (ClaimDomain.FINANCE, re.compile(
        r"\b(financ\w*|money|invest\w*|stocks?|markets?|econom\w*|inflation|banks?|crypto\w*|interest rates?)",
        re.IGNORECASE)),
    (ClaimDomain.POLITICS, re.compile(
        r"\b(politic\w*|elections?|votes?|voting|government|president|senate|congress|parliament)",
        re.IGNORECASE)),
    (ClaimDomain.TECHNOLOGY, re.compile(
        r"\b(tech\w*|software|ai|startups?|computers?|smartphones?|internet)\b", re.IGNORECASE)),
    (ClaimDomain.SCIENCE, re.compile(r"\b(scien\w*|research\w*|study|climate|physics|biology)", re.IGNORECASE)),
    (ClaimDomain.SOCIETY, re.compile(r"\b(society|communit\w*|education|culture|schools?)", re.IGNORECASE)),
)

_SENSITIVE_DOMAINS = (ClaimDomain.HEALTH, ClaimDomain.FINANCE, ClaimDomain.POLITICS)


def _slugify(value: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return s[:48]


def detect_domain(text: str) -> ClaimDomain:
    for domain, pattern in _DOMAIN_PATTERNS:
        if pattern.search(text):
            return domain
    return ClaimDomain.GENERAL


def heuristic_claims(content_id: str, text: str | None, *, image_url: str | None = None) -> list[Claim]:
    """Sentence-splitting fallback: up to 3 sentences of at least 8 characters."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split((text or "").strip())]
    sentences = [s for s in sentences if len(s) >= MIN_SENTENCE_CHARS][:MAX_HEURISTIC_CLAIMS]

    claims: list[Claim] = []
    for i, sentence in enumerate(sentences):
        domain = detect_domain(sentence)
        claims.append(Claim(
            id=f"{content_id}-heuristic-{i + 1}",
            text=sentence,
            type=ClaimType.EXPERIENCE if ("I " in sentence or "my " in sentence) else ClaimType.FACT,
            domain=domain,
            risk_level=RiskLevel.MEDIUM if domain in _SENSITIVE_DOMAINS else RiskLevel.LOW,
            confidence=0.35,
        ))

    if not claims and (image_url or "").strip():
        claims.append(Claim(
            id=f"{content_id}-heuristic-image",
            text="Image content requires analysis",
            type=ClaimType.FACT,
            domain=ClaimDomain.GENERAL,
            risk_level=RiskLevel.MEDIUM,
            confidence=0.2,
        ))
    return claims


def claims_from_drafts(content_id: str, drafts: list[ClaimDraft]) -> list[Claim]:
    """Assign stable ids: `<content>-<slug>` or `<content>-claim-<n>`."""
    claims: list[Claim] = []
    seen: set[str] = set()
    for i, draft in enumerate(drafts[:MAX_CLAIMS]):
        slug = _slugify(draft.slug or "")
        claim_id = f"{content_id}-{slug}" if slug else f"{content_id}-claim-{i + 1}"
        if claim_id in seen:
            claim_id = f"{claim_id}-{i + 1}"
        seen.add(claim_id)
        claims.append(Claim(
            id=claim_id,
            text=draft.text,
            type=draft.type,
            domain=draft.domain,
            risk_level=draft.risk_level,
            confidence=draft.confidence,
            evidence=draft.evidence,
        ))
    return claims


class ClaimExtractionSkill(BaseSkill):
    task = "claims"

    async def run(
        self,
        *,
        content_id: str,
        text: str | None,
        image_url: str | None = None,
        topic: str | None = None,
        quoted_text: str | None = None,
    ) -> list[Claim]:
        """
        Extract atomic claims from content text (+ optional image).

        Falls back to sentence-splitting heuristics when the annotation
        service is unavailable, fails, or returns nothing twice.
        """
        if not (text or "").strip() and not (image_url or "").strip():
            return []
        if not self.annotation_available:
            return heuristic_claims(content_id, text, image_url=image_url)

        prompt = build_claims_prompt(
            text=self.prompt_text(text),
            topic=topic,
            quoted_text=self.prompt_text(quoted_text) if quoted_text else None,
        )
        model = self.config.vision_model if image_url else None
        try:
            result: ClaimListAnnotation = await self.annotate(
                input=prompt,
                instructions=build_claims_instructions(),
                model=model,
                image_url=image_url,
            )
            if not result.claims and (text or "").strip():
                logger.info("[Claims] %s: empty extraction, retrying with strict instructions", content_id)
                result = await self.annotate(
                    input=prompt,
                    instructions=build_claims_instructions(strict=True),
                    model=model,
                    image_url=image_url,
                    label="annotation.claims.strict",
                )
        except Exception as e:
            logger.warning("[Claims] %s extraction failed, using heuristic: %s", content_id, e)
            Trace.event("claims.fallback", {"content_id": content_id, "error": str(e)[:200]})
            return heuristic_claims(content_id, text, image_url=image_url)

        claims = claims_from_drafts(content_id, result.claims)
        if not claims:
            return heuristic_claims(content_id, text, image_url=image_url)
        Trace.event("claims.extracted", {"content_id": content_id, "count": len(claims)})
        return claims
