from __future__ import annotations

from kurral_core.agents.skills.base_skill import BaseSkill, logger
from kurral_core.agents.skills.prompts import build_explainer_instructions, build_explainer_prompt
from kurral_core.schema.annotations import ExplanationAnnotation
from kurral_core.schema.content import Claim, ContentItem, FactCheck, Verdict
from kurral_core.schema.value import DiscussionQuality, ValueVector


def fallback_explanation(
    value: ValueVector,
    claims: list[Claim],
    fact_checks: list[FactCheck],
    discussion: DiscussionQuality | None = None,
) -> str:
    verified = sum(1 for fc in fact_checks if fc.verdict == Verdict.TRUE)
    parts = [
        f"Epistemic {value.epistemic:.2f} driven by {verified} verified claims.",
        f"Insight {value.insight:.2f} from {len(claims)} extracted claims.",
    ]
    if discussion:
        parts.append(
            f"Discussion quality {discussion.informativeness:.2f} with civility {discussion.civility:.2f}."
        )
    return " ".join(parts)


class ExplainerSkill(BaseSkill):
    task = "explanation"

    async def run(
        self,
        item: ContentItem,
        value: ValueVector,
        claims: list[Claim],
        fact_checks: list[FactCheck],
        discussion: DiscussionQuality | None = None,
    ) -> str:
        if not self.annotation_available:
            return fallback_explanation(value, claims, fact_checks, discussion)
        try:
            result: ExplanationAnnotation = await self.annotate(
                input=build_explainer_prompt(
                    text=self.prompt_text(item.text),
                    scores=value.dimensions(),
                    claims_count=len(claims),
                    verified_count=sum(1 for fc in fact_checks if fc.verdict == Verdict.TRUE),
                    discussion_summary=discussion.summary if discussion else None,
                ),
                instructions=build_explainer_instructions(),
            )
        except Exception as e:
            logger.warning("[Explainer] %s explanation failed, using template: %s", item.id, e)
            return fallback_explanation(value, claims, fact_checks, discussion)
        return result.explanation or fallback_explanation(value, claims, fact_checks, discussion)
