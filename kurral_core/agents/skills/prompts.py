# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

JSON_ONLY = "**OUTPUT RULE: Output ONLY valid JSON. No prose. No markdown. Start with {**"


def build_precheck_instructions() -> str:
    return f"""{JSON_ONLY}

You triage social posts for a fact-checking pipeline.
Decide whether the post contains verifiable factual assertions worth checking.
Pure opinions, personal experiences, jokes, greetings and questions do NOT need fact-checking.
Statistics, health/finance/political claims and attributed statements DO.

Return: {{"needs_fact_check": bool, "confidence": 0-1, "reasoning": str,
"content_type": "factual"|"opinion"|"experience"|"conversation"|"mixed"}}"""


def build_precheck_prompt(*, text: str, topic: str | None, has_image: bool) -> str:
    return f"Topic: {topic or 'unknown'}\nHas image: {'yes' if has_image else 'no'}\nPost text:\n{text}"


def build_claims_instructions(*, strict: bool = False) -> str:
    strict_rule = (
        "\nYou MUST return at least one claim if the text contains any statement at all. "
        "An empty list is only acceptable for empty input."
        if strict
        else ""
    )
    return f"""{JSON_ONLY}

Extract atomic, independently verifiable claims from the post (at most 5).
Each claim text must be self-contained and at most 240 characters.
If an image is attached, include claims made by text visible in the image.{strict_rule}

Return: {{"claims": [{{"slug": short-kebab-id, "text": str,
"type": "fact"|"opinion"|"experience",
"domain": "health"|"finance"|"politics"|"technology"|"science"|"society"|"general",
"risk_level": "low"|"medium"|"high", "confidence": 0-1, "evidence": [str]}}]}}"""


def build_claims_prompt(*, text: str, topic: str | None, quoted_text: str | None = None) -> str:
    parts = [f"Topic: {topic or 'unknown'}", f"Post text:\n{text}"]
    if quoted_text:
        parts.append(f"Quoted post (context, extract claims from it too):\n{quoted_text}")
    return "\n\n".join(parts)


def build_fact_check_instructions(*, web_search: bool) -> str:
    if web_search:
        mode_rule = (
            "Use the web search tool. Cite ONLY URLs you actually retrieved in this session. "
            "Never invent or guess URLs; omit evidence you cannot link."
        )
    else:
        mode_rule = "Answer from your own knowledge. Include URLs only if you are certain they exist."
    return f"""{JSON_ONLY}

You are a careful fact-checker. Judge the claim as "true", "false", "mixed" or "unknown".
Use "unknown" when evidence is insufficient. {mode_rule}

Return: {{"verdict": "true"|"false"|"mixed"|"unknown", "confidence": 0-1,
"evidence": [{{"source": str, "url": str, "snippet": str, "quality": 0-1}}], "caveats": [str]}}"""


def build_fact_check_prompt(*, claim_text: str, domain: str, context: str) -> str:
    return f"Claim: {claim_text}\nDomain: {domain}\nPost context: {context}"


def build_discussion_instructions() -> str:
    return f"""{JSON_ONLY}

Assess the quality of a comment thread under a post.
Thread scores (0-1): informativeness, civility, reasoning_depth, cross_perspective, plus a one-sentence summary.
For every comment: role ("question"|"answer"|"evidence"|"opinion"|"moderation"|"other") and a contribution
vector (epistemic, insight, practical, relational, effort, total; each 0-1).

Return: {{"thread_quality": {{...}}, "comment_insights": [{{"comment_id": str, "role": str,
"contribution": {{...}}, "rationale": str}}]}}"""


def build_discussion_prompt(*, post_text: str, comments: list[tuple[str, str]]) -> str:
    lines = [f"Post:\n{post_text}", "", "Comments:"]
    for comment_id, text in comments:
        lines.append(f"[{comment_id}] {text}")
    return "\n".join(lines)


def build_value_instructions() -> str:
    return f"""{JSON_ONLY}

Score the post's contribution value on five independent dimensions (0-1):
epistemic (accuracy, evidence), insight (novelty, depth), practical (actionable usefulness),
relational (constructive tone, community), effort (care and substance).
Consider the fact-check verdicts and the discussion signal provided.

Return: {{"scores": {{"epistemic": n, "insight": n, "practical": n, "relational": n, "effort": n}},
"confidence": 0-1, "drivers": [short strings explaining the main factors]}}"""


def build_value_prompt(
    *,
    text: str,
    topic: str | None,
    claims: list[str],
    verdicts: list[str],
    discussion_summary: str | None,
) -> str:
    claim_lines = "\n".join(f"- {c}" for c in claims) or "- none"
    verdict_lines = "\n".join(f"- {v}" for v in verdicts) or "- none"
    return (
        f"Topic: {topic or 'unknown'}\nPost text:\n{text}\n\n"
        f"Claims:\n{claim_lines}\n\nFact-checks:\n{verdict_lines}\n\n"
        f"Discussion summary: {discussion_summary or 'No discussion yet'}"
    )


def build_explainer_instructions() -> str:
    return f"""{JSON_ONLY}

Explain to the author, in two or three plain sentences, why the post received its value scores.
Mention the strongest and weakest dimension. No scores beyond two decimals.

Return: {{"explanation": str}}"""


def build_explainer_prompt(
    *,
    text: str,
    scores: dict[str, float],
    claims_count: int,
    verified_count: int,
    discussion_summary: str | None,
) -> str:
    score_str = ", ".join(f"{k}={v:.2f}" for k, v in scores.items())
    return (
        f"Post text:\n{text}\n\nScores: {score_str}\n"
        f"Claims: {claims_count} extracted, {verified_count} verified true\n"
        f"Discussion summary: {discussion_summary or 'No discussion yet'}"
    )
