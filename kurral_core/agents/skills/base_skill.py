from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from kurral_core.agents.llm_client import AnnotationClient
from kurral_core.config import KurralConfig
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.llm.retry import RetryPolicy, Sleep, with_retry
from kurral_core.schema.annotations import AnnotationKind, parse_annotation

logger = logging.getLogger(__name__)

_INJECTION_PATTERNS = (
    re.compile(r"ignore (all )?(previous|prior|above) instructions", re.IGNORECASE),
    re.compile(r"disregard (all )?(previous|prior|above) instructions", re.IGNORECASE),
    re.compile(r"^\s*(system|assistant|developer)\s*:", re.IGNORECASE | re.MULTILINE),
    re.compile(r"</?(system|instructions)>", re.IGNORECASE),
)


def sanitize_for_prompt(text: str | None, *, max_chars: int = 2000) -> str:
    """Strip role-injection markers and code fences, collapse whitespace, cap length."""
    s = (text or "").replace("```", " ")
    for pattern in _INJECTION_PATTERNS:
        s = pattern.sub(" ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s[:max_chars]


class BaseSkill:
    task: AnnotationKind

    def __init__(
        self,
        config: KurralConfig,
        llm_client: AnnotationClient | None,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.runtime = config.resolved_runtime()
        self.llm_client = llm_client
        self._sleep = sleep
        self.retry_policy = RetryPolicy.from_runtime(
            self.runtime.retry,
            attempt_timeout_sec=self.runtime.annotation.timeout_sec,
        )

    @property
    def annotation_available(self) -> bool:
        return self.llm_client is not None and self.llm_client.available

    def prompt_text(self, text: str | None) -> str:
        return sanitize_for_prompt(text, max_chars=self.runtime.annotation.max_prompt_chars)

    async def annotate(
        self,
        *,
        input: str,  # noqa: A002
        instructions: str,
        model: str | None = None,
        image_url: str | None = None,
        web_search: bool = False,
        label: str | None = None,
    ) -> Any:
        """One validated annotation result, with retry on transient failures."""
        client = self.llm_client
        if client is None:
            raise LLMCallError(
                "Annotation service is not configured",
                kind=LLMFailureKind.UNAVAILABLE,
                task=self.task,
            )
        if self.runtime.debug.log_prompts:
            logger.debug("[%s] prompt: %s", self.task, input[:500])

        async def _call() -> Any:
            return await client.call_json(
                task=self.task,
                model=model or self.config.openai_model,
                input=input,
                instructions=instructions,
                image_url=image_url,
                web_search=web_search,
                timeout=self.runtime.annotation.timeout_sec,
                max_output_tokens=self.runtime.annotation.max_output_tokens,
            )

        raw = await with_retry(
            _call,
            policy=self.retry_policy,
            label=label or f"annotation.{self.task}",
            sleep=self._sleep,
        )
        return parse_annotation(self.task, raw)
