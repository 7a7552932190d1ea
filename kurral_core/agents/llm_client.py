# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

"""
Annotation client using the OpenAI Responses API.

This module is the external boundary for every annotation task
(pre-check, claims, fact-check, discussion, value, explanation):
- JSON output with automatic parsing
- Optional image input (vision) and live web search tool
- Exactly one attempt per call; retries belong to `llm.retry.with_retry`
- Every failure surfaces as LLMCallError with a classified kind
- Trace event logging
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    RateLimitError,
)

from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind, classify_llm_failure
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)


def _parse_json_content(content: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        # Try to extract JSON from a markdown code block
        if "```" in content:
            block = content.split("```json")[1] if "```json" in content else content.split("```")[1]
            block = block.split("```")[0]
            try:
                return json.loads(block.strip())
            except json.JSONDecodeError:
                pass
        raise LLMCallError(f"Failed to parse JSON response: {e}", kind=LLMFailureKind.INVALID_JSON) from e


class AnnotationClient:
    """
    Text/vision annotation service client.

    An instance without an API key is "unavailable": callers must check
    `available` and take their heuristic path without calling.

    Example:
        client = AnnotationClient(openai_api_key="sk-...")
        payload = await client.call_json(
            task="claims",
            model="gpt-4o-mini",
            input="Post text: ...",
            instructions="Extract atomic claims as JSON.",
        )
    """

    def __init__(
        self,
        *,
        openai_api_key: str | None = None,
        default_timeout: float = 60.0,
        concurrency: int = 6,
        client: AsyncOpenAI | None = None,
    ):
        self.default_timeout = default_timeout
        self._sem = asyncio.Semaphore(max(1, concurrency))
        if client is not None:
            self.client: AsyncOpenAI | None = client
        elif openai_api_key:
            # Retries are centralized in with_retry; the SDK must not retry on its own.
            self.client = AsyncOpenAI(api_key=openai_api_key, max_retries=0, timeout=default_timeout)
        else:
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    async def call_json(
        self,
        *,
        task: str,
        model: str,
        input: str,  # noqa: A002 - mirrors the Responses API param name
        instructions: str | None = None,
        image_url: str | None = None,
        web_search: bool = False,
        timeout: float | None = None,
        max_output_tokens: int | None = None,
    ) -> Any:
        """
        Execute one annotation call and return the parsed JSON payload.

        Raises:
            LLMCallError: on any failure (kind tells retryable from fatal)
        """
        if self.client is None:
            raise LLMCallError("Annotation service is not configured", kind=LLMFailureKind.UNAVAILABLE, task=task)

        params: dict[str, Any] = {
            "model": model,
            "timeout": timeout or self.default_timeout,
            "text": {"format": {"type": "json_object"}},
        }
        if image_url:
            params["input"] = [{
                "role": "user",
                "content": [
                    {"type": "input_text", "text": input},
                    {"type": "input_image", "image_url": image_url},
                ],
            }]
        else:
            params["input"] = input
        if instructions:
            params["instructions"] = instructions
        if max_output_tokens:
            params["max_output_tokens"] = max_output_tokens
        if web_search:
            params["tools"] = [{"type": "web_search"}]

        payload_hash = hashlib.md5(((instructions or "") + "||" + input).encode()).hexdigest()
        Trace.event(f"annotation.{task}.prompt", {
            "model": model,
            "input_chars": len(input),
            "instructions_chars": len(instructions or ""),
            "has_image": bool(image_url),
            "web_search": web_search,
            "payload_hash": payload_hash,
        })

        start_time = time.time()
        try:
            async with self._sem:
                response = await self.client.responses.create(**params)
        except AuthenticationError as e:
            raise self._fail(task, payload_hash, e, LLMFailureKind.AUTHENTICATION) from e
        except RateLimitError as e:
            raise self._fail(task, payload_hash, e, LLMFailureKind.PROVIDER_ERROR) from e
        except APITimeoutError as e:
            raise self._fail(task, payload_hash, e, LLMFailureKind.TIMEOUT) from e
        except APIConnectionError as e:
            raise self._fail(task, payload_hash, e, LLMFailureKind.CONNECTION_ERROR) from e
        except APIStatusError as e:
            kind = LLMFailureKind.PROVIDER_ERROR if e.status_code >= 500 else classify_llm_failure(e)
            raise self._fail(task, payload_hash, e, kind) from e

        latency_ms = int((time.time() - start_time) * 1000)
        content = response.output_text
        if not content or not content.strip():
            if getattr(response, "error", None):
                raise self._fail(task, payload_hash, ValueError(f"LLM error: {response.error}"),
                                 LLMFailureKind.PROVIDER_ERROR)
            raise self._fail(task, payload_hash, ValueError("Empty response from annotation service"),
                             LLMFailureKind.INVALID_JSON)

        try:
            parsed = _parse_json_content(content)
        except LLMCallError as e:
            e.task = task
            logger.warning("[Annotation] %s: JSON parse failed: %s", task, e)
            raise

        Trace.event(f"annotation.{task}.response", {
            "model": getattr(response, "model", model),
            "content_chars": len(content),
            "latency_ms": latency_ms,
            "payload_hash": payload_hash,
        })
        return parsed

    def _fail(self, task: str, payload_hash: str, exc: Exception, kind: LLMFailureKind) -> LLMCallError:
        logger.warning("[Annotation] %s call failed (%s): %s", task, kind.value, exc)
        Trace.event(f"annotation.{task}.error", {
            "failure_kind": kind.value,
            "error": str(exc)[:200],
            "payload_hash": payload_hash,
        })
        return LLMCallError(str(exc)[:500], kind=kind, task=task)

    async def close(self) -> None:
        """Clean up resources."""
        if self.client:
            await self.client.close()
