# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Retry-with-backoff combinator.

Every external call (annotation service, store reads in sweeps) goes through
`with_retry`. Each attempt runs under a timeout, so no call blocks forever;
only failures accepted by the retryability predicate are retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from kurral_core.llm.failures import classify_llm_failure, failure_kind_to_trace_data, is_retryable_failure
from kurral_core.runtime_config import RetryRuntimeConfig
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_sec: float = 1.0
    backoff_factor: float = 2.0
    attempt_timeout_sec: float | None = 60.0

    @classmethod
    def from_runtime(cls, retry: RetryRuntimeConfig, *, attempt_timeout_sec: float | None) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, retry.max_attempts),
            base_delay_sec=max(0.0, retry.base_delay_sec),
            backoff_factor=max(1.0, retry.backoff_factor),
            attempt_timeout_sec=attempt_timeout_sec,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based): base, base*f, base*f^2, ..."""
        return self.base_delay_sec * (self.backoff_factor ** (attempt - 1))


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    is_retryable: Callable[[BaseException], bool] = is_retryable_failure,
    label: str = "call",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Run `fn` until it succeeds, a non-retryable error occurs, or attempts run out.

    The last error is re-raised unchanged; callers decide how to degrade.
    """
    policy = policy or RetryPolicy()
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            if policy.attempt_timeout_sec:
                return await asyncio.wait_for(fn(), timeout=policy.attempt_timeout_sec)
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            retryable = is_retryable(e)
            Trace.event("retry.attempt", {
                "label": label,
                "attempt": attempt,
                "retryable": retryable,
                **failure_kind_to_trace_data(classify_llm_failure(e), e),
            })
            if not retryable or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "[Retry] %s attempt %d/%d failed (%s); retrying in %.1fs",
                label,
                attempt,
                policy.max_attempts,
                e,
                delay,
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise RuntimeError(f"{label}: retry loop exited without result") from last_error
