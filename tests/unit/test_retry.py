# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import asyncio

import pytest

from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind, classify_llm_failure, is_retryable_failure
from kurral_core.llm.retry import RetryPolicy, with_retry
from kurral_core.runtime_config import RetryRuntimeConfig


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class Flaky:
    """Fails `failures` times with `error`, then returns "ok"."""

    def __init__(self, failures, error):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self):
        sleep = FakeSleep()
        fn = Flaky(2, LLMCallError("503", kind=LLMFailureKind.PROVIDER_ERROR))

        result = await with_retry(fn, policy=RetryPolicy(max_attempts=3, base_delay_sec=1.0), sleep=sleep)

        assert result == "ok"
        assert fn.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleep = FakeSleep()
        error = LLMCallError("connection reset", kind=LLMFailureKind.CONNECTION_ERROR)
        fn = Flaky(5, error)

        with pytest.raises(LLMCallError) as exc_info:
            await with_retry(fn, policy=RetryPolicy(max_attempts=3), sleep=sleep)

        assert exc_info.value is error
        assert fn.calls == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        sleep = FakeSleep()
        fn = Flaky(1, LLMCallError("bad json", kind=LLMFailureKind.INVALID_JSON))

        with pytest.raises(LLMCallError):
            await with_retry(fn, policy=RetryPolicy(max_attempts=3), sleep=sleep)

        assert fn.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_retryable(self):
        sleep = FakeSleep()
        calls = []

        async def slow():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return "done"

        result = await with_retry(
            slow,
            policy=RetryPolicy(max_attempts=2, base_delay_sec=0.0, attempt_timeout_sec=0.01),
            sleep=sleep,
        )

        assert result == "done"
        assert len(calls) == 2

    def test_policy_from_runtime_clamps(self):
        policy = RetryPolicy.from_runtime(
            RetryRuntimeConfig(max_attempts=0, base_delay_sec=-1.0, backoff_factor=0.5),
            attempt_timeout_sec=5.0,
        )
        assert policy.max_attempts == 1
        assert policy.base_delay_sec == 0.0
        assert policy.backoff_factor == 1.0
        assert policy.attempt_timeout_sec == 5.0


class TestFailureClassification:
    @pytest.mark.parametrize(
        "error,kind",
        [
            (Exception("401 Unauthorized"), LLMFailureKind.AUTHENTICATION),
            (Exception("Rate limit reached"), LLMFailureKind.PROVIDER_ERROR),
            (Exception("503 Service Unavailable"), LLMFailureKind.PROVIDER_ERROR),
            (Exception("Expecting value: line 1 column 1"), LLMFailureKind.INVALID_JSON),
            (Exception("missing required field"), LLMFailureKind.SCHEMA_VALIDATION_FAILED),
            (Exception("request timed out"), LLMFailureKind.TIMEOUT),
            (Exception("connection refused"), LLMFailureKind.CONNECTION_ERROR),
            (asyncio.TimeoutError(), LLMFailureKind.TIMEOUT),
            (Exception("something odd"), LLMFailureKind.UNKNOWN),
        ],
    )
    def test_classify(self, error, kind):
        assert classify_llm_failure(error) == kind

    def test_explicit_kind_wins(self):
        error = LLMCallError("timeout while parsing", kind=LLMFailureKind.SCHEMA_VALIDATION_FAILED)
        assert classify_llm_failure(error) == LLMFailureKind.SCHEMA_VALIDATION_FAILED

    @pytest.mark.parametrize(
        "kind,retryable",
        [
            (LLMFailureKind.CONNECTION_ERROR, True),
            (LLMFailureKind.TIMEOUT, True),
            (LLMFailureKind.PROVIDER_ERROR, True),
            (LLMFailureKind.INVALID_JSON, False),
            (LLMFailureKind.SCHEMA_VALIDATION_FAILED, False),
            (LLMFailureKind.AUTHENTICATION, False),
            (LLMFailureKind.UNAVAILABLE, False),
            (LLMFailureKind.UNKNOWN, False),
        ],
    )
    def test_retryable_kinds(self, kind, retryable):
        assert is_retryable_failure(LLMCallError("x", kind=kind)) is retryable

    def test_unavailable_status_code_is_retryable(self):
        class StoreUnavailable(Exception):
            code = "UNAVAILABLE"

        assert is_retryable_failure(StoreUnavailable("try again"))
