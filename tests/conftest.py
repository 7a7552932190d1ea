# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import copy
from typing import Any

import pytest

from kurral_core.config import KurralConfig
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.runtime_config import KurralFeatureFlags, KurralRuntimeConfig, RetryRuntimeConfig
from kurral_core.storage.adapters import InMemoryKurralStore


class ScriptedAnnotationClient:
    """
    Matches the interface of AnnotationClient.

    `responses[task]` is a payload dict, an exception to raise, or a list
    consumed one entry per call. Unscripted tasks fail as invalid JSON.
    """

    def __init__(self, responses: dict[str, Any] | None = None, *, available: bool = True):
        self.responses: dict[str, Any] = dict(responses or {})
        self.available = available
        self.calls: list[dict[str, Any]] = []

    def calls_for(self, task: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["task"] == task]

    async def call_json(self, *, task: str, model: str, input: str, **kwargs: Any) -> Any:  # noqa: A002
        self.calls.append({"task": task, "model": model, "input": input, **kwargs})
        scripted = self.responses.get(task)
        if isinstance(scripted, list):
            scripted = scripted.pop(0) if scripted else None
        if isinstance(scripted, BaseException):
            raise scripted
        if scripted is None:
            raise LLMCallError(f"No scripted response for {task}", kind=LLMFailureKind.INVALID_JSON, task=task)
        return copy.deepcopy(scripted)


async def no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def runtime():
    """Runtime with zero retry delays and tracing off."""
    return KurralRuntimeConfig(
        retry=RetryRuntimeConfig(max_attempts=3, base_delay_sec=0.0, backoff_factor=2.0),
        features=KurralFeatureFlags(trace_enabled=False),
    )


@pytest.fixture
def config(runtime):
    return KurralConfig(openai_api_key="sk-test-key", runtime=runtime)


@pytest.fixture
def offline_config(runtime):
    """No API key: every skill takes its heuristic path."""
    return KurralConfig(runtime=runtime)


@pytest.fixture
def store():
    return InMemoryKurralStore()


@pytest.fixture
def annotation():
    return ScriptedAnnotationClient()


@pytest.fixture
def annotation_factory():
    return ScriptedAnnotationClient


@pytest.fixture
def sleep():
    return no_sleep
