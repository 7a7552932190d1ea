# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import pytest

from kurral_core.config import KurralConfig
from kurral_core.runtime_config import ConsensusRuntimeConfig, KurralRuntimeConfig

_ENV_KEYS = (
    "KURRAL_LLM_CONCURRENCY",
    "KURRAL_RETRY_MAX_ATTEMPTS",
    "KURRAL_SIMILARITY_THRESHOLD",
    "KURRAL_TRUST_START_SCORE",
    "KURRAL_CONSENSUS_THRESHOLD",
    "KURRAL_CONSENSUS_AMBIGUOUS_OVERRIDES",
    "KURRAL_TRACE_DISABLE",
    "KURRAL_FACT_CHECK_WEB_SEARCH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    cfg = KurralRuntimeConfig.load_from_env()
    assert cfg.retry.max_attempts == 3
    assert cfg.pipeline.stale_lock_minutes == 30
    assert cfg.pipeline.similarity_threshold == 0.7
    assert cfg.scoring.confident_false_threshold == 0.7
    assert cfg.scoring.trust_start_score == 65
    assert cfg.consensus.min_reviews == 50
    assert cfg.features.trace_enabled is True
    assert cfg.features.fact_check_web_search is True


def test_concurrency_is_clamped(monkeypatch):
    monkeypatch.setenv("KURRAL_LLM_CONCURRENCY", "999")
    assert KurralRuntimeConfig.load_from_env().annotation.concurrency == 16

    monkeypatch.setenv("KURRAL_LLM_CONCURRENCY", "0")
    assert KurralRuntimeConfig.load_from_env().annotation.concurrency == 1


def test_garbage_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("KURRAL_RETRY_MAX_ATTEMPTS", "lots")
    monkeypatch.setenv("KURRAL_SIMILARITY_THRESHOLD", "1.5")
    cfg = KurralRuntimeConfig.load_from_env()
    assert cfg.retry.max_attempts == 3
    assert cfg.pipeline.similarity_threshold == 1.0


def test_consensus_threshold_floor(monkeypatch):
    monkeypatch.setenv("KURRAL_CONSENSUS_THRESHOLD", "0.2")
    assert KurralRuntimeConfig.load_from_env().consensus.consensus_threshold == 0.5


def test_flags(monkeypatch):
    monkeypatch.setenv("KURRAL_TRACE_DISABLE", "yes")
    monkeypatch.setenv("KURRAL_FACT_CHECK_WEB_SEARCH", "off")
    cfg = KurralRuntimeConfig.load_from_env()
    assert cfg.features.trace_enabled is False
    assert cfg.features.fact_check_web_search is False


def test_domain_overrides(monkeypatch):
    monkeypatch.setenv("KURRAL_CONSENSUS_AMBIGUOUS_OVERRIDES", "Health=0.9, finance=2, junk, =0.1")
    consensus = KurralRuntimeConfig.load_from_env().consensus
    assert consensus.domain_overrides == {"health": 0.9, "finance": 1.0}
    assert consensus.override_confidence_for("HEALTH") == 0.9
    assert consensus.override_confidence_for("science") == 0.7
    assert consensus.override_confidence_for(None) == 0.7


def test_override_default_is_configurable():
    assert ConsensusRuntimeConfig(ambiguous_override_confidence=0.8).override_confidence_for("x") == 0.8


def test_kurral_config_annotation_enabled():
    assert KurralConfig(openai_api_key="sk-test").annotation_enabled is True
    assert KurralConfig(openai_api_key="  ").annotation_enabled is False
    assert KurralConfig().annotation_enabled is False


def test_kurral_config_prefers_explicit_runtime(runtime):
    assert KurralConfig(runtime=runtime).resolved_runtime() == runtime
