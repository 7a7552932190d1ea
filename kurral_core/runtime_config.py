from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any


def _parse_bool(raw: Any, *, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if not s:
        return default
    if s in ("1", "true", "yes", "y", "on"):
        return True
    if s in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_int(raw: Any, *, default: int, min_v: int, max_v: int) -> int:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, int):
            v = raw
        else:
            v = int(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


def _parse_float(raw: Any, *, default: float, min_v: float, max_v: float) -> float:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, (int, float)):
            v = float(raw)
        else:
            v = float(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


def _parse_domain_overrides(raw: str | None) -> dict[str, float]:
    """Parse "health=0.8,finance=0.75" into a clamped {domain: value} mapping."""
    s = (raw or "").strip()
    if not s:
        return {}
    out: dict[str, float] = {}
    for part in re.split(r"[,\n]", s):
        if "=" not in part:
            continue
        key, _, value = part.partition("=")
        key = key.strip().lower()
        if not key:
            continue
        out[key] = _parse_float(value, default=0.7, min_v=0.0, max_v=1.0)
    return out


@dataclass(frozen=True)
class KurralFeatureFlags:
    # Trace is a local-only debug feature; it is enabled by default and can be disabled via env.
    trace_enabled: bool = True
    # Evidence-grounded fact-checking (web search tool) before knowledge-only mode.
    fact_check_web_search: bool = True


@dataclass(frozen=True)
class KurralDebugFlags:
    engine_debug: bool = False
    log_prompts: bool = False


@dataclass(frozen=True)
class AnnotationRuntimeConfig:
    timeout_sec: float = 60.0
    concurrency: int = 6
    max_output_tokens: int = 1200
    max_prompt_chars: int = 2000


@dataclass(frozen=True)
class RetryRuntimeConfig:
    max_attempts: int = 3
    base_delay_sec: float = 1.0
    backoff_factor: float = 2.0


@dataclass(frozen=True)
class PipelineRuntimeConfig:
    stale_lock_minutes: int = 30
    similarity_threshold: float = 0.7
    max_discussion_comments: int = 20
    value_delta_threshold: float = 0.01
    pending_reshare_batch: int = 50
    failed_sweep_batch: int = 25


@dataclass(frozen=True)
class ScoringRuntimeConfig:
    confident_false_threshold: float = 0.7
    trust_history_limit: int = 20
    trust_start_score: int = 65
    reputation_window_days: int = 30


@dataclass(frozen=True)
class ConsensusRuntimeConfig:
    min_reviews: int = 50
    consensus_threshold: float = 0.6
    min_confidence: float = 0.2
    # Crowd confidence needed to override mixed/unknown fact-check evidence.
    ambiguous_override_confidence: float = 0.7
    domain_overrides: dict[str, float] = field(default_factory=dict)

    def override_confidence_for(self, domain: str | None) -> float:
        if domain and domain.lower() in self.domain_overrides:
            return self.domain_overrides[domain.lower()]
        return self.ambiguous_override_confidence


@dataclass(frozen=True)
class KurralRuntimeConfig:
    annotation: AnnotationRuntimeConfig = field(default_factory=AnnotationRuntimeConfig)
    retry: RetryRuntimeConfig = field(default_factory=RetryRuntimeConfig)
    pipeline: PipelineRuntimeConfig = field(default_factory=PipelineRuntimeConfig)
    scoring: ScoringRuntimeConfig = field(default_factory=ScoringRuntimeConfig)
    consensus: ConsensusRuntimeConfig = field(default_factory=ConsensusRuntimeConfig)
    features: KurralFeatureFlags = field(default_factory=KurralFeatureFlags)
    debug: KurralDebugFlags = field(default_factory=KurralDebugFlags)

    @staticmethod
    def load_from_env() -> "KurralRuntimeConfig":
        annotation = AnnotationRuntimeConfig(
            timeout_sec=_parse_float(os.getenv("KURRAL_LLM_TIMEOUT"), default=60.0, min_v=5.0, max_v=300.0),
            concurrency=_parse_int(os.getenv("KURRAL_LLM_CONCURRENCY"), default=6, min_v=1, max_v=16),
            max_output_tokens=_parse_int(
                os.getenv("KURRAL_LLM_MAX_OUTPUT_TOKENS"), default=1200, min_v=200, max_v=4000
            ),
            max_prompt_chars=_parse_int(os.getenv("KURRAL_MAX_PROMPT_CHARS"), default=2000, min_v=200, max_v=8000),
        )

        retry = RetryRuntimeConfig(
            max_attempts=_parse_int(os.getenv("KURRAL_RETRY_MAX_ATTEMPTS"), default=3, min_v=1, max_v=10),
            base_delay_sec=_parse_float(os.getenv("KURRAL_RETRY_BASE_DELAY"), default=1.0, min_v=0.0, max_v=30.0),
            backoff_factor=_parse_float(os.getenv("KURRAL_RETRY_BACKOFF"), default=2.0, min_v=1.0, max_v=5.0),
        )

        pipeline = PipelineRuntimeConfig(
            stale_lock_minutes=_parse_int(os.getenv("KURRAL_STALE_LOCK_MINUTES"), default=30, min_v=1, max_v=1440),
            similarity_threshold=_parse_float(
                os.getenv("KURRAL_SIMILARITY_THRESHOLD"), default=0.7, min_v=0.0, max_v=1.0
            ),
            max_discussion_comments=_parse_int(
                os.getenv("KURRAL_MAX_DISCUSSION_COMMENTS"), default=20, min_v=1, max_v=200
            ),
            value_delta_threshold=_parse_float(
                os.getenv("KURRAL_VALUE_DELTA_THRESHOLD"), default=0.01, min_v=0.0, max_v=1.0
            ),
            pending_reshare_batch=_parse_int(
                os.getenv("KURRAL_PENDING_RESHARE_BATCH"), default=50, min_v=1, max_v=500
            ),
            failed_sweep_batch=_parse_int(os.getenv("KURRAL_FAILED_SWEEP_BATCH"), default=25, min_v=1, max_v=500),
        )

        scoring = ScoringRuntimeConfig(
            confident_false_threshold=_parse_float(
                os.getenv("KURRAL_CONFIDENT_FALSE_THRESHOLD"), default=0.7, min_v=0.0, max_v=1.0
            ),
            trust_history_limit=_parse_int(os.getenv("KURRAL_TRUST_HISTORY_LIMIT"), default=20, min_v=1, max_v=200),
            trust_start_score=_parse_int(os.getenv("KURRAL_TRUST_START_SCORE"), default=65, min_v=0, max_v=100),
            reputation_window_days=_parse_int(
                os.getenv("KURRAL_REPUTATION_WINDOW_DAYS"), default=30, min_v=1, max_v=365
            ),
        )

        consensus = ConsensusRuntimeConfig(
            min_reviews=_parse_int(os.getenv("KURRAL_CONSENSUS_MIN_REVIEWS"), default=50, min_v=1, max_v=10_000),
            consensus_threshold=_parse_float(
                os.getenv("KURRAL_CONSENSUS_THRESHOLD"), default=0.6, min_v=0.5, max_v=1.0
            ),
            min_confidence=_parse_float(os.getenv("KURRAL_CONSENSUS_MIN_CONFIDENCE"), default=0.2, min_v=0.0, max_v=1.0),
            ambiguous_override_confidence=_parse_float(
                os.getenv("KURRAL_CONSENSUS_AMBIGUOUS_OVERRIDE"), default=0.7, min_v=0.0, max_v=1.0
            ),
            domain_overrides=_parse_domain_overrides(os.getenv("KURRAL_CONSENSUS_AMBIGUOUS_OVERRIDES")),
        )

        features = KurralFeatureFlags(
            trace_enabled=not _parse_bool(os.getenv("KURRAL_TRACE_DISABLE"), default=False),
            fact_check_web_search=_parse_bool(os.getenv("KURRAL_FACT_CHECK_WEB_SEARCH"), default=True),
        )

        debug = KurralDebugFlags(
            engine_debug=_parse_bool(os.getenv("KURRAL_ENGINE_DEBUG"), default=False),
            log_prompts=_parse_bool(os.getenv("KURRAL_ENGINE_LOG_PROMPTS"), default=False),
        )

        return KurralRuntimeConfig(
            annotation=annotation,
            retry=retry,
            pipeline=pipeline,
            scoring=scoring,
            consensus=consensus,
            features=features,
            debug=debug,
        )
