# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Annotation Failure Classification.

Defines failure types and which of them are worth retrying:
- CONNECTION_ERROR: Network/connection issues (retry)
- TIMEOUT: Request timeout (retry)
- PROVIDER_ERROR: Provider returned error (5xx, rate limit) (retry)
- INVALID_JSON: Response not valid JSON (no retry)
- SCHEMA_VALIDATION_FAILED: JSON doesn't match required schema (no retry)
- AUTHENTICATION: Bad or missing credentials (no retry)
- UNAVAILABLE: Annotation service not configured (no retry, heuristics)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class LLMFailureKind(str, Enum):
    """Classification of annotation call failures."""

    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    INVALID_JSON = "invalid_json"
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    AUTHENTICATION = "authentication"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    LLMFailureKind.CONNECTION_ERROR,
    LLMFailureKind.TIMEOUT,
    LLMFailureKind.PROVIDER_ERROR,
})

# Keywords that indicate authentication errors (never retried)
_AUTH_KEYWORDS = (
    "api key",
    "api_key",
    "apikey",
    "unauthorized",
    "authentication",
    "permission denied",
    "invalid_api_key",
    "401",
    "403",
)

# Keywords that indicate connection errors
_CONNECTION_KEYWORDS = (
    "connection",
    "connect",
    "network",
    "socket",
    "refused",
    "unreachable",
    "dns",
    "econnreset",
)

# Keywords that indicate timeout errors
_TIMEOUT_KEYWORDS = (
    "timeout",
    "timed out",
    "deadline exceeded",
)

# Keywords that indicate provider errors
_PROVIDER_ERROR_KEYWORDS = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "429",
    "quota",
    "capacity",
    "overloaded",
    "unavailable",
    "internal server",
    "500",
    "502",
    "503",
    "504",
)

# Keywords that indicate JSON parsing errors
_JSON_ERROR_KEYWORDS = (
    "json",
    "parse",
    "decode",
    "unexpected token",
    "expecting",
)

# Keywords that indicate schema validation errors
_SCHEMA_ERROR_KEYWORDS = (
    "schema",
    "validation",
    "missing required",
    "expected object",
    "expected array",
)


def classify_llm_failure(exc: BaseException) -> LLMFailureKind:
    """
    Classify an annotation call exception into a failure kind.

    Errors that already carry a kind (LLMCallError) keep it.
    """
    kind = getattr(exc, "kind", None)
    if isinstance(kind, LLMFailureKind):
        return kind

    if isinstance(exc, asyncio.TimeoutError):
        return LLMFailureKind.TIMEOUT

    error_msg = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    # Auth first: "401 Unauthorized" must not be read as a provider error
    if any(kw in error_msg for kw in _AUTH_KEYWORDS) or "authentication" in exc_type:
        return LLMFailureKind.AUTHENTICATION

    if "ratelimit" in exc_type or any(kw in error_msg for kw in _PROVIDER_ERROR_KEYWORDS):
        return LLMFailureKind.PROVIDER_ERROR

    if "json" in exc_type or any(kw in error_msg for kw in _JSON_ERROR_KEYWORDS):
        return LLMFailureKind.INVALID_JSON

    if "validation" in exc_type or any(kw in error_msg for kw in _SCHEMA_ERROR_KEYWORDS):
        return LLMFailureKind.SCHEMA_VALIDATION_FAILED

    if "timeout" in exc_type or any(kw in error_msg for kw in _TIMEOUT_KEYWORDS):
        return LLMFailureKind.TIMEOUT

    if "connection" in exc_type or "network" in exc_type or any(kw in error_msg for kw in _CONNECTION_KEYWORDS):
        return LLMFailureKind.CONNECTION_ERROR

    return LLMFailureKind.UNKNOWN


def is_retryable_failure(exc: BaseException) -> bool:
    """Transient infrastructure failures only; everything else degrades immediately."""
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code.lower() == "unavailable":
        return True
    return classify_llm_failure(exc) in RETRYABLE_KINDS


def failure_kind_to_trace_data(kind: LLMFailureKind | None, exc: BaseException) -> dict[str, Any]:
    """
    Convert failure info to trace event data.
    """
    return {
        "failure_kind": kind.value if kind else "unknown",
        "error_type": type(exc).__name__,
        "error_message": str(exc)[:200],
    }
