# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 Kurral Contributors
"""Boundary coercion: clamp numbers and default unknown enum strings."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, TypeVar

E = TypeVar("E", bound=Enum)


def clamp01(value: Any, default: float = 0.0) -> float:
    """Clamp to [0, 1]; non-numeric and non-finite inputs become `default`."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(v):
        return default
    return max(0.0, min(1.0, v))


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def coerce_enum(value: Any, enum_cls: type[E], default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    s = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    for member in enum_cls:
        if member.value == s:
            return member
    return default
