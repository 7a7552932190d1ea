# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Pipeline Errors

Only these two exceptions escape a stage boundary. Everything else a
stage raises is logged and the stage counts as having produced nothing.
Both mark the item failed, so the periodic sweep picks it up again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class PipelineViolation(Exception):
    """
    The document itself cannot be processed: no id, no author, or a
    comment whose parent post is gone. Retrying will not help until
    the data changes.
    """

    step_name: str
    subject_id: str
    problem: str

    def __post_init__(self) -> None:
        super().__init__(f"{self.subject_id or '<no id>'}: {self.problem} (at '{self.step_name}')")

    def to_trace_dict(self) -> dict[str, Any]:
        return {
            "error": "pipeline_violation",
            "step_name": self.step_name,
            "subject_id": self.subject_id,
            "problem": self.problem,
        }


class PipelineExecutionError(Exception):
    """A checkpoint write or a store read the run cannot continue without."""

    def __init__(self, step_name: str, message: str, cause: Exception | None = None):
        self.step_name = step_name
        self.cause = cause
        full_msg = f"Stage '{step_name}': {message}"
        if cause:
            full_msg += f" ({type(cause).__name__}: {cause})"
        super().__init__(full_msg)

    def to_trace_dict(self) -> dict[str, Any]:
        return {
            "error": "pipeline_execution",
            "step_name": self.step_name,
            "message": str(self)[:500],
        }
