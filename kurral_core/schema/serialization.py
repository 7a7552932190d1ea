# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 Kurral Contributors
from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T", bound="SchemaModel")


class SchemaModel(BaseModel):
    """
    Canonical base for stored documents and annotation results (Pydantic v2).

    - Ignores extra fields so older/newer documents still load.
    - Provides `to_dict()` / `from_dict()` for the store adapters.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_document(self) -> dict[str, Any]:
        """Like to_dict() but keeps datetimes native (Firestore stores timestamps)."""
        return self.model_dump(mode="python", exclude_none=True)

    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        if not isinstance(data, dict):
            raise TypeError(f"Schema input must be a dict, got: {type(data)!r}")
        return cls.model_validate(data)
