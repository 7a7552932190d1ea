from __future__ import annotations

from dataclasses import dataclass

from kurral_core.llm.failures import LLMFailureKind


@dataclass
class LLMCallError(Exception):
    message: str
    kind: LLMFailureKind = LLMFailureKind.UNKNOWN
    task: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.message} (kind={self.kind.value})"
