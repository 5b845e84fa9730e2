"""Data structures for the task lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class SwapStatus(StrEnum):
    """Local lifecycle statuses shown to the presentation layer."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SwapStatus.SUCCEEDED, SwapStatus.FAILED)


@dataclass(slots=True)
class Task:
    """One remote face-swap job, never reused after it becomes terminal."""

    task_id: str
    attempts: int = 0
    vendor_status: str | None = None
    result_url: str | None = None
    error: str | None = None
    record_id: str | None = None


@dataclass(slots=True)
class SwapState:
    """Read-only snapshot of a manager for rendering."""

    status: SwapStatus
    task_id: str | None = None
    attempts: int = 0
    result_url: str | None = None
    error: str | None = None
    size_error: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "taskId": self.task_id,
            "attempts": self.attempts,
            "resultUrl": self.result_url,
            "error": self.error,
            "sizeError": self.size_error,
            "warnings": list(self.warnings),
        }
