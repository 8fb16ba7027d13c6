"""
Task result model — the outcome of one install or uninstall.

Tasks report through results, never exceptions: the engine converts
whatever a task raised into a failed result at the task boundary.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class TaskResult(BaseModel):
    """Result of running one task action."""

    task_id: str
    label: str = ""
    action: Literal["install", "uninstall"] = "install"
    status: Literal["ok", "skipped", "failed"] = "ok"

    state_before: str = ""
    state_after: str = ""

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    message: str = ""
    error: str | None = None
    notes: list[str] = Field(default_factory=list)

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the task reached its goal (skips count as success)."""
        return self.status != "failed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, task_id: str, message: str = "", **kwargs: Any) -> TaskResult:
        return cls(task_id=task_id, status="ok", message=message, **kwargs)

    @classmethod
    def skip(cls, task_id: str, reason: str = "", **kwargs: Any) -> TaskResult:
        return cls(task_id=task_id, status="skipped", message=reason, **kwargs)

    @classmethod
    def failure(cls, task_id: str, error: str, **kwargs: Any) -> TaskResult:
        return cls(task_id=task_id, status="failed", error=error, **kwargs)
