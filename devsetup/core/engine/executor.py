"""
Engine executor — the idempotent install / uninstall state machine.

Every task goes through the same sequence:

    install:   detect → (skip if present) → apply_install → profile lines → verify
    uninstall: apply_uninstall → remove profile lines → note best-effort gaps

Failures never cross the task boundary: a ``TaskError`` or any other
exception becomes a failed ``TaskResult`` and the batch moves on.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from devsetup.core.context import RunContext
from devsetup.core.errors import TaskError
from devsetup.core.models.task import TaskResult
from devsetup.core.services.detection import TaskState
from devsetup.core.tasks.base import ProvisionTask

logger = logging.getLogger(__name__)

Action = Literal["install", "uninstall"]


@dataclass
class ExecutionReport:
    """Results of one batch of tasks."""

    action: str = ""
    results: list[TaskResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status == "ok")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.failed < self.total:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _fail(task: ProvisionTask, ctx: RunContext, action: Action, exc: Exception, start: float, before: str) -> TaskResult:
    if isinstance(exc, TaskError):
        message = f"{task.label}: {exc.step}" + (f" ({exc.detail})" if exc.detail else "")
    else:
        logger.exception("Unexpected error in task %s (%s)", task.id, action)
        message = f"{task.label}: unexpected error: {exc}"
    ctx.log.error(message)
    return TaskResult.failure(
        task.id, str(exc), label=task.label, action=action,
        state_before=before, duration_ms=_elapsed_ms(start),
    )


def ensure_profile_lines(task: ProvisionTask, ctx: RunContext) -> list[str]:
    """Add the task's profile lines that are missing. Returns lines added."""
    lines = task.profile_lines(ctx)
    if not lines:
        return []
    return ctx.profile.ensure_lines_present(lines)


def run_install(task: ProvisionTask, ctx: RunContext) -> TaskResult:
    """Install one task, idempotently."""
    start = time.monotonic()
    before = ""
    ctx.log.info(f"{task.label}...")
    try:
        state = task.detect_state(ctx)
        before = state.value
        policy = ctx.refresh_policy(task.id, task.refresh)
        logger.info("[%s] state=%s refresh=%s", task.id, before, policy)

        if state is TaskState.PRESENT and policy == "if_missing":
            added = ensure_profile_lines(task, ctx)
            message = f"{task.label}: already installed, skipping."
            ctx.log.info(message)
            return TaskResult.skip(
                task.id, message, label=task.label, state_before=before,
                state_after=before, duration_ms=_elapsed_ms(start),
                metadata={"profile_lines_added": added},
            )

        task.apply_install(ctx)
        added = ensure_profile_lines(task, ctx)
        if not task.verify(ctx):
            raise TaskError(task.id, "verification failed after install")
    except Exception as e:  # task boundary
        return _fail(task, ctx, "install", e, start, before)

    message = f"{task.label}: completed successfully."
    ctx.log.success(message)
    return TaskResult.success(
        task.id, message, label=task.label, state_before=before,
        state_after=TaskState.PRESENT.value, duration_ms=_elapsed_ms(start),
        metadata={"profile_lines_added": added},
    )


def run_uninstall(task: ProvisionTask, ctx: RunContext) -> TaskResult:
    """Uninstall one task. Absent components are a successful no-op."""
    start = time.monotonic()
    if not task.has_uninstaller:
        message = f"{task.label}: nothing to uninstall."
        ctx.log.info(message)
        return TaskResult.skip(task.id, message, label=task.label, action="uninstall")

    before = ""
    ctx.log.info(f"Uninstalling: {task.label}...")
    try:
        before = task.detect_state(ctx).value
        task.apply_uninstall(ctx)
        lines = task.profile_lines(ctx)
        removed = ctx.profile.ensure_lines_absent(lines) if lines else 0
    except Exception as e:  # task boundary
        return _fail(task, ctx, "uninstall", e, start, before)

    notes = []
    if task.BEST_EFFORT_UNINSTALL:
        notes.append(task.BEST_EFFORT_UNINSTALL)
        ctx.log.info(f"Note: {task.BEST_EFFORT_UNINSTALL}")
    message = f"{task.label}: uninstalled."
    ctx.log.success(message)
    return TaskResult.success(
        task.id, message, label=task.label, action="uninstall",
        state_before=before, state_after=TaskState.ABSENT.value,
        duration_ms=_elapsed_ms(start), notes=notes,
        metadata={"profile_lines_removed": removed},
    )


def run_batch(tasks: Iterable[ProvisionTask], ctx: RunContext, action: Action = "install") -> ExecutionReport:
    """Run tasks strictly one after another; a failure never stops the batch."""
    runner = run_install if action == "install" else run_uninstall
    report = ExecutionReport(action=action)
    for task in tasks:
        report.results.append(runner(task, ctx))
    logger.info(
        "Batch %s: %d ok, %d skipped, %d failed",
        action, report.succeeded, report.skipped, report.failed,
    )
    return report
