"""
Execution log — the operator-facing status stream for one run.

Status lines are printed in colour with ``click.secho`` and mirrored to
the ``devsetup.status`` logger so the per-run log file captures them.
Errors are also collected into the failure set used by the end-of-run
summary.  Nothing here is persisted beyond the log file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import click

from devsetup.core.observability.logging_config import STATUS_LOGGER

_status = logging.getLogger(STATUS_LOGGER)


@dataclass
class ExecutionLog:
    """Append-only status record plus the set of failed task names."""

    log_file: Path | None = None
    color: bool | None = None
    lines: list[tuple[str, str]] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    def info(self, message: str) -> None:
        self._emit("info", message, fg="blue")
        _status.info(message)

    def success(self, message: str) -> None:
        self._emit("success", message, fg="green")
        _status.info(message)

    def error(self, message: str) -> None:
        """Record an error line and add it to the failure set."""
        self._emit("error", f"ERROR: {message}", fg="red")
        _status.error(message)
        self.failures.append(message)

    def _emit(self, kind: str, message: str, *, fg: str) -> None:
        self.lines.append((kind, message))
        click.secho(message, fg=fg, color=self.color)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def mark(self) -> int:
        """Current failure count, to scope a summary to one menu round."""
        return len(self.failures)

    def summary(self, since: int = 0) -> str:
        """End-of-round summary: all good, or the failures and the log path."""
        failures = self.failures[since:]
        if not failures:
            return "All selected tasks completed successfully."
        lines = [f"{len(failures)} task(s) reported errors:"]
        lines.extend(f"  - {name}" for name in failures)
        if self.log_file:
            lines.append(f"See {self.log_file} for details.")
        return "\n".join(lines)
