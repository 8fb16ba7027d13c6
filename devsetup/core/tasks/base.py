"""
Task base — the one abstraction every provisioning task implements.

A task is a recipe with four capabilities:

    detect_state(ctx)    → TaskState (absent / present / stale)
    apply_install(ctx)   → mutate the host until the component is present
    apply_uninstall(ctx) → reverse it
    profile_lines(ctx)   → exact shell-profile lines the task owns

The state machine around them (presence check, skip, profile edits,
verification, failure isolation) lives in ``core/engine/executor.py``;
subclasses only describe *what* to install.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Literal

from devsetup.core.errors import TaskError
from devsetup.core.services.detection import TaskState

if TYPE_CHECKING:
    from devsetup.adapters.shell.command import CommandResult
    from devsetup.core.context import RunContext

logger = logging.getLogger(__name__)

Category = Literal["security", "shell", "dev-tool", "system"]


class ProvisionTask(ABC):
    """Base class for every catalog entry.

    Class attributes subclasses commonly set:
        PROFILE_LINES: Profile lines owned by the task.  ``{home}`` is
            replaced with the target home directory.
        BEST_EFFORT_UNINSTALL: Non-empty when the uninstaller is known
            to be incomplete; the text is shown to the operator.
    """

    PROFILE_LINES: tuple[str, ...] = ()
    BEST_EFFORT_UNINSTALL: str = ""

    def __init__(
        self,
        id: str,
        label: str,
        category: Category,
        *,
        refresh: Literal["if_missing", "always"] = "if_missing",
    ):
        self.id = id
        self.label = label
        self.category = category
        self.refresh = refresh

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id!r}>"

    # ── Capabilities ────────────────────────────────────────────

    @abstractmethod
    def detect_state(self, ctx: RunContext) -> TaskState:
        """Query the host. Must not mutate anything."""

    @abstractmethod
    def apply_install(self, ctx: RunContext) -> None:
        """Bring the component to PRESENT. Raises TaskError on a failed step."""

    def apply_uninstall(self, ctx: RunContext) -> None:
        """Bring the component to ABSENT. Absent components are a no-op."""
        raise NotImplementedError(f"{self.id} has no uninstaller")

    @property
    def has_uninstaller(self) -> bool:
        return type(self).apply_uninstall is not ProvisionTask.apply_uninstall

    def verify(self, ctx: RunContext) -> bool:
        """Post-install check. Defaults to re-running detection."""
        return self.detect_state(ctx) is not TaskState.ABSENT

    def profile_lines(self, ctx: RunContext) -> tuple[str, ...]:
        home = str(ctx.identity.home)
        return tuple(line.replace("{home}", home) for line in self.PROFILE_LINES)

    @property
    def writes_profile(self) -> bool:
        return bool(self.PROFILE_LINES)

    # ── Step helpers ────────────────────────────────────────────

    def run(
        self,
        ctx: RunContext,
        cmd: list[str] | str,
        step: str,
        **kwargs,
    ) -> CommandResult:
        """Run a required step; raise TaskError if it fails."""
        result = ctx.runner.run(cmd, **kwargs)
        if not result.ok:
            raise TaskError(self.id, step, result.detail)
        return result

    def run_as_user(
        self,
        ctx: RunContext,
        cmd: list[str] | str,
        step: str,
        **kwargs,
    ) -> CommandResult:
        """Required step executed as the target identity."""
        return self.run(ctx, cmd, step, as_user=ctx.identity, **kwargs)

    def best_effort(
        self,
        ctx: RunContext,
        cmd: list[str] | str,
        step: str,
        **kwargs,
    ) -> bool:
        """Run a step that may fail without failing the task."""
        result = ctx.runner.run(cmd, **kwargs)
        if not result.ok:
            ctx.log.info(f"{step} skipped ({result.detail})")
            logger.info("[%s] best-effort step failed: %s: %s", self.id, step, result.detail)
        return result.ok
