"""
Exception hierarchy.

Only pre-flight errors (privilege, identity, config) ever reach the CLI.
``TaskError`` is caught at the task boundary by the engine executor and
``SelectionError`` per token by the menu.
"""

from __future__ import annotations


class DevSetupError(Exception):
    """Base class for every error raised by devsetup."""


class PrivilegeError(DevSetupError):
    """Raised when the process is not running with administrative privilege."""


class IdentityError(DevSetupError):
    """Raised when the target account cannot be resolved."""


class ConfigError(DevSetupError):
    """Raised when settings are invalid or unreadable."""


class SelectionError(DevSetupError):
    """Raised for a menu token that names no task."""

    def __init__(self, token: str):
        super().__init__(f"Invalid choice: {token}")
        self.token = token


class TaskError(DevSetupError):
    """A step inside one task failed; the task is recorded as failed."""

    def __init__(self, task_id: str, step: str, detail: str = ""):
        message = f"[{task_id}] {step}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.task_id = task_id
        self.step = step
        self.detail = detail
