"""Adapters — bindings to the host (processes, filesystem).

Public re-exports for convenient access.
"""

from devsetup.adapters.mock import RecordingRunner
from devsetup.adapters.shell.command import CommandResult, CommandRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "RecordingRunner",
]
