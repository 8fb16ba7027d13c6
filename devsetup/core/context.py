"""
Run context — everything a task needs, passed explicitly.

Built once at startup by main.py (or by a test fixture) and handed to
every task executor.  Holds the resolved identity, settings, the
command runner, the execution log and the shell profile.  The
identity and settings never change during a run; the log accumulates.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from devsetup.adapters.shell.command import CommandRunner
from devsetup.core.identity import TargetIdentity
from devsetup.core.models.settings import Settings
from devsetup.core.observability.execution_log import ExecutionLog
from devsetup.core.services.profile import ShellProfile


@dataclass
class RunContext:
    identity: TargetIdentity
    settings: Settings = field(default_factory=Settings)
    runner: CommandRunner = field(default_factory=CommandRunner)
    log: ExecutionLog = field(default_factory=ExecutionLog)
    profile: ShellProfile | None = None

    def __post_init__(self) -> None:
        if self.profile is None:
            self.profile = ShellProfile(self.identity, self.settings.profile_name)

    @property
    def versions(self):
        return self.settings.versions

    def refresh_policy(self, task_id: str, default: str) -> str:
        return self.settings.refresh.get(task_id, default)
