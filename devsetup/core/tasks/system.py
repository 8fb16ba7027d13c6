"""
System configuration and security hardening.

Firewall and fail2ban come first in the full install so nothing
network-facing is brought up on an unprotected host.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.adapters.shell.filesystem import ensure_dir, remove_path, write_if_changed
from devsetup.core.services.detection import TaskState, installed_packages
from devsetup.core.tasks.apt import AptTask
from devsetup.core.tasks.base import ProvisionTask

if TYPE_CHECKING:
    from devsetup.core.context import RunContext

logger = logging.getLogger(__name__)


SSH_PRIORITY_OVERRIDE = """\
[Service]
CPUSchedulingPolicy=rr
CPUSchedulingPriority=99
"""

FAIL2BAN_JAIL = """\
[DEFAULT]
bantime = 1h
findtime = 10m
maxretry = 5

[sshd]
enabled = true
port = ssh
backend = systemd
"""


class SshPriorityTask(ProvisionTask):
    """systemd drop-in giving sshd real-time CPU scheduling."""

    def __init__(
        self, id, label, category="system", *,
        dropin_dir: Path = Path("/etc/systemd/system/ssh.service.d"), **kwargs,
    ):
        super().__init__(id, label, category, **kwargs)
        self.dropin_dir = Path(dropin_dir)

    @property
    def override(self) -> Path:
        return self.dropin_dir / "override.conf"

    def detect_state(self, ctx: RunContext) -> TaskState:
        if not self.override.is_file():
            return TaskState.ABSENT
        if self.override.read_text(encoding="utf-8") == SSH_PRIORITY_OVERRIDE:
            return TaskState.PRESENT
        return TaskState.STALE

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def _reload(self, ctx: RunContext) -> None:
        self.run(ctx, ["systemctl", "daemon-reload"], "systemctl daemon-reload failed")
        self.run(ctx, ["systemctl", "restart", "ssh"], "Failed to restart ssh")

    def apply_install(self, ctx: RunContext) -> None:
        write_if_changed(self.override, SSH_PRIORITY_OVERRIDE, mode=0o644)
        self._reload(ctx)

    def apply_uninstall(self, ctx: RunContext) -> None:
        if not remove_path(self.override):
            return
        if self.dropin_dir.is_dir() and not any(self.dropin_dir.iterdir()):
            self.dropin_dir.rmdir()
        self._reload(ctx)


class DevDirectoryTask(ProvisionTask):
    """A user-owned ``~/DEV`` workspace directory."""

    NAME = "DEV"
    BEST_EFFORT_UNINSTALL = "~/DEV is only removed when empty; your projects are left alone."

    def path(self, ctx: RunContext) -> Path:
        return ctx.identity.path(self.NAME)

    def detect_state(self, ctx: RunContext) -> TaskState:
        return TaskState.PRESENT if self.path(ctx).is_dir() else TaskState.ABSENT

    def apply_install(self, ctx: RunContext) -> None:
        ensure_dir(self.path(ctx), ctx.identity)

    def apply_uninstall(self, ctx: RunContext) -> None:
        path = self.path(ctx)
        if not path.is_dir():
            return
        if any(path.iterdir()):
            ctx.log.info(f"{path} is not empty, leaving it in place")
            return
        path.rmdir()


class FirewallTask(AptTask):
    """ufw allowing SSH in, then enabled."""

    def __init__(self, id, label, category="security", **kwargs):
        super().__init__(id, label, category, ("ufw",), **kwargs)

    def _active(self, ctx: RunContext) -> bool:
        result = ctx.runner.run(["ufw", "status"])
        return result.ok and "Status: active" in result.stdout

    def detect_state(self, ctx: RunContext) -> TaskState:
        if not installed_packages(ctx.runner, self.packages):
            return TaskState.ABSENT
        return TaskState.PRESENT if self._active(ctx) else TaskState.STALE

    def apply_install(self, ctx: RunContext) -> None:
        if not installed_packages(ctx.runner, self.packages):
            super().apply_install(ctx)
        self.run(ctx, ["ufw", "allow", "OpenSSH"], "Failed to allow SSH through ufw")
        self.run(ctx, ["ufw", "--force", "enable"], "Failed to enable ufw")

    def apply_uninstall(self, ctx: RunContext) -> None:
        if not installed_packages(ctx.runner, self.packages):
            return
        self.best_effort(ctx, ["ufw", "--force", "disable"], "Disabling ufw")
        super().apply_uninstall(ctx)


class Fail2banTask(AptTask):
    """fail2ban with an sshd jail."""

    def __init__(
        self, id, label, category="security", *,
        jail_file: Path = Path("/etc/fail2ban/jail.local"), **kwargs,
    ):
        super().__init__(id, label, category, ("fail2ban",), **kwargs)
        self.jail_file = Path(jail_file)

    def detect_state(self, ctx: RunContext) -> TaskState:
        if not installed_packages(ctx.runner, self.packages):
            return TaskState.ABSENT
        if self.jail_file.is_file() and self.jail_file.read_text(encoding="utf-8") == FAIL2BAN_JAIL:
            return TaskState.PRESENT
        return TaskState.STALE

    def apply_install(self, ctx: RunContext) -> None:
        if not installed_packages(ctx.runner, self.packages):
            super().apply_install(ctx)
        changed = write_if_changed(self.jail_file, FAIL2BAN_JAIL, mode=0o644)
        self.run(ctx, ["systemctl", "enable", "--now", "fail2ban"], "Failed to enable fail2ban")
        if changed:
            self.run(ctx, ["systemctl", "restart", "fail2ban"], "Failed to restart fail2ban")

    def apply_uninstall(self, ctx: RunContext) -> None:
        if installed_packages(ctx.runner, self.packages):
            self.best_effort(ctx, ["systemctl", "disable", "--now", "fail2ban"], "Stopping fail2ban")
            super().apply_uninstall(ctx)
        remove_path(self.jail_file)
