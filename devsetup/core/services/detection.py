"""
Host detection — read-only probes used by ``detect_state``.

Package-manager queries, command lookup and version parsing.  None of
these mutate anything; they only feed the tri-state decision in the
engine (absent / present / stale).
"""

from __future__ import annotations

import enum
import logging
import os
import re
import shutil
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devsetup.adapters.shell.command import CommandRunner
    from devsetup.core.identity import TargetIdentity

logger = logging.getLogger(__name__)


class TaskState(str, enum.Enum):
    """Current state of a task's component on the host."""

    ABSENT = "absent"
    PRESENT = "present"      # present at the desired version
    STALE = "stale"          # present, other version (or partially installed)


# Directories that sudo's secure_path and a fresh root login leave off PATH.
_EXTRA_BIN_DIRS = ("/usr/local/bin", "/usr/local/go/bin")
_USER_BIN_DIRS = (".cargo/bin", ".local/bin")


def package_installed(runner: CommandRunner, name: str) -> bool:
    """Whether dpkg reports ``name`` as fully installed."""
    result = runner.run(["dpkg-query", "-W", "-f=${Status}", name])
    return result.ok and "install ok installed" in result.stdout


def packages_state(runner: CommandRunner, names: Iterable[str]) -> TaskState:
    """Collapse per-package presence into a task state.

    All installed → PRESENT, none → ABSENT, some → STALE (partial install).
    """
    flags = [package_installed(runner, n) for n in names]
    if flags and all(flags):
        return TaskState.PRESENT
    if any(flags):
        return TaskState.STALE
    return TaskState.ABSENT


def installed_packages(runner: CommandRunner, names: Iterable[str]) -> list[str]:
    return [n for n in names if package_installed(runner, n)]


def command_path(name: str, identity: TargetIdentity | None = None) -> str | None:
    """Locate ``name`` on PATH plus the well-known install directories."""
    search = [os.environ.get("PATH", ""), *_EXTRA_BIN_DIRS]
    if identity is not None:
        search.extend(str(identity.path(d)) for d in _USER_BIN_DIRS)
    return shutil.which(name, path=os.pathsep.join(p for p in search if p))


def command_version(
    runner: CommandRunner,
    cmd: list[str],
    pattern: str,
) -> str | None:
    """Run a ``--version`` style command and extract the version.

    Some tools print their version on stderr; both streams are searched.

    Returns:
        The first regex group, or None if the command fails or doesn't match.
    """
    result = runner.run(cmd)
    if not result.ok:
        return None
    match = re.search(pattern, (result.stdout or "") + (result.stderr or ""))
    return match.group(1) if match else None


def version_state(found: str | None, wanted: str) -> TaskState:
    """Tri-state from a detected version versus the pinned one."""
    if found is None:
        return TaskState.ABSENT
    if found == wanted:
        return TaskState.PRESENT
    return TaskState.STALE
