"""
Task registry — the fixed catalog, its menu order and its install order.

Selectors ``1``–``21`` keep their historical numbering; ``22``–``24``
are the security hardening and prompt tasks.  The install order is
hand-picked, not derived:

    - system prerequisites first (package lists, compilers, terminfo)
    - security hardening before anything that opens a network service
    - the shell task before every task that owns profile lines

Uninstall-all is the exact reverse, so the shell is removed only after
every tool whose lines live in its profile.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from devsetup.core.errors import ConfigError, SelectionError
from devsetup.core.tasks.apt import AptRepoTask, AptTask, SystemUpdateTask
from devsetup.core.tasks.base import ProvisionTask
from devsetup.core.tasks.languages import GoTask, NvmNodeTask, PythonPoetryTask, RustTask
from devsetup.core.tasks.shell import ProfileTask, StarshipTask, ZshTask
from devsetup.core.tasks.system import (
    DevDirectoryTask,
    Fail2banTask,
    FirewallTask,
    SshPriorityTask,
)
from devsetup.core.tasks.tools import NeovimTask, NerdFontTask, TmuxTask

if TYPE_CHECKING:
    from devsetup.core.context import RunContext
    from devsetup.core.models.settings import Settings

SHELL_TASK_ID = "4"

INSTALL_ORDER: tuple[str, ...] = (
    "1", "2", "3",
    "22", "23",
    "4",
    "5", "6", "7", "8", "9", "10", "11", "12", "13", "14", "15", "16", "17",
    "24",
    "18", "19", "20", "21",
)


def build_tasks() -> list[ProvisionTask]:
    """Instantiate the catalog in menu order."""
    zsh = ZshTask(SHELL_TASK_ID, "Install ZSH and set as default shell")
    tasks: list[ProvisionTask] = [
        SystemUpdateTask("1", "Update system packages"),
        AptTask(
            "2", "Install essential build tools", "dev-tool",
            ("build-essential", "make", "libssl-dev", "libghc-zlib-dev",
             "libcurl4-gnutls-dev", "libexpat1-dev", "gettext", "unzip",
             "gfortran", "libopenblas-dev", "cmake"),
        ),
        AptTask(
            "3", "Install modern terminal definitions (Fix for Kitty terminal)", "system",
            ("ncurses-term",),
        ),
        zsh,
        AptRepoTask(
            "5", "Install Git and GitHub CLI", "dev-tool", ("gh",),
            base_packages=("git",),
            key_url="https://cli.github.com/packages/githubcli-archive-keyring.gpg",
            keyring="/usr/share/keyrings/githubcli-archive-keyring.gpg",
            source_list="/etc/apt/sources.list.d/github-cli.list",
            repo_line=(
                "deb [arch={arch} signed-by={keyring}] "
                "https://cli.github.com/packages stable main"
            ),
        ),
        AptTask(
            "6", "Install utilities (curl, wget, htop, iotop, tree, lsd)", "dev-tool",
            ("curl", "wget", "htop", "tree", "iotop", "lsd"),
        ),
        AptTask(
            "7", "Install search tools (fzf, ripgrep, fd)", "dev-tool",
            ("fzf", "ripgrep", "fd-find"),
            profile_lines=("alias fd=fdfind",),
        ),
        AptTask("8", "Install Lua 5.1 and LuaJIT", "dev-tool", ("lua5.1", "luajit")),
        AptTask("9", "Install LuaRocks", "dev-tool", ("luarocks",)),
        NvmNodeTask("10", "Install NVM and Node.js", "dev-tool"),
        NerdFontTask("11", "Install Nerd Font", "dev-tool"),
        RustTask("12", "Install Rust", "dev-tool"),
        AptRepoTask(
            "13", "Install Docker", "dev-tool",
            ("docker-ce", "docker-ce-cli", "containerd.io",
             "docker-buildx-plugin", "docker-compose-plugin"),
            key_url="https://download.docker.com/linux/debian/gpg",
            keyring="/etc/apt/keyrings/docker.gpg",
            source_list="/etc/apt/sources.list.d/docker.list",
            repo_line=(
                "deb [arch={arch} signed-by={keyring}] "
                "https://download.docker.com/linux/{distro} {codename} stable"
            ),
            dearmor=True,
        ),
        PythonPoetryTask("14", "Install Poetry and Python from source"),
        TmuxTask("15", "Install tmux from source"),
        GoTask("16", "Install Go"),
        NeovimTask("17", "Install Neovim and LazyVim", "dev-tool"),
        SshPriorityTask("18", "Configure SSH with real-time priority"),
        AptTask("19", "Install rsync", "dev-tool", ("rsync",)),
        DevDirectoryTask("20", "Create DEV directory", "system"),
        ProfileTask(
            "21", "Apply additional ZSH optimizations", "shell",
            (
                "# ZSH performance optimizations",
                "alias update='sudo apt update && sudo apt upgrade -y'",
                "alias install='sudo apt install -y'",
            ),
        ),
        FirewallTask("22", "Configure firewall (ufw)"),
        Fail2banTask("23", "Install fail2ban brute-force protection"),
        StarshipTask("24", "Install Starship prompt"),
    ]
    registry = TaskRegistry(tasks)
    zsh.preserve = registry.owned_profile_lines
    return tasks


class TaskRegistry:
    """Read-only view over the catalog."""

    def __init__(self, tasks: Iterable[ProvisionTask] | None = None, order: Iterable[str] = INSTALL_ORDER):
        self._tasks: dict[str, ProvisionTask] = {}
        for task in tasks if tasks is not None else build_tasks():
            if task.id in self._tasks:
                raise ValueError(f"Duplicate task id: {task.id}")
            self._tasks[task.id] = task
        self._order = tuple(order)
        unknown = [tid for tid in self._order if tid not in self._tasks]
        if unknown:
            raise ValueError(f"Install order names unknown tasks: {unknown}")

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, selector: str) -> bool:
        return selector in self._tasks

    def get_task(self, selector: str) -> ProvisionTask:
        """Look up a task by selector.

        Raises:
            SelectionError: If no task has that selector.
        """
        try:
            return self._tasks[selector]
        except KeyError:
            raise SelectionError(selector) from None

    def all_tasks(self) -> list[ProvisionTask]:
        """Catalog in menu (numeric) order."""
        return sorted(self._tasks.values(), key=lambda t: int(t.id))

    def install_order(self) -> list[ProvisionTask]:
        return [self._tasks[tid] for tid in self._order]

    def uninstall_order(self) -> list[ProvisionTask]:
        return [t for t in reversed(self.install_order()) if t.has_uninstaller]

    def profile_writers(self) -> list[ProvisionTask]:
        return [t for t in self.install_order() if t.writes_profile]

    def check_settings(self, settings: Settings) -> None:
        """Reject per-task overrides that name no catalog task.

        Raises:
            ConfigError: On an unknown task id under ``refresh``.
        """
        unknown = sorted(tid for tid in settings.refresh if tid not in self._tasks)
        if unknown:
            raise ConfigError(f"refresh: unknown task id(s): {', '.join(unknown)}")

    def owned_profile_lines(self, ctx: RunContext) -> list[str]:
        """Every profile line owned by some task other than the shell task."""
        lines: list[str] = []
        for task in self._tasks.values():
            if task.id != SHELL_TASK_ID:
                lines.extend(task.profile_lines(ctx))
        return lines


def default_registry() -> TaskRegistry:
    return TaskRegistry(build_tasks())
