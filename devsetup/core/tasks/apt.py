"""
APT-backed tasks.

``AptTask`` covers most of the catalog: a package list, optionally some
owned profile lines.  ``AptRepoTask`` adds a third-party signing key and
source list first.  ``SystemUpdateTask`` repairs the package sources and
upgrades the system; it has no uninstaller.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.adapters.shell.filesystem import remove_path, write_if_changed
from devsetup.core.errors import TaskError
from devsetup.core.services import apt
from devsetup.core.services.detection import (
    TaskState,
    installed_packages,
    packages_state,
)
from devsetup.core.services.download import DownloadError, download_file, scratch_dir
from devsetup.core.tasks.base import ProvisionTask

if TYPE_CHECKING:
    from devsetup.core.context import RunContext

logger = logging.getLogger(__name__)


class AptTask(ProvisionTask):
    """Install a fixed package list; uninstall purges what is installed."""

    def __init__(self, id, label, category, packages, *, profile_lines=(), **kwargs):
        super().__init__(id, label, category, **kwargs)
        self.packages = tuple(packages)
        if profile_lines:
            self.PROFILE_LINES = tuple(profile_lines)

    def detect_state(self, ctx: RunContext) -> TaskState:
        return packages_state(ctx.runner, self.packages)

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        result = apt.install(ctx.runner, self.packages)
        if not result.ok:
            raise TaskError(
                self.id, f"Failed to install {' '.join(self.packages)}", result.detail,
            )

    def apply_uninstall(self, ctx: RunContext) -> None:
        present = installed_packages(ctx.runner, self.packages)
        if not present:
            logger.info("[%s] no packages installed, nothing to purge", self.id)
            return
        result = apt.purge(ctx.runner, present)
        if not result.ok:
            raise TaskError(self.id, f"Failed to purge {' '.join(present)}", result.detail)


class AptRepoTask(AptTask):
    """Packages from a third-party APT repository.

    The signing key and source list are written only when missing or
    different, so re-running never duplicates repository entries.
    """

    PREREQUISITES = ("ca-certificates", "curl", "gnupg")

    def __init__(
        self,
        id,
        label,
        category,
        packages,
        *,
        key_url: str,
        keyring: Path,
        source_list: Path,
        repo_line: str,
        dearmor: bool = False,
        base_packages=(),
        **kwargs,
    ):
        super().__init__(id, label, category, packages, **kwargs)
        self.key_url = key_url
        self.keyring = Path(keyring)
        self.source_list = Path(source_list)
        self.repo_line = repo_line
        self.dearmor = dearmor
        self.base_packages = tuple(base_packages)

    @property
    def all_packages(self) -> tuple[str, ...]:
        return self.base_packages + self.packages

    def detect_state(self, ctx: RunContext) -> TaskState:
        state = packages_state(ctx.runner, self.all_packages)
        if state is TaskState.PRESENT and not self.source_list.is_file():
            return TaskState.STALE
        return state

    def render_repo_line(self, ctx: RunContext) -> str:
        arch = ctx.runner.run(["dpkg", "--print-architecture"]).stdout.strip() or "amd64"
        release = _os_release()
        codename = release.get("VERSION_CODENAME", "stable")
        distro = release.get("ID", "debian")
        return (
            self.repo_line
            .replace("{arch}", arch)
            .replace("{codename}", codename)
            .replace("{distro}", distro)
            .replace("{keyring}", str(self.keyring))
        )

    def apply_install(self, ctx: RunContext) -> None:
        if self.base_packages:
            self.run(ctx, ["apt-get", "install", "-y", *self.base_packages],
                     f"Failed to install {' '.join(self.base_packages)}")
        self.run(ctx, ["apt-get", "install", "-y", *self.PREREQUISITES],
                 "Failed to install repository prerequisites")

        if not self.keyring.is_file():
            self._install_keyring(ctx)

        if write_if_changed(self.source_list, self.render_repo_line(ctx) + "\n", mode=0o644):
            logger.info("[%s] wrote %s", self.id, self.source_list)
            self.run(ctx, ["apt-get", "update", "-y"], "Failed to update package lists")

        super().apply_install(ctx)

    def _install_keyring(self, ctx: RunContext) -> None:
        workdir = scratch_dir(f"key-{self.id}")
        try:
            key = download_file(self.key_url, workdir / "key")
            self.keyring.parent.mkdir(parents=True, exist_ok=True)
            if self.dearmor:
                self.run(ctx, ["gpg", "--dearmor", "--yes", "-o", str(self.keyring), str(key)],
                         "Failed to import signing key")
            else:
                self.keyring.write_bytes(key.read_bytes())
            self.keyring.chmod(0o644)
        except DownloadError as e:
            raise TaskError(self.id, "Failed to download signing key", str(e)) from e
        finally:
            remove_path(workdir)

    def apply_uninstall(self, ctx: RunContext) -> None:
        present = installed_packages(ctx.runner, self.all_packages)
        if present:
            self.run(ctx, ["apt-get", "purge", "-y", *present],
                     f"Failed to purge {' '.join(present)}")
        removed = [p for p in (self.source_list, self.keyring) if remove_path(p)]
        if removed:
            self.best_effort(ctx, ["apt-get", "update", "-y"], "Package list refresh")


def _os_release(path: Path = Path("/etc/os-release")) -> dict[str, str]:
    data: dict[str, str] = {}
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            if "=" in line:
                key, _, value = line.partition("=")
                data[key.strip()] = value.strip().strip('"')
    except OSError:
        pass
    return data


class SystemUpdateTask(ProvisionTask):
    """Repair apt sources, refresh lists and upgrade installed packages.

    Always runs: there is no "already up to date" state worth probing
    for, the package manager is idempotent on its own.
    """

    def __init__(self, id, label, category="system", *, sources_dir: Path = apt.APT_SOURCES_DIR):
        super().__init__(id, label, category, refresh="always")
        self.sources_dir = Path(sources_dir)

    def detect_state(self, ctx: RunContext) -> TaskState:
        return TaskState.STALE

    def verify(self, ctx: RunContext) -> bool:
        return True

    def fix_sources(self, ctx: RunContext) -> bool:
        ctx.log.info("Checking package repositories for errors...")
        for source in apt.disable_corrupt_sources(self.sources_dir):
            ctx.log.info(f"Found corrupted source file: {source}, backed up and disabled it")

        if apt.update(ctx.runner).ok:
            return True

        ctx.log.info("Attempting stronger fix for package repositories...")
        apt.quarantine_all_sources(self.sources_dir)
        if apt.update(ctx.runner).ok:
            return True
        ctx.log.info("Unable to fix package repositories. Continuing anyway...")
        return False

    def apply_install(self, ctx: RunContext) -> None:
        self.fix_sources(ctx)
        result = apt.update(ctx.runner)
        if not result.ok:
            raise TaskError(self.id, "Failed to update package lists", result.detail)
        result = apt.upgrade(ctx.runner)
        if not result.ok:
            raise TaskError(self.id, "Failed to upgrade packages", result.detail)
