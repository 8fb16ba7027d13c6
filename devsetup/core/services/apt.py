"""
APT operations — install, purge, update and source-list repair.

Install and purge map one-to-one (purge is the undo of install).  Every
call goes through the command runner; nothing here raises for a failed
command, the caller inspects the result.
"""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devsetup.adapters.shell.command import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

APT_SOURCES_DIR = Path("/etc/apt/sources.list.d")

# Markers of a source list that was overwritten with an HTML error page
# or an apt error message instead of a deb line.
_CORRUPT_MARKERS = ("<!doctype",)
_CORRUPT_PREFIXES = ("E:",)


def install(runner: CommandRunner, packages: Iterable[str]) -> CommandResult:
    return runner.run(["apt-get", "install", "-y", *packages])


def purge(runner: CommandRunner, packages: Iterable[str]) -> CommandResult:
    return runner.run(["apt-get", "purge", "-y", *packages])


def update(runner: CommandRunner) -> CommandResult:
    return runner.run(["apt-get", "update", "-y"])


def upgrade(runner: CommandRunner) -> CommandResult:
    return runner.run(["apt-get", "upgrade", "-y"])


def autoremove_and_clean(runner: CommandRunner) -> bool:
    removed = runner.run(["apt-get", "autoremove", "-y"])
    cleaned = runner.run(["apt-get", "clean"])
    return removed.ok and cleaned.ok


def _is_corrupt(path: Path) -> bool:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    if any(m in text.lower() for m in _CORRUPT_MARKERS):
        return True
    return any(line.startswith(_CORRUPT_PREFIXES) for line in text.splitlines())


def disable_corrupt_sources(sources_dir: Path = APT_SOURCES_DIR) -> list[Path]:
    """Move corrupt ``*.list`` files aside and leave a placeholder comment.

    Returns:
        The source files that were disabled.
    """
    disabled: list[Path] = []
    if not sources_dir.is_dir():
        return disabled
    for source in sorted(sources_dir.glob("*.list")):
        if not source.is_file() or not _is_corrupt(source):
            continue
        backup = source.with_name(source.name + ".bak")
        shutil.move(str(source), str(backup))
        source.write_text(
            f"# Temporarily disabled due to errors - {time.strftime('%c')}\n",
            encoding="utf-8",
        )
        logger.warning("Disabled corrupt apt source %s (backup: %s)", source, backup)
        disabled.append(source)
    return disabled


def quarantine_all_sources(sources_dir: Path = APT_SOURCES_DIR) -> Path:
    """Move every ``*.list`` into a sibling backup directory.

    Last resort when ``apt-get update`` keeps failing.  An empty list
    file is left behind so the directory stays valid.
    """
    backup_dir = sources_dir.with_name(sources_dir.name + ".backup")
    backup_dir.mkdir(parents=True, exist_ok=True)
    for source in sources_dir.glob("*.list"):
        shutil.move(str(source), str(backup_dir / source.name))
    (sources_dir / "empty.list").touch()
    logger.warning("Moved all apt sources from %s to %s", sources_dir, backup_dir)
    return backup_dir
