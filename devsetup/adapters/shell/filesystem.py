"""
Filesystem adapter — user-owned file and directory operations.

The process runs as root, so anything created under the target's home
must be handed back to the target account.  These helpers write, create
and back up files and then ``chown`` them, keeping the rule "user-scoped
files are never owned by root" in one place.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devsetup.core.identity import TargetIdentity

logger = logging.getLogger(__name__)


def chown_to(path: Path, owner: TargetIdentity | None) -> None:
    """Give ``path`` to ``owner`` (no-op when owner is None)."""
    if owner is None:
        return
    os.chown(path, owner.uid, owner.gid)


def chown_tree(root: Path, owner: TargetIdentity | None) -> None:
    """Recursively give ``root`` and everything below it to ``owner``."""
    if owner is None or not root.exists():
        return
    chown_to(root, owner)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            os.chown(Path(dirpath) / name, owner.uid, owner.gid, follow_symlinks=False)


def ensure_dir(path: Path, owner: TargetIdentity | None = None) -> Path:
    """Create ``path`` (and parents) and hand new levels to ``owner``."""
    missing: list[Path] = []
    probe = path
    while not probe.exists():
        missing.append(probe)
        probe = probe.parent
    path.mkdir(parents=True, exist_ok=True)
    for created in missing:
        chown_to(created, owner)
    return path


def write_file(
    path: Path,
    content: str,
    *,
    owner: TargetIdentity | None = None,
    mode: int | None = None,
    errors: str = "strict",
) -> Path:
    """Write ``content`` to ``path`` and set owner / mode.

    ``errors`` is the codec error handler; pass ``"surrogateescape"`` to
    write back undecodable bytes read with the same handler.
    """
    ensure_dir(path.parent, owner)
    path.write_text(content, encoding="utf-8", errors=errors)
    if mode is not None:
        path.chmod(mode)
    chown_to(path, owner)
    logger.debug("Wrote %d bytes to %s", len(content), path)
    return path


def write_if_changed(
    path: Path,
    content: str,
    *,
    owner: TargetIdentity | None = None,
    mode: int | None = None,
    errors: str = "strict",
) -> bool:
    """Write only when the file is missing or differs. Returns True if written."""
    if path.is_file() and path.read_text(encoding="utf-8", errors=errors) == content:
        return False
    write_file(path, content, owner=owner, mode=mode, errors=errors)
    return True


def backup_file(path: Path, owner: TargetIdentity | None = None) -> Path | None:
    """Move ``path`` aside to ``PATH.backup.YYYYMMDDHHMMSS``.

    Returns:
        The backup path, or None if ``path`` didn't exist.
    """
    if not path.exists():
        logger.debug("backup: path does not exist, skipping: %s", path)
        return None
    stamp = time.strftime("%Y%m%d%H%M%S")
    dest = path.with_name(f"{path.name}.backup.{stamp}")
    counter = 1
    while dest.exists():
        dest = path.with_name(f"{path.name}.backup.{stamp}.{counter}")
        counter += 1
    shutil.move(str(path), str(dest))
    chown_to(dest, owner)
    logger.info("Backed up %s → %s", path, dest)
    return dest


def remove_path(path: Path) -> bool:
    """Delete a file, symlink or directory tree. Returns True if something went."""
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False
