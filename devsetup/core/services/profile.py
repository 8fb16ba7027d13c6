"""
Shell-profile mutator — idempotent line edits on the target's startup file.

The profile is treated as an ordered list of lines.  Two primitives:

    ensure_line_present(marker, content)
        Append ``content`` unless a line matching ``marker`` exists.
        A string marker matches a whole line (surrounding whitespace
        ignored); a compiled pattern matches with ``re.search``.

    ensure_line_absent(pattern)
        Remove every matching line, however many copies a previous
        run left behind.

There is no cache: every call re-reads the file, so manual edits made
between tasks are respected.  Files created or rewritten here are
owned by the target identity, never by root.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from devsetup.adapters.shell.filesystem import backup_file, write_file
from devsetup.core.identity import TargetIdentity

logger = logging.getLogger(__name__)

# Undecodable bytes round-trip untouched
ENCODING_ERRORS = "surrogateescape"

Marker = str | re.Pattern[str]


def _matches(line: str, marker: Marker) -> bool:
    if isinstance(marker, re.Pattern):
        return marker.search(line) is not None
    return line.strip() == marker.strip()


class ShellProfile:
    """The target identity's shell startup file."""

    def __init__(self, identity: TargetIdentity, name: str = ".zshrc"):
        self.identity = identity
        self.path: Path = identity.path(name)

    def __repr__(self) -> str:
        return f"<ShellProfile {self.path}>"

    # ── Reading ─────────────────────────────────────────────────

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def lines(self) -> list[str]:
        if not self.path.is_file():
            return []
        return self.path.read_text(encoding="utf-8", errors=ENCODING_ERRORS).splitlines()

    def count(self, marker: Marker) -> int:
        return sum(1 for line in self.lines() if _matches(line, marker))

    def contains(self, marker: Marker) -> bool:
        return self.count(marker) > 0

    # ── Mutation ────────────────────────────────────────────────

    def _write_lines(self, lines: list[str]) -> None:
        text = "\n".join(lines)
        if lines:
            text += "\n"
        write_file(self.path, text, owner=self.identity, errors=ENCODING_ERRORS)

    def ensure_line_present(self, marker: Marker, content: str | None = None) -> bool:
        """Append ``content`` unless a line matching ``marker`` is present.

        ``content`` defaults to the marker itself (exact-line form).

        Returns:
            True if the profile was modified.
        """
        if content is None:
            if isinstance(marker, re.Pattern):
                raise ValueError("content is required when marker is a pattern")
            content = marker

        current = self.lines()
        if any(_matches(line, marker) for line in current):
            return False

        current.extend(content.rstrip("\n").splitlines())
        self._write_lines(current)
        logger.debug("Profile %s: appended %r", self.path, content)
        return True

    def ensure_line_absent(self, pattern: Marker) -> int:
        """Remove every line matching ``pattern``.

        Returns:
            Number of lines removed (0 when the file doesn't exist).
        """
        current = self.lines()
        kept = [line for line in current if not _matches(line, pattern)]
        removed = len(current) - len(kept)
        if removed:
            self._write_lines(kept)
            logger.debug("Profile %s: removed %d line(s) matching %r", self.path, removed, pattern)
        return removed

    def ensure_lines_present(self, lines: Iterable[str]) -> list[str]:
        """Exact-line form of ``ensure_line_present`` for a whole stanza."""
        return [line for line in lines if self.ensure_line_present(line)]

    def ensure_lines_absent(self, lines: Iterable[str]) -> int:
        """Exact-line form of ``ensure_line_absent`` for a whole stanza."""
        return sum(self.ensure_line_absent(line) for line in lines)

    def recreate(self, content: str) -> Path | None:
        """Back up any existing profile and write ``content`` in its place.

        Returns:
            The backup path, or None if there was no previous profile.
        """
        backup = backup_file(self.path, owner=self.identity)
        write_file(self.path, content, owner=self.identity, errors=ENCODING_ERRORS)
        return backup
