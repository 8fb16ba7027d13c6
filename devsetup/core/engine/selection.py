"""
Selection parsing — turn one line of menu input into a dispatch plan.

Recognized forms::

    q | Q          quit
    0              install everything, canonical order
    99             uninstall everything, reverse order (confirmed by the menu)
    3 7 u12 5      individual selectors, run in the order given;
                   ``u<id>`` uninstalls that task

Unknown tokens are kept in the plan as invalid entries rather than
rejecting the whole line, so the rest of the batch still runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from devsetup.core.tasks.base import ProvisionTask
from devsetup.core.tasks.catalog import TaskRegistry

QUIT_TOKENS = frozenset({"q", "Q"})
INSTALL_ALL = "0"
UNINSTALL_ALL = "99"
UNINSTALL_PREFIX = "u"


class SelectionKind(str, Enum):
    QUIT = "quit"
    INSTALL_ALL = "install_all"
    UNINSTALL_ALL = "uninstall_all"
    TASKS = "tasks"
    EMPTY = "empty"


@dataclass(frozen=True)
class SelectionEntry:
    """One token of a task list. ``task`` is None when the token is invalid."""

    token: str
    action: str = "install"
    task: ProvisionTask | None = None

    @property
    def valid(self) -> bool:
        return self.task is not None


@dataclass
class Selection:
    kind: SelectionKind
    entries: list[SelectionEntry] = field(default_factory=list)

    @property
    def invalid_tokens(self) -> list[str]:
        return [e.token for e in self.entries if not e.valid]


def _resolve(token: str, registry: TaskRegistry) -> SelectionEntry:
    action = "install"
    selector = token
    if token[:1] in (UNINSTALL_PREFIX, UNINSTALL_PREFIX.upper()) and len(token) > 1:
        action = "uninstall"
        selector = token[1:]
    if selector in registry:
        return SelectionEntry(token, action, registry.get_task(selector))
    return SelectionEntry(token, action)


def parse_selection(text: str, registry: TaskRegistry) -> Selection:
    """Parse a line of menu input.

    The distinguished tokens (quit, install all, uninstall all) only have
    their special meaning when they are the whole input.
    """
    tokens = text.split()
    if not tokens:
        return Selection(SelectionKind.EMPTY)
    if len(tokens) == 1:
        token = tokens[0]
        if token in QUIT_TOKENS:
            return Selection(SelectionKind.QUIT)
        if token == INSTALL_ALL:
            return Selection(SelectionKind.INSTALL_ALL)
        if token == UNINSTALL_ALL:
            return Selection(SelectionKind.UNINSTALL_ALL)
    return Selection(SelectionKind.TASKS, [_resolve(t, registry) for t in tokens])
