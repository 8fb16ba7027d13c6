"""
Identity resolver — who the provisioning is *for*.

The tool runs as root (system packages, systemd units, global config)
but user-scoped installs must land in the invoking user's home, owned
by that user.  Under ``sudo`` the invoking user is named by
``SUDO_USER``; without it the process owner is the target.

Home directories come from the passwd database, never from ``$HOME``,
which under sudo may still point at the invoking user's home or at
root's depending on sudoers policy.
"""

from __future__ import annotations

import logging
import os
import pwd
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from devsetup.core.errors import IdentityError, PrivilegeError

logger = logging.getLogger(__name__)

ESCALATION_ENV_VAR = "SUDO_USER"


class TargetIdentity(BaseModel):
    """The resolved real user, fixed for the process lifetime."""

    model_config = ConfigDict(frozen=True)

    user: str
    home: Path
    uid: int
    gid: int

    @property
    def is_root(self) -> bool:
        return self.uid == 0

    def path(self, *parts: str) -> Path:
        """A path inside the target home."""
        return self.home.joinpath(*parts)


def require_root(euid: int | None = None) -> None:
    """Fail fast unless running with administrative privilege.

    Raises:
        PrivilegeError: If the effective uid is not 0.
    """
    if euid is None:
        euid = os.geteuid()
    if euid != 0:
        raise PrivilegeError("Please run as root or with sudo")


def resolve_identity(
    environ: Mapping[str, str] | None = None,
    uid: int | None = None,
) -> TargetIdentity:
    """Resolve ``(target_user, target_home)`` from the escalation context.

    Args:
        environ: Environment to inspect (default: ``os.environ``).
        uid: Real uid of the process (default: ``os.getuid()``), used when
            no escalation indicator is present.

    Raises:
        IdentityError: If the named account is not in the passwd database.
    """
    if environ is None:
        environ = os.environ

    sudo_user = environ.get(ESCALATION_ENV_VAR, "").strip()
    if uid is None:
        uid = os.getuid()
    try:
        if sudo_user:
            entry = pwd.getpwnam(sudo_user)
        else:
            entry = pwd.getpwuid(uid)
    except KeyError as e:
        who = sudo_user or f"uid {uid}"
        raise IdentityError(f"Unknown account: {who}") from e

    identity = TargetIdentity(
        user=entry.pw_name,
        home=Path(entry.pw_dir),
        uid=entry.pw_uid,
        gid=entry.pw_gid,
    )
    logger.info("Target identity: %s (%s)", identity.user, identity.home)
    return identity
