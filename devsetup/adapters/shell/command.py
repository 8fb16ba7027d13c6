"""
Shell command adapter — the single place where ``subprocess.run`` is called.

Every package-manager call, build step and bootstrap script goes
through ``CommandRunner.run``.  It never raises for a non-zero exit:
failures come back in the ``CommandResult`` and the task decides whether
the step was required or best-effort.

Commands run as the process itself (root) unless ``as_user`` is given,
in which case they run under the target account with a login
environment so per-user installers see the right ``$HOME``.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from devsetup.core.identity import TargetIdentity

logger = logging.getLogger(__name__)

# Output kept per stream in the result; the full text goes to the log.
_TAIL = 2000


class CommandResult(BaseModel):
    """Outcome of one command."""

    command: str
    ok: bool
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str = ""
    elapsed_ms: int = 0

    @property
    def detail(self) -> str:
        """Best single-line explanation of a failure."""
        if self.error:
            return self.error
        last = (self.stderr or self.stdout).strip().splitlines()
        tail = last[-1] if last else ""
        return f"exit {self.returncode}" + (f": {tail}" if tail else "")


def _display(cmd: list[str] | str) -> str:
    return cmd if isinstance(cmd, str) else shlex.join(cmd)


class CommandRunner:
    """Run host commands, as root or as the target identity."""

    def wrap_for_user(
        self, cmd: list[str] | str, identity: TargetIdentity,
    ) -> list[str]:
        """Build the argv that runs ``cmd`` as ``identity`` with a login env."""
        script = cmd if isinstance(cmd, str) else shlex.join(cmd)
        if identity.uid == os.geteuid():
            return ["bash", "-lc", script]
        return ["su", "-", identity.user, "-c", script]

    def run(
        self,
        cmd: list[str] | str,
        *,
        as_user: TargetIdentity | None = None,
        shell: bool = False,
        cwd: str | None = None,
        env_overrides: dict[str, str] | None = None,
        input_text: str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a command and return its result.

        Args:
            cmd: argv list, or a shell string when ``shell`` or ``as_user``.
            as_user: Run under this account instead of root.
            shell: Interpret ``cmd`` with ``/bin/sh`` (pipelines).
            cwd: Working directory.
            env_overrides: Extra environment variables.
            input_text: Data piped to stdin.
            timeout: Seconds before giving up. None waits indefinitely.
        """
        display = _display(cmd)
        argv: list[str] | str = cmd
        if as_user is not None:
            argv = self.wrap_for_user(cmd, as_user)
            shell = False

        env = os.environ.copy()
        env.setdefault("DEBIAN_FRONTEND", "noninteractive")
        if env_overrides:
            env.update(env_overrides)

        logger.debug(
            "Executing: %s%s", display, f" (as {as_user.user})" if as_user else "",
        )
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                shell=shell,
                cwd=cwd,
                env=env,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=display, ok=False, error=f"Command timed out ({timeout}s)",
            )
        except OSError as e:
            logger.debug("Subprocess error: %s", display, exc_info=True)
            return CommandResult(command=display, ok=False, error=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if proc.stdout:
            logger.debug("stdout [%s]:\n%s", display, proc.stdout.rstrip())
        if proc.stderr:
            logger.debug("stderr [%s]:\n%s", display, proc.stderr.rstrip())

        return CommandResult(
            command=display,
            ok=proc.returncode == 0,
            returncode=proc.returncode,
            stdout=(proc.stdout or "")[-_TAIL:],
            stderr=(proc.stderr or "")[-_TAIL:],
            elapsed_ms=elapsed_ms,
        )
