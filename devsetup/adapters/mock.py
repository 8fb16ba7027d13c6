"""
Recording runner — test double for ``CommandRunner``.

Records every command it receives and returns success unless a
response has been scripted for a matching command.  Matching is by
substring of the displayed command, first match wins.
"""

from __future__ import annotations

from dataclasses import dataclass

from devsetup.adapters.shell.command import CommandResult, CommandRunner, _display


@dataclass
class RecordedCall:
    command: str
    as_user: str | None
    shell: bool


class RecordingRunner(CommandRunner):
    """Runner that never touches the host."""

    def __init__(self, default_stdout: str = ""):
        self._default_stdout = default_stdout
        self._responses: list[tuple[str, CommandResult]] = []
        self._call_log: list[RecordedCall] = []

    @property
    def call_log(self) -> list[RecordedCall]:
        return self._call_log

    @property
    def commands(self) -> list[str]:
        return [c.command for c in self._call_log]

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def set_response(
        self, match: str, *, ok: bool = True, stdout: str = "", stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        """Script the result for commands containing ``match``."""
        self._responses.append((
            match,
            CommandResult(
                command=match,
                ok=ok,
                returncode=(0 if ok else 1) if returncode is None else returncode,
                stdout=stdout,
                stderr=stderr,
            ),
        ))

    def set_failure(self, match: str, stderr: str = "mock failure") -> None:
        self.set_response(match, ok=False, stderr=stderr)

    def ran(self, fragment: str) -> bool:
        """Whether any recorded command contains ``fragment``."""
        return any(fragment in c for c in self.commands)

    def reset(self) -> None:
        self._call_log.clear()

    def run(self, cmd, *, as_user=None, shell=False, cwd=None,
            env_overrides=None, input_text=None, timeout=None) -> CommandResult:
        display = _display(cmd)
        self._call_log.append(RecordedCall(
            command=display,
            as_user=as_user.user if as_user is not None else None,
            shell=shell,
        ))
        for match, result in self._responses:
            if match in display:
                return result.model_copy(update={"command": display})
        return CommandResult(
            command=display, ok=True, returncode=0, stdout=self._default_stdout,
        )
