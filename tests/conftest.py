"""
Shared test fixtures and configuration.

Nothing here touches the real host: commands go through a recording
runner and the target home lives under ``tmp_path``.
"""

import os
import pwd
from pathlib import Path

import pytest

from devsetup.adapters.mock import RecordingRunner
from devsetup.core.context import RunContext
from devsetup.core.identity import TargetIdentity
from devsetup.core.models.settings import Settings
from devsetup.core.observability.execution_log import ExecutionLog


class PackageHostRunner(RecordingRunner):
    """Recording runner that also simulates the dpkg database.

    ``apt-get install`` marks packages installed, ``apt-get purge``
    removes them, and ``dpkg-query`` answers from that set.
    """

    def __init__(self, installed=()):
        super().__init__()
        self.installed: set[str] = set(installed)

    def run(self, cmd, **kwargs):
        result = super().run(cmd, **kwargs)
        if isinstance(cmd, str) or not result.ok:
            return result
        if cmd[:3] == ["apt-get", "install", "-y"]:
            self.installed.update(cmd[3:])
        elif cmd[:3] == ["apt-get", "purge", "-y"]:
            self.installed.difference_update(cmd[3:])
        elif cmd[0] == "dpkg-query":
            status = "install ok installed" if cmd[-1] in self.installed else ""
            return result.model_copy(update={"stdout": status})
        return result


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def identity(tmp_path: Path) -> TargetIdentity:
    """A target identity for the current account, with its home in tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    try:
        user = pwd.getpwuid(os.getuid()).pw_name
    except KeyError:
        user = "tester"
    return TargetIdentity(
        user=user,
        home=home,
        uid=os.getuid(),
        gid=os.getgid(),
    )


@pytest.fixture
def runner() -> PackageHostRunner:
    return PackageHostRunner()


@pytest.fixture
def settings() -> Settings:
    return Settings(handoff_shell=False)


@pytest.fixture
def ctx(identity, runner, settings, tmp_path: Path) -> RunContext:
    """Run context wired to the recording runner, no colour on output."""
    return RunContext(
        identity=identity,
        settings=settings,
        runner=runner,
        log=ExecutionLog(log_file=tmp_path / "run.log", color=False),
    )
