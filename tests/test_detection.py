"""
Tests for host queries — dpkg state, command lookup, version parsing.
"""

import os
from unittest.mock import patch

from devsetup.adapters.mock import RecordingRunner
from devsetup.core.services.detection import (
    TaskState,
    command_path,
    command_version,
    installed_packages,
    package_installed,
    packages_state,
    version_state,
)


class TestPackageQueries:
    def test_installed(self):
        runner = RecordingRunner()
        runner.set_response("dpkg-query", stdout="install ok installed")
        assert package_installed(runner, "git") is True

    def test_deinstalled_but_config_remains(self):
        runner = RecordingRunner()
        runner.set_response("dpkg-query", stdout="deinstall ok config-files")
        assert package_installed(runner, "git") is False

    def test_unknown_package(self):
        runner = RecordingRunner()
        runner.set_failure("dpkg-query", stderr="dpkg-query: no packages found matching nope")
        assert package_installed(runner, "nope") is False

    def test_states(self, runner):
        assert packages_state(runner, ["a", "b"]) is TaskState.ABSENT
        runner.installed.add("a")
        assert packages_state(runner, ["a", "b"]) is TaskState.STALE
        runner.installed.add("b")
        assert packages_state(runner, ["a", "b"]) is TaskState.PRESENT
        assert installed_packages(runner, ["b", "c", "a"]) == ["b", "a"]

    def test_empty_package_list_is_absent(self, runner):
        assert packages_state(runner, []) is TaskState.ABSENT


class TestCommandPath:
    def test_finds_user_bin_dirs(self, identity, monkeypatch):
        cargo_bin = identity.path(".cargo", "bin")
        cargo_bin.mkdir(parents=True)
        rustc = cargo_bin / "devsetup-fake-rustc"
        rustc.write_text("#!/bin/sh\n")
        rustc.chmod(0o755)
        monkeypatch.setenv("PATH", "/nonexistent")
        assert command_path("devsetup-fake-rustc", identity) == str(rustc)
        assert command_path("devsetup-fake-rustc") is None

    def test_extra_system_dirs_searched(self):
        with patch("devsetup.core.services.detection.shutil.which", return_value=None) as which:
            command_path("go")
        search = which.call_args.kwargs["path"].split(os.pathsep)
        assert "/usr/local/go/bin" in search
        assert "/usr/local/bin" in search


class TestVersions:
    def test_command_version_from_stdout(self):
        runner = RecordingRunner()
        runner.set_response("tmux -V", stdout="tmux 3.5a\n")
        assert command_version(runner, ["tmux", "-V"], r"tmux\s+(\S+)") == "3.5a"

    def test_command_version_from_stderr(self):
        runner = RecordingRunner()
        runner.set_response("python3.12", stderr="Python 3.12.3\n")
        assert command_version(runner, ["python3.12", "--version"], r"Python\s+(\S+)") == "3.12.3"

    def test_command_version_failure(self):
        runner = RecordingRunner()
        runner.set_failure("go version")
        assert command_version(runner, ["go", "version"], r"go(\S+)") is None

    def test_version_state(self):
        assert version_state(None, "1.0") is TaskState.ABSENT
        assert version_state("1.0", "1.0") is TaskState.PRESENT
        assert version_state("0.9", "1.0") is TaskState.STALE
