"""
Tests for the CLI entrypoint — pre-flight checks and the menu hand-off.
"""

from unittest.mock import patch

from click.testing import CliRunner

from devsetup.core.errors import ConfigError, PrivilegeError
from devsetup.main import cli


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "development environment" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_rejects_unknown_flags(self):
        result = CliRunner().invoke(cli, ["--yes"])
        assert result.exit_code == 2


class TestPreflight:
    def test_non_root_exits_1(self):
        with patch("devsetup.core.identity.os.geteuid", return_value=1000):
            result = CliRunner().invoke(cli, [])
        assert result.exit_code == 1
        assert "Please run as root or with sudo" in result.output

    def test_non_root_touches_nothing(self):
        with patch("devsetup.core.identity.require_root", side_effect=PrivilegeError("no")), \
             patch("devsetup.core.config.loader.load_settings") as load, \
             patch("devsetup.ui.cli.menu.Menu.loop") as loop:
            result = CliRunner().invoke(cli, [])
        assert result.exit_code == 1
        load.assert_not_called()
        loop.assert_not_called()

    def test_invalid_config_exits_1(self):
        with patch("devsetup.core.identity.require_root"), \
             patch("devsetup.core.config.loader.load_settings", side_effect=ConfigError("Invalid YAML in x")):
            result = CliRunner().invoke(cli, [])
        assert result.exit_code == 1
        assert "Invalid YAML" in result.output

    def test_refresh_for_unknown_task_exits_1(self, tmp_path, monkeypatch):
        (tmp_path / "devsetup.yml").write_text("refresh:\n  42: always\n")
        monkeypatch.setenv("DEVSETUP_CONFIG", str(tmp_path / "devsetup.yml"))
        with patch("devsetup.core.identity.require_root"), \
             patch("devsetup.ui.cli.menu.Menu.loop") as loop:
            result = CliRunner().invoke(cli, [])
        assert result.exit_code == 1
        assert "unknown task id(s): 42" in result.output
        loop.assert_not_called()


class TestSession:
    def test_quit_says_goodbye(self, tmp_path, monkeypatch, identity):
        monkeypatch.setenv("DEVSETUP_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("DEVSETUP_CONFIG", str(tmp_path / "devsetup.yml"))
        (tmp_path / "devsetup.yml").write_text("handoff_shell: false\n")
        with patch("devsetup.core.identity.require_root"), \
             patch("devsetup.core.identity.resolve_identity", return_value=identity), \
             patch("devsetup.core.observability.logging_config.setup_logging") as setup:
            result = CliRunner().invoke(cli, [], input="q\n")
        assert result.exit_code == 0
        assert "Exiting setup script. Goodbye!" in result.output
        log_file = setup.call_args.kwargs["log_file"]
        assert log_file.parent == tmp_path / "logs"
        assert log_file.name.startswith("dev-env-setup-")
