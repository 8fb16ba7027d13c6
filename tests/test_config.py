"""
Tests for settings loading — YAML file, env overrides, validation errors.
"""

import textwrap
from pathlib import Path

import pytest

from devsetup.core.config import loader
from devsetup.core.config.loader import find_config_file, load_settings
from devsetup.core.errors import ConfigError
from devsetup.core.models.settings import Settings, Versions


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path):
    """No ambient config: env vars cleared, default path points nowhere."""
    monkeypatch.delenv("DEVSETUP_CONFIG", raising=False)
    monkeypatch.delenv("DEVSETUP_LOG_DIR", raising=False)
    monkeypatch.setattr(loader, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yml")


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "devsetup.yml"
    path.write_text(textwrap.dedent(content))
    return path


class TestFindConfigFile:
    def test_none_when_nothing_configured(self):
        assert find_config_file() is None

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "log_dir: /var/log\n")
        monkeypatch.setenv("DEVSETUP_CONFIG", str(path))
        assert find_config_file() == path

    def test_env_var_missing_file_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEVSETUP_CONFIG", str(tmp_path / "nope.yml"))
        with pytest.raises(ConfigError, match="not found"):
            find_config_file()

    def test_default_location_used_when_present(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "{}\n")
        monkeypatch.setattr(loader, "DEFAULT_CONFIG_PATH", path)
        assert find_config_file() == path


class TestLoadSettings:
    def test_defaults_without_file(self):
        settings = load_settings()
        assert settings == Settings()
        assert settings.profile_name == ".zshrc"
        assert settings.versions.node == "20.10.0"

    def test_full_file(self, tmp_path):
        path = _write(tmp_path, """\
            versions:
              go: "1.22.1"
              python: "3.11.9"
            profile_name: ".zshrc.local"
            log_dir: /var/log/devsetup
            handoff_shell: false
            refresh:
              "15": always
        """)
        settings = load_settings(path)
        assert settings.versions.go == "1.22.1"
        assert settings.versions.python_short == "3.11"
        assert settings.versions.tmux == Versions().tmux
        assert settings.profile_name == ".zshrc.local"
        assert settings.handoff_shell is False
        assert settings.refresh == {"15": "always"}

    def test_empty_file_is_defaults(self, tmp_path):
        assert load_settings(_write(tmp_path, "")) == Settings()

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(_write(tmp_path, "versions: [unclosed\n"))

    def test_non_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(_write(tmp_path, "- a\n- b\n"))

    def test_unknown_key_rejected(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings(_write(tmp_path, "colour: true\n"))

    def test_bad_refresh_policy_rejected(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(_write(tmp_path, "refresh:\n  '14': sometimes\n"))

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_settings(tmp_path)

    def test_log_dir_env_override(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "log_dir: /var/log\n")
        monkeypatch.setenv("DEVSETUP_LOG_DIR", str(tmp_path / "logs"))
        assert load_settings(path).log_dir == str(tmp_path / "logs")

    def test_unquoted_refresh_ids(self, tmp_path):
        settings = load_settings(_write(tmp_path, "refresh:\n  15: always\n  4: if_missing\n"))
        assert settings.refresh == {"15": "always", "4": "if_missing"}
