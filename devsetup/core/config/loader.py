"""
Configuration loader — reads the optional settings YAML into a model.

There are no CLI flags; the file location comes from ``DEVSETUP_CONFIG``
or the system default ``/etc/devsetup.yml``.  A missing default file is
fine (built-in defaults apply); a missing *explicit* file is an error.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from devsetup.core.errors import ConfigError
from devsetup.core.models.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DEVSETUP_CONFIG"
LOG_DIR_ENV_VAR = "DEVSETUP_LOG_DIR"
DEFAULT_CONFIG_PATH = Path("/etc/devsetup.yml")


def find_config_file() -> Path | None:
    """Return the settings file to load, or None to use defaults.

    Raises:
        ConfigError: If ``DEVSETUP_CONFIG`` names a file that doesn't exist.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        return path

    if DEFAULT_CONFIG_PATH.is_file():
        return DEFAULT_CONFIG_PATH
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit settings file. If None, uses ``find_config_file()``.

    Returns:
        Validated Settings model, with env overrides applied.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    if path is None:
        path = find_config_file()

    data: dict = {}
    if path is not None:
        logger.debug("Loading settings from %s", path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(
                f"Expected a YAML mapping in {path}, got {type(loaded).__name__}"
            )
        data = loaded

    log_dir = os.environ.get(LOG_DIR_ENV_VAR)
    if log_dir:
        data = {**data, "log_dir": log_dir}

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e

    logger.info("Settings loaded (%s)", path or "defaults")
    return settings
