"""
Settings model — pinned versions and run-wide knobs.

Loaded from an optional YAML file (see ``core/config/loader.py``).
Every field has a default, so an empty or absent file is a valid
configuration.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RefreshPolicy = Literal["if_missing", "always"]


class Versions(BaseModel):
    """Artifact versions installed by the download / bootstrap tasks."""

    model_config = ConfigDict(extra="forbid")

    nvm: str = "0.39.7"
    node: str = "20.10.0"
    go: str = "1.21.7"
    python: str = "3.12.3"
    tmux: str = "3.5a"
    neovim: str = "0.11.1"
    nerd_font: str = "3.2.1"

    @property
    def python_short(self) -> str:
        """``3.12.3`` → ``3.12`` (the altinstall binary suffix)."""
        return ".".join(self.python.split(".")[:2])


class Settings(BaseModel):
    """Run configuration."""

    model_config = ConfigDict(extra="forbid")

    versions: Versions = Field(default_factory=Versions)
    profile_name: str = ".zshrc"
    log_dir: str = "/tmp"
    handoff_shell: bool = True
    refresh: dict[str, RefreshPolicy] = Field(default_factory=dict)

    @field_validator("refresh", mode="before")
    @classmethod
    def _task_ids_as_str(cls, value):
        # YAML reads an unquoted `15: always` key as an int
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items()}
        return value
