"""
devsetup — CLI entrypoint.

Usage:
    sudo devsetup
    sudo python -m devsetup.main

No options besides ``--version`` and ``--help``; configuration comes
from ``DEVSETUP_*`` environment variables and an optional YAML file.
"""

from __future__ import annotations

import os
import sys

import click

from devsetup import __version__
from devsetup.core.errors import DevSetupError

LOG_LEVEL_ENV_VAR = "DEVSETUP_LOG_LEVEL"


@click.command()
@click.version_option(version=__version__, prog_name="devsetup")
def cli() -> None:
    """Interactive development environment setup for Debian/Ubuntu hosts."""
    from devsetup.core.config.loader import load_settings
    from devsetup.core.context import RunContext
    from devsetup.core.identity import require_root, resolve_identity
    from devsetup.core.observability.execution_log import ExecutionLog
    from devsetup.core.observability.logging_config import run_log_path, setup_logging
    from devsetup.core.tasks.catalog import default_registry
    from devsetup.ui.cli.menu import Menu

    # ── Pre-flight (nothing mutated yet) ────────────────────────
    try:
        require_root()
        settings = load_settings()
        registry = default_registry()
        registry.check_settings(settings)
        identity = resolve_identity()
    except DevSetupError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    # ── Logging setup (once, at process start) ──────────────────
    log_file = run_log_path(settings.log_dir)
    setup_logging(
        level=os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING"),
        log_file=log_file,
    )

    ctx = RunContext(
        identity=identity,
        settings=settings,
        log=ExecutionLog(log_file=log_file),
    )
    ctx.log.info(f"Setting up the development environment for {identity.user} ({identity.home})")
    ctx.log.info(f"Log file: {log_file}")

    Menu(registry, ctx).loop()
    click.secho("Exiting setup script. Goodbye!", fg="blue")


if __name__ == "__main__":
    cli()
