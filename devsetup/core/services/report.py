"""
Post-install artifacts — summary report and environment check script.

Written to the target home after a full installation, both owned by
the target user.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.adapters.shell.filesystem import write_file
from devsetup.core.services.download import machine_arch

if TYPE_CHECKING:
    from devsetup.core.context import RunContext
    from devsetup.core.engine.executor import ExecutionReport

REPORT_NAME = "dev-setup-report.txt"
CHECK_SCRIPT_NAME = "dev-env-check.sh"

_STATUS_LABEL = {"ok": "installed", "skipped": "already present", "failed": "FAILED"}

# (label, command) pairs probed by the check script.
_CHECKS: tuple[tuple[str, str], ...] = (
    ("zsh", "zsh --version"),
    ("git", "git --version"),
    ("gh", "gh --version | head -n1"),
    ("node", 'export NVM_DIR="$HOME/.nvm"; . "$NVM_DIR/nvm.sh" >/dev/null 2>&1; node --version'),
    ("rustc", "$HOME/.cargo/bin/rustc --version"),
    ("docker", "docker --version"),
    ("python", "python{python_short} --version"),
    ("poetry", "$HOME/.local/bin/poetry --version"),
    ("tmux", "tmux -V"),
    ("go", "/usr/local/go/bin/go version"),
    ("nvim", "{nvim} --version | head -n1"),
    ("starship", "starship --version | head -n1"),
    ("ufw", "sudo ufw status | head -n1"),
)


def render_report(report: ExecutionReport, ctx: RunContext) -> str:
    lines = [
        "Development environment setup report",
        "=" * 36,
        f"Generated: {time.strftime('%Y-%m-%d %H:%M:%S')}",
        f"User:      {ctx.identity.user}",
        f"Home:      {ctx.identity.home}",
        f"Profile:   {ctx.profile.path}",
        "",
        f"{'Task':<6}{'Result':<18}Description",
        f"{'-' * 5:<6}{'-' * 16:<18}{'-' * 40}",
    ]
    for result in report.results:
        lines.append(f"{result.task_id:<6}{_STATUS_LABEL[result.status]:<18}{result.label}")
        if result.error:
            lines.append(f"{'':<24}error: {result.error}")
    lines.append("")
    lines.append(
        f"Summary: {report.succeeded} installed, {report.skipped} already present, "
        f"{report.failed} failed"
    )
    if ctx.log.log_file:
        lines.append(f"Log file: {ctx.log.log_file}")
    lines.append(f"Run ~/{CHECK_SCRIPT_NAME} to check tool versions.")
    return "\n".join(lines) + "\n"


def render_check_script(ctx: RunContext) -> str:
    nvim = f"$HOME/nvim-linux-{machine_arch(raw=True)}/bin/nvim"
    lines = [
        "#!/usr/bin/env bash",
        "# Prints the version of each tool installed by devsetup.",
        "check() {",
        '  local name="$1"; shift',
        '  local out',
        '  if out="$(bash -c "$*" 2>/dev/null)" && [ -n "$out" ]; then',
        '    printf "  %-10s %s\\n" "$name" "$out"',
        "  else",
        '    printf "  %-10s %s\\n" "$name" "not found"',
        "  fi",
        "}",
        'echo "Development environment:"',
    ]
    for name, command in _CHECKS:
        rendered = command.format(python_short=ctx.versions.python_short, nvim=nvim)
        escaped = rendered.replace("'", "'\\''")
        lines.append(f"check {name} '{escaped}'")
    return "\n".join(lines) + "\n"


def write_artifacts(report: ExecutionReport, ctx: RunContext) -> tuple[Path, Path]:
    """Write the report and the check script to the target home."""
    report_path = write_file(
        ctx.identity.path(REPORT_NAME), render_report(report, ctx), owner=ctx.identity,
    )
    script_path = write_file(
        ctx.identity.path(CHECK_SCRIPT_NAME), render_check_script(ctx),
        owner=ctx.identity, mode=0o755,
    )
    return report_path, script_path
