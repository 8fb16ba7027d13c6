"""
Interactive menu — SHOW_MENU → AWAIT_INPUT → DISPATCH, until quit.

The menu only reads the registry; every task runs through the engine
executor, one at a time, and the round ends with a summary.
"""

from __future__ import annotations

import logging
import os

import click

from devsetup.core.context import RunContext
from devsetup.core.engine.executor import ExecutionReport, run_batch, run_install, run_uninstall
from devsetup.core.engine.selection import (
    INSTALL_ALL,
    UNINSTALL_ALL,
    UNINSTALL_PREFIX,
    Selection,
    SelectionKind,
    parse_selection,
)
from devsetup.core.errors import SelectionError
from devsetup.core.services import apt
from devsetup.core.services.detection import command_path
from devsetup.core.services.report import write_artifacts
from devsetup.core.tasks.catalog import TaskRegistry

logger = logging.getLogger(__name__)

_CATEGORY_COLORS = {
    "security": "red",
    "shell": "magenta",
    "dev-tool": "cyan",
    "system": "yellow",
}


class Menu:
    """One interactive session over a task registry."""

    def __init__(self, registry: TaskRegistry, ctx: RunContext):
        self.registry = registry
        self.ctx = ctx

    # ── Rendering ───────────────────────────────────────────────

    def render(self) -> None:
        click.echo()
        click.secho("Development Environment Setup", fg="cyan", bold=True)
        click.echo(f"   Target user: {self.ctx.identity.user} ({self.ctx.identity.home})")
        click.echo()
        for task in self.registry.all_tasks():
            click.echo(f"  {task.id:>3}) ", nl=False)
            click.secho(task.label, fg=_CATEGORY_COLORS.get(task.category))
        click.echo()
        click.echo(f"  {INSTALL_ALL:>3}) Install all")
        click.echo(f"  {UNINSTALL_ALL:>3}) Uninstall all")
        click.echo(f"  {UNINSTALL_PREFIX + '<n>':>3}) Uninstall a single task")
        click.echo("    q) Quit")
        click.echo()

    # ── Loop ────────────────────────────────────────────────────

    def loop(self) -> None:
        """Run rounds until the operator quits."""
        while True:
            self.render()
            text = click.prompt(
                "Enter your choice(s), separated by spaces", default="", show_default=False,
            )
            if not self.handle(text):
                return

    def handle(self, text: str) -> bool:
        """Run one round for a line of input. Returns False on quit."""
        selection = parse_selection(text, self.registry)
        logger.info("Selection %r parsed as %s", text, selection.kind.value)

        if selection.kind is SelectionKind.QUIT:
            return False
        if selection.kind is SelectionKind.EMPTY:
            return True

        mark = self.ctx.log.mark()
        if selection.kind is SelectionKind.INSTALL_ALL:
            self.install_all()
            self._print_summary(mark)
            if self._handoff():
                return False
            self._pause()
            return True
        if selection.kind is SelectionKind.UNINSTALL_ALL:
            self.uninstall_all()
        else:
            self.run_selection(selection)

        self._print_summary(mark)
        self._pause()
        return True

    # ── Dispatch ────────────────────────────────────────────────

    def run_selection(self, selection: Selection) -> ExecutionReport:
        """Run individual selectors in the order given."""
        report = ExecutionReport(action="selection")
        for entry in selection.entries:
            if not entry.valid:
                self.ctx.log.error(str(SelectionError(entry.token)))
                continue
            run = run_install if entry.action == "install" else run_uninstall
            report.results.append(run(entry.task, self.ctx))
        return report

    def install_all(self) -> ExecutionReport:
        self.ctx.log.info("Installing everything...")
        report = run_batch(self.registry.install_order(), self.ctx, "install")
        report_path, script_path = write_artifacts(report, self.ctx)
        self.ctx.log.info(f"Setup report written to {report_path}")
        self.ctx.log.info(f"Run {script_path} to check your environment.")
        return report

    def uninstall_all(self) -> ExecutionReport | None:
        answer = click.prompt(
            "This will remove every installed component. Are you sure? [y/N]",
            default="", show_default=False,
        )
        if answer.strip() not in ("y", "Y"):
            self.ctx.log.info("Uninstall cancelled.")
            return None

        self.ctx.log.info("Uninstalling everything...")
        report = run_batch(self.registry.uninstall_order(), self.ctx, "uninstall")
        self.ctx.log.info("Cleaning up unused packages...")
        if not apt.autoremove_and_clean(self.ctx.runner):
            self.ctx.log.info("apt-get autoremove/clean reported errors, continuing")
        return report

    def _pause(self) -> None:
        click.prompt("Press Enter to return to the menu", default="", show_default=False)

    def _print_summary(self, mark: int) -> None:
        summary = self.ctx.log.summary(since=mark)
        click.echo()
        click.secho(summary, fg="red" if self.ctx.log.mark() > mark else "green", bold=True)

    def _handoff(self) -> bool:
        """Replace this process with the target's login shell after install all."""
        if not self.ctx.settings.handoff_shell:
            return False
        zsh = command_path("zsh", self.ctx.identity)
        if zsh is None:
            logger.info("zsh not found, staying in the menu")
            return False
        self.ctx.log.success("Setup complete! Switching to ZSH...")
        logging.shutdown()
        os.execvp("su", ["su", "-", self.ctx.identity.user, "-s", zsh])
        return True
