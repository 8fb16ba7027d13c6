"""
Tests for the interactive menu — driven through click's CliRunner.
"""

import os
from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner

from devsetup.core.tasks.apt import AptTask
from devsetup.core.tasks.catalog import TaskRegistry
from devsetup.core.tasks.shell import ProfileTask
from devsetup.ui.cli.menu import Menu


@pytest.fixture
def registry() -> TaskRegistry:
    tasks = [
        AptTask("1", "Install rsync", "dev-tool", ("rsync",)),
        AptTask("2", "Install utilities", "dev-tool", ("htop", "tree")),
        ProfileTask("3", "Apply aliases", "shell", ("alias ll='ls -l'",)),
    ]
    return TaskRegistry(tasks, order=["1", "3", "2"])


@pytest.fixture
def run_menu(registry, ctx):
    """Invoke the menu loop with scripted stdin."""

    @click.command()
    def menu_cmd():
        Menu(registry, ctx).loop()

    def _run(text: str):
        return CliRunner().invoke(menu_cmd, input=text, catch_exceptions=False)

    return _run


class TestMenuRendering:
    def test_lists_tasks_and_controls(self, run_menu):
        result = run_menu("q\n")
        assert result.exit_code == 0
        assert "Install rsync" in result.output
        assert "Install all" in result.output
        assert "Uninstall all" in result.output
        assert "Quit" in result.output

    def test_empty_input_redraws(self, run_menu):
        result = run_menu("\nq\n")
        assert result.output.count("Development Environment Setup") == 2


class TestSelections:
    def test_invalid_id_alongside_two_valid(self, run_menu, ctx, runner):
        result = run_menu("1 42 2\n\nq\n")
        assert result.exit_code == 0
        assert "ERROR: Invalid choice: 42" in result.output
        assert ctx.log.failures == ["Invalid choice: 42"]
        assert {"rsync", "htop", "tree"} <= runner.installed
        assert "1 task(s) reported errors" in result.output

    def test_all_good_summary(self, run_menu):
        result = run_menu("1\n\nq\n")
        assert "All selected tasks completed successfully." in result.output

    def test_single_uninstall(self, run_menu, runner):
        runner.installed.add("rsync")
        run_menu("u1\n\nq\n")
        assert "rsync" not in runner.installed

    def test_summary_scoped_to_round(self, run_menu):
        result = run_menu("42\n\n1\n\nq\n")
        assert "1 task(s) reported errors" in result.output
        assert "All selected tasks completed successfully." in result.output


class TestUninstallAll:
    def test_declined_confirmation_changes_nothing(self, run_menu, runner):
        runner.installed.update({"rsync", "htop", "tree"})
        result = run_menu("99\nn\n\nq\n")
        assert "Uninstall cancelled." in result.output
        assert not runner.ran("apt-get purge")
        assert not runner.ran("autoremove")

    def test_empty_confirmation_is_decline(self, run_menu, runner):
        run_menu("99\n\n\nq\n")
        assert not runner.ran("apt-get purge")

    def test_confirmed_runs_reverse_order_then_cleans(self, run_menu, runner):
        runner.installed.update({"rsync", "htop", "tree"})
        run_menu("99\nY\n\nq\n")
        purges = [c for c in runner.commands if c.startswith("apt-get purge")]
        assert purges == ["apt-get purge -y htop tree", "apt-get purge -y rsync"]
        commands = runner.commands
        assert commands.index("apt-get autoremove -y") < commands.index("apt-get clean")


class TestInstallAll:
    def test_writes_report_and_check_script(self, run_menu, ctx, runner):
        result = run_menu("0\n\nq\n")
        assert result.exit_code == 0
        installs = [c for c in runner.commands if c.startswith("apt-get install")]
        assert installs == ["apt-get install -y rsync", "apt-get install -y htop tree"]

        report = ctx.identity.path("dev-setup-report.txt")
        script = ctx.identity.path("dev-env-check.sh")
        assert "Install utilities" in report.read_text()
        assert os.access(script, os.X_OK)
        assert os.stat(report).st_uid == ctx.identity.uid
        assert os.stat(script).st_uid == ctx.identity.uid

    def test_hands_off_to_login_shell(self, run_menu, ctx):
        ctx.settings.handoff_shell = True
        with patch("devsetup.ui.cli.menu.command_path", return_value="/usr/bin/zsh"), \
             patch("devsetup.ui.cli.menu.os.execvp") as execvp, \
             patch("devsetup.ui.cli.menu.logging.shutdown"):
            result = run_menu("0\n")
        execvp.assert_called_once_with("su", ["su", "-", ctx.identity.user, "-s", "/usr/bin/zsh"])
        assert "Switching to ZSH" in result.output

    def test_no_handoff_without_zsh(self, run_menu, ctx):
        ctx.settings.handoff_shell = True
        with patch("devsetup.ui.cli.menu.command_path", return_value=None), \
             patch("devsetup.ui.cli.menu.os.execvp") as execvp:
            run_menu("0\n\nq\n")
        execvp.assert_not_called()
