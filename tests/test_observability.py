"""
Tests for observability — logging setup and the execution log.
"""

import logging

import pytest

from devsetup.core.observability.execution_log import ExecutionLog
from devsetup.core.observability.logging_config import (
    STATUS_LOGGER,
    run_log_path,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRunLogPath:
    def test_timestamped_name(self, tmp_path):
        path = run_log_path(tmp_path)
        assert path.parent == tmp_path
        assert path.name.startswith("dev-env-setup-")
        assert path.suffix == ".log"


class TestSetupLogging:
    def test_file_captures_status_and_debug(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging("WARNING", log_file=log_file)
        logging.getLogger("devsetup.test").debug("diagnostic detail")
        logging.getLogger(STATUS_LOGGER).info("Installing rsync...")
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = log_file.read_text()
        assert "diagnostic detail" in text
        assert "Installing rsync..." in text

    def test_console_skips_status_lines(self, capsys, restore_root_logger):
        setup_logging("INFO")
        logging.getLogger(STATUS_LOGGER).info("status line")
        logging.getLogger("devsetup.test").info("diagnostic line")
        err = capsys.readouterr().err
        assert "status line" not in err
        assert "diagnostic line" in err

    def test_bad_level_falls_back_to_warning(self, restore_root_logger):
        setup_logging("LOUD")
        console = logging.getLogger().handlers[0]
        assert console.level == logging.WARNING


class TestExecutionLog:
    def test_records_kinds(self):
        log = ExecutionLog(color=False)
        log.info("a")
        log.success("b")
        log.error("c")
        assert log.lines == [("info", "a"), ("success", "b"), ("error", "ERROR: c")]
        assert log.failures == ["c"]
        assert log.failed

    def test_colours_output(self, capsys):
        ExecutionLog(color=True).error("bad")
        out = capsys.readouterr().out
        assert "\x1b[31m" in out
        assert "ERROR: bad" in out

    def test_summary_all_ok(self):
        assert ExecutionLog(color=False).summary() == "All selected tasks completed successfully."

    def test_summary_lists_failures_and_log(self, tmp_path):
        log = ExecutionLog(log_file=tmp_path / "run.log", color=False)
        log.error("Install Docker: Failed to import signing key")
        summary = log.summary()
        assert summary.startswith("1 task(s) reported errors:")
        assert "  - Install Docker: Failed to import signing key" in summary
        assert str(tmp_path / "run.log") in summary

    def test_summary_since_mark(self):
        log = ExecutionLog(color=False)
        log.error("old")
        mark = log.mark()
        assert log.summary(since=mark).startswith("All selected")
        log.error("new")
        assert "old" not in log.summary(since=mark)
