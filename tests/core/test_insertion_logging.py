"""Tests for structured logging configuration."""

import json
import logging

import pytest

from toolset_insertion.core.logging import (
    LogContext,
    bind_context,
    configure_logging,
    flush_logs,
    get_logger,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.mark.usefixtures("restore_root_logger")
class TestConfigureLogging:
    """Log file artifact and renderer selection."""

    def test_writes_json_lines_to_log_file(self, tmp_path):
        log_file = tmp_path / "rit.log"
        configure_logging(level="INFO", json_format=True, log_file=log_file)

        get_logger("toolset_insertion.test").info("stage_started", stage="authenticated")
        flush_logs()

        lines = log_file.read_text().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "stage_started"
        assert record["stage"] == "authenticated"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_log_file_truncated_per_run(self, tmp_path):
        log_file = tmp_path / "rit.log"
        log_file.write_text("previous run\n")
        configure_logging(json_format=True, log_file=log_file)
        flush_logs()
        assert "previous run" not in log_file.read_text()

    def test_append_mode(self, tmp_path):
        log_file = tmp_path / "rit.log"
        log_file.write_text("previous run\n")
        configure_logging(json_format=True, log_file=log_file, truncate=False)
        flush_logs()
        assert "previous run" in log_file.read_text()

    def test_reconfiguring_replaces_own_handlers(self, tmp_path):
        configure_logging(json_format=True, log_file=tmp_path / "a.log")
        before = len(logging.getLogger().handlers)
        configure_logging(json_format=True, log_file=tmp_path / "b.log")
        assert len(logging.getLogger().handlers) == before

    def test_level_filters(self, tmp_path):
        log_file = tmp_path / "rit.log"
        configure_logging(level="WARNING", json_format=True, log_file=log_file)
        logger = get_logger("toolset_insertion.test")
        logger.info("hidden")
        logger.warning("shown")
        flush_logs()
        text = log_file.read_text()
        assert "hidden" not in text
        assert "shown" in text

    def test_bound_context_is_rendered(self, tmp_path):
        log_file = tmp_path / "rit.log"
        configure_logging(json_format=True, log_file=log_file)
        with LogContext(run_id="run-1"):
            get_logger("toolset_insertion.test").info("inside")
        get_logger("toolset_insertion.test").info("outside")
        flush_logs()

        inside, outside = (json.loads(line) for line in log_file.read_text().splitlines()[-2:])
        assert inside["run_id"] == "run-1"
        assert "run_id" not in outside

    def test_bind_context(self, tmp_path):
        log_file = tmp_path / "rit.log"
        configure_logging(json_format=True, log_file=log_file)
        bind_context(insertion="Roslyn")
        get_logger("toolset_insertion.test").info("bound")
        flush_logs()
        assert json.loads(log_file.read_text().splitlines()[-1])["insertion"] == "Roslyn"
