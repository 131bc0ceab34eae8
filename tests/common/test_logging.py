"""Tests for structured logging helpers."""

import json
import logging
import threading

import pytest
from linkedin_vault.common.logging import (
    LogContext, StructuredFormatter, setup_logging, setup_logging_from_config,
)
from linkedin_vault.common.logging_config import LoggingConfig


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(logger_name: str = "test", msg: str = "hello") -> logging.LogRecord:
    return logging.getLogger(logger_name).makeRecord(logger_name, logging.INFO, __file__, 1, msg, (), None)


class TestStructuredFormatter:
    """Tests for the JSON formatter."""

    def test_basic_fields(self):
        """Test that a record becomes one JSON object."""
        data = json.loads(StructuredFormatter().format(_record(msg="Processing backup")))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Processing backup"

    def test_context_fields_are_top_level(self):
        """Test that LogContext fields appear as top-level keys."""
        logger = logging.getLogger("test.context")
        with LogContext(logger, backup_id="b-1", user_id="u-1"):
            record = _record("test.context")

        data = json.loads(StructuredFormatter().format(record))
        assert data["backup_id"] == "b-1"
        assert data["user_id"] == "u-1"

    def test_unserializable_values(self):
        """Test that non-JSON values are stringified, not fatal."""
        record = _record()
        record.extra_fields = {"path": object()}

        data = json.loads(StructuredFormatter().format(record))
        assert "object" in data["path"]


class TestLogContext:
    """Tests for LogContext."""

    def test_nested_contexts(self):
        """Test that inner contexts add to outer fields."""
        logger = logging.getLogger("test.nested")
        with LogContext(logger, backup_id="b-1"):
            with LogContext(logger, step="raw"):
                inner = _record()
            outer = _record()

        assert inner.extra_fields == {"backup_id": "b-1", "step": "raw"}
        assert outer.extra_fields == {"backup_id": "b-1"}

    def test_fields_cleared_on_exit(self):
        """Test that records after the context carry no fields."""
        with LogContext(logging.getLogger("test"), a=1):
            pass
        assert not hasattr(_record(), "extra_fields")

    def test_threads_are_isolated(self):
        """Test that a context in one thread is invisible to another."""
        entered, release = threading.Event(), threading.Event()

        def hold_context():
            with LogContext(logging.getLogger("test.thread"), backup_id="other"):
                entered.set()
                release.wait(5)

        worker = threading.Thread(target=hold_context)
        worker.start()
        entered.wait(5)
        try:
            with LogContext(logging.getLogger("test.thread"), backup_id="mine"):
                record = _record()
        finally:
            release.set()
            worker.join()

        assert record.extra_fields == {"backup_id": "mine"}
        assert not hasattr(_record(), "extra_fields")


class TestSetupLogging:
    """Tests for root logger setup."""

    def test_level_and_single_console_handler(self, restore_root_logger):
        """Test that setup replaces handlers and sets the level."""
        setup_logging(level="WARNING", format="simple")
        setup_logging(level="DEBUG", format="json")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_file_handler(self, restore_root_logger, tmp_path):
        """Test that a log file gets a JSON rotating handler."""
        log_file = tmp_path / "logs" / "vault.log"
        setup_logging_from_config(LoggingConfig(file=str(log_file)))

        logging.getLogger("test.file").info("written")
        for handler in restore_root_logger.handlers:
            handler.flush()

        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["message"] == "written"

    def test_quiet_library_loggers(self, restore_root_logger):
        """Test that chatty client loggers are raised to WARNING."""
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
