"""Unit tests for logging setup."""

import json
import logging
import sys
from pathlib import Path

import pytest

from tdd_rag.indexer_logging import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LogCategory,
    get_category_logger,
    get_default_log_file,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def flush(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.flush()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_text_file_logging(self, tmp_path: Path) -> None:
        log_file = tmp_path / "test.log"
        logger = setup_logging(log_file=log_file)

        logger.info("Test message")
        flush(logger)

        assert "Test message" in log_file.read_text()

    def test_json_format(self, tmp_path: Path) -> None:
        log_file = tmp_path / "json.log"
        logger = setup_logging(log_file=log_file, log_format="json")

        get_category_logger(LogCategory.STORAGE).warning(
            "Batch failed", extra={"batch": 2, "namespace": "source"}
        )
        flush(logger)

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "tdd_rag.storage"
        assert entry["message"] == "Batch failed"
        assert entry["batch"] == 2
        assert entry["namespace"] == "source"

    def test_quiet_and_verbose_levels(self) -> None:
        quiet = setup_logging(quiet=True)
        assert quiet.handlers[0].level == logging.ERROR

        verbose = setup_logging(verbose=True)
        assert verbose.handlers[0].level == logging.DEBUG

    def test_default_log_file_per_project(self, tmp_path: Path) -> None:
        log_file = get_default_log_file(tmp_path)

        assert log_file == tmp_path / ".tdd-rag" / "logs" / "tdd-rag.log"
        assert log_file.parent.is_dir()

    def test_enable_file_logging_uses_project_default(self, tmp_path: Path) -> None:
        logger = setup_logging(enable_file_logging=True, project_path=tmp_path)

        logger.info("to project log")
        flush(logger)

        assert "to project log" in get_default_log_file(tmp_path).read_text()


class TestLoggers:
    def test_category_loggers_are_children(self) -> None:
        assert get_logger().name == "tdd_rag"
        assert get_category_logger(LogCategory.WATCHER).name == "tdd_rag.watcher"

    def test_json_formatter_includes_exception(self) -> None:
        try:
            raise ValueError("bad value")
        except ValueError:
            record = logging.LogRecord(
                "tdd_rag", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        entry = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad value" in entry["exception"]
