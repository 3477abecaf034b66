"""Centralized logging configuration for the indexing pipeline.

Provides:
- Console output plus an optional rotating log file
- Structured JSON file logging
- Per-component category loggers
"""

import json
import logging
import logging.config
import logging.handlers
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

ROOT_LOGGER_NAME = "tdd_rag"


class LogCategory(Enum):
    """Log categories for multi-component debugging."""

    INDEXER = "indexer"
    ANALYSIS = "analysis"
    WATCHER = "watcher"
    STORAGE = "storage"
    RETRIEVAL = "retrieval"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    EXTRA_FIELDS = ("file_path", "batch", "namespace", "operation", "duration_ms")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def get_default_log_file(project_path: Path | None = None) -> Path:
    """Get the default log file path, per project when one is given."""
    if project_path:
        log_dir = project_path / ".tdd-rag" / "logs"
    else:
        log_dir = Path.home() / ".tdd-rag" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "tdd-rag.log"


def setup_logging(
    level: str = "INFO",
    quiet: bool = False,
    verbose: bool = False,
    log_file: Path | None = None,
    enable_file_logging: bool = False,
    project_path: Path | None = None,
    log_format: str = "text",
    rotation_count: int = 3,
    max_bytes: int = 10485760,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Base log level (DEBUG, INFO, WARNING, ERROR).
        quiet: Suppress console output below ERROR.
        verbose: Enable debug-level console output.
        log_file: Explicit log file path.
        enable_file_logging: Write to the default log file when no
            explicit path is given.
        project_path: Project root used for the default log file location.
        log_format: File output format ("text" or "json").
        rotation_count: Number of rotated backups to keep.
        max_bytes: Max file size before rotation.

    Returns:
        The configured package logger.
    """
    if log_file is None and enable_file_logging:
        log_file = get_default_log_file(project_path)

    if quiet:
        effective_level = "ERROR"
    elif verbose:
        effective_level = "DEBUG"
    else:
        effective_level = level

    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "simple": {"format": "%(levelname)s | %(message)s"},
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": effective_level,
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            ROOT_LOGGER_NAME: {
                "handlers": ["console"],
                "level": "DEBUG",
                "propagate": False,
            }
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json" if log_format == "json" else "detailed",
            "level": "DEBUG",
            "filename": str(log_file),
            "maxBytes": max_bytes,
            "backupCount": rotation_count,
        }
        config["loggers"][ROOT_LOGGER_NAME]["handlers"].append("file")

    logging.config.dictConfig(config)
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_logger() -> logging.Logger:
    """Get the package logger."""
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_category_logger(category: LogCategory) -> logging.Logger:
    """Get a logger for a specific component.

    Example:
        >>> from tdd_rag.indexer_logging import get_category_logger, LogCategory
        >>> logger = get_category_logger(LogCategory.STORAGE)
        >>> logger.info("Collection ready")
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{category.value}")
