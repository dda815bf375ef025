"""Logging configuration utilities for the static server."""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from static_server.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "static_server"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

EXTRA_KEYS = (
    "event",
    "client",
    "method",
    "url",
    "path",
    "status_code",
    "error_type",
    "host",
    "port",
    "url_base",
    "root_folder",
    "environment",
    "tls",
    "certificate_name",
    "config_file",
    "socket_timeout",
    "shutdown_grace_seconds",
    "signal",
)


def _iso_timestamp(record: logging.LogRecord) -> str:
    moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id field exists in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


class MaxLevelFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Pass only records strictly below ``level``."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


class ConsoleFormatter(logging.Formatter):
    """``[timestamp] LEVEL message`` lines with optional tracebacks."""

    def __init__(self, include_traceback: bool = True):
        super().__init__()
        self.include_traceback = include_traceback

    def format(self, record: logging.LogRecord) -> str:
        line = f"[{_iso_timestamp(record)}] {record.levelname} {record.getMessage()}"
        if record.levelno >= logging.WARNING and hasattr(record, "error_type"):
            line = f"{line} ({record.error_type})"
        if self.include_traceback and record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    """JSON formatter with stable key ordering for structured logging."""

    def __init__(self, include_traceback: bool = True):
        super().__init__()
        self.include_traceback = include_traceback

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _iso_timestamp(record),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }

        for key in EXTRA_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if self.include_traceback and record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    """Translate text level names into logging module numeric levels."""
    level = getattr(logging, level_name.upper(), None)
    if isinstance(level, int):
        return level
    return logging.INFO


def _build_handlers(
    destination: Optional[str], level: int, formatter: logging.Formatter
) -> list[logging.Handler]:
    """Create a rotating file handler, or a stdout/stderr pair for consoles."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handlers: list[logging.Handler] = [
            RotatingFileHandler(target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT)
        ]
    else:
        out_handler = logging.StreamHandler(sys.stdout)
        out_handler.addFilter(MaxLevelFilter(logging.WARNING))
        err_handler = logging.StreamHandler(sys.stderr)
        err_handler.setLevel(logging.WARNING)
        handlers = [out_handler, err_handler]

    for handler in handlers:
        if handler.level < level:
            handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIdFilter())
    return handlers


def configure_logging(
    level: str = "INFO",
    destination: Optional[str] = None,
    environment: str = "development",
    use_json: bool = False,
) -> CorrelationLoggerAdapter:
    """Configure and return the project logger.

    Tracebacks are only rendered in the ``development`` environment.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    include_traceback = environment == "development"
    formatter: logging.Formatter = (
        JsonFormatter(include_traceback)
        if use_json
        else ConsoleFormatter(include_traceback)
    )
    for handler in _build_handlers(destination, numeric_level, formatter):
        logger.addHandler(handler)
    return CorrelationLoggerAdapter(logger, {})
