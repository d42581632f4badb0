"""
Logging configuration for tzdata-update.

Provides console logging with optional colors, a rotating log file and a
JSON formatter for machine-readable install logs.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import json
from pathlib import Path
from typing import Optional


class JSONFormatter(logging.Formatter):
    """JSON log formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability."""

    COLORS = {
        logging.DEBUG: "\033[36m",    # Cyan
        logging.INFO: "\033[32m",     # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",    # Red
        logging.CRITICAL: "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        levelname = record.levelname

        record.levelname = f"{color}{levelname}{self.RESET}"
        result = super().format(record)

        # Restore original levelname for other handlers
        record.levelname = levelname

        return result


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    json_logs: bool = False,
):
    """
    Configure logging for tzdata-update.

    Args:
        level: Logging level (default: INFO)
        log_file: Path to log file (optional)
        json_logs: Use JSON format for file logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if sys.stderr.isatty():
        console_format = ColoredFormatter("%(levelname)s %(name)s: %(message)s")
    else:
        console_format = logging.Formatter("%(levelname)s %(name)s: %(message)s")

    console_handler.setFormatter(console_format)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # Capture all to file

        if json_logs:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d] %(message)s"
            ))

        root_logger.addHandler(file_handler)


class LogContext:
    """
    Context manager for adding context to log messages.

    Example:
        with LogContext(operation="install", install_dir="/data/misc/zoneinfo"):
            logger.info("Unpacking bundle")  # record carries the context
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._old_factory = None

    def __enter__(self):
        self._old_factory = logging.getLogRecordFactory()

        context = self.context
        old_factory = self._old_factory

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            record.extra_data = context
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, *args):
        logging.setLogRecordFactory(self._old_factory)

