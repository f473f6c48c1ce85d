"""
Logging configuration for Trellis.

Provides structured logging with:
- Console output with color coding
- Optional JSON format for production
- Log levels configurable via environment
"""

import json
import logging
import sys
from typing import Optional

from trellis.config import get_settings


# ANSI color codes for terminal output
class Colors:
    GREY = "\x1b[38;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"
    GREEN = "\x1b[32;20m"


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    FORMATS = {
        logging.DEBUG: Colors.GREY + LOG_FORMAT + Colors.RESET,
        logging.INFO: Colors.GREEN + LOG_FORMAT + Colors.RESET,
        logging.WARNING: Colors.YELLOW + LOG_FORMAT + Colors.RESET,
        logging.ERROR: Colors.RED + LOG_FORMAT + Colors.RESET,
        logging.CRITICAL: Colors.BOLD_RED + LOG_FORMAT + Colors.RESET,
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, LOG_FORMAT)
        formatter = logging.Formatter(log_fmt, datefmt="%Y-%m-%d %H:%M:%S")
        return formatter.format(record)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Falls back to settings, then to DEBUG/INFO depending on ``debug``.
        json_format: If True, use JSON format (for production)
    """
    settings = get_settings()

    log_level = level or settings.log_level or ("DEBUG" if settings.debug else "INFO")
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    if json_format is None:
        json_format = settings.log_json

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(JsonFormatter() if json_format else ColoredFormatter())
    root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger("trellis").setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Usage:
        from trellis.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Something happened")

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    if not name.startswith("trellis"):
        name = f"trellis.{name}"
    return logging.getLogger(name)
