"""
Structured logging configuration for ZooGent.

Provides consistent logging across the pipeline, API and scripts:
- Console output (human-readable, colored on a TTY, stage-tagged)
- JSON format (machine-parseable, for production log shipping)
- Log level and format selected via environment variables

Usage:
    from zoogent.config.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Stage fallback", extra={"stage": "rewrite", "reason": "timeout"})
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any


LOG_LEVEL = os.getenv("ZOOGENT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("ZOOGENT_LOG_FORMAT", "console")  # "console" or "json"

# Built-in LogRecord attributes; everything else on a record came from extra=.
_STANDARD_LOG_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "asctime",
        "taskName",
    }
)

_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "requests",
    "anthropic",
    "openai",
    "uvicorn.access",
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_LOG_ATTRS and not key.startswith("_")
    }


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter; a ``stage`` extra is promoted to a prefix."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        use_colors = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        timestamp = self.formatTime(record, "%H:%M:%S")

        level = record.levelname
        if use_colors:
            level_str = f"{self.COLORS.get(level, '')}{level:<8}{self.COLORS['RESET']}"
        else:
            level_str = f"{level:<8}"

        extras = _extra_fields(record)
        stage = extras.pop("stage", None)
        stage_str = f"[{stage}] " if stage else ""

        extra_str = ""
        if extras:
            extra_str = " [" + ", ".join(f"{k}={v}" for k, v in extras.items()) + "]"

        line = f"{timestamp} {level_str} {stage_str}{record.getMessage()}{extra_str}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per line for production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_extra_fields(record))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


_configured = False


def configure_logging() -> None:
    """Configure the root logger once with the selected handler and formatter."""
    global _configured
    if _configured:
        return

    level = getattr(logging, LOG_LEVEL, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if LOG_FORMAT == "json" else ConsoleFormatter())
    root.addHandler(handler)

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    configure_logging()
    return logging.getLogger(name)


def log_banner(
    logger: logging.Logger, title: str, char: str = "=", width: int = 60
) -> None:
    """Log a visual banner for section headers."""
    logger.info(char * width)
    logger.info(title)
    logger.info(char * width)


def log_section(
    logger: logging.Logger, title: str, char: str = "-", width: int = 60
) -> None:
    """Log a section divider."""
    logger.info("")
    logger.info(char * width)
    logger.info(title)
    logger.info(char * width)


def log_kv(logger: logging.Logger, key: str, value: Any, indent: int = 2) -> None:
    """Log a key-value pair with consistent formatting."""
    prefix = " " * indent
    if isinstance(value, float):
        logger.info("%s%s: %.3f", prefix, key, value)
    else:
        logger.info("%s%s: %s", prefix, key, value)


__all__ = [
    "get_logger",
    "configure_logging",
    "log_banner",
    "log_section",
    "log_kv",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "ConsoleFormatter",
    "JSONFormatter",
]
