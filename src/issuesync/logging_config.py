"""Structured logging configuration for issue-notion-sync.

- JSON structured logging with StructuredFormatter (one object per line)
- Logger hierarchy under the issuesync namespace
- Level and format from arguments or LOG_LEVEL / LOG_FORMAT
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

__all__ = [
    "ROOT_LOGGER",
    "SENSITIVE_KEYS",
    "StructuredFormatter",
    "TextFormatter",
    "configure_logging",
]

ROOT_LOGGER = "issuesync"

# Keys redacted from log context
SENSITIVE_KEYS = {
    "password", "token", "secret", "apikey", "api_key",
    "authorization", "credential", "auth", "key", "bearer",
    "github_key", "notion_key",
}

# Attributes every LogRecord carries; anything else came in through extra=
_STANDARD_FIELDS = {
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
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON log formatter.

    Outputs:
    - timestamp: UTC ISO 8601 with 'Z' suffix
    - level, logger, message
    - context: values passed through ``extra=``, sensitive keys redacted
    - exception: formatted traceback when exc_info is set
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else v)
            for k, v in record.__dict__.items()
            if k not in _STANDARD_FIELDS and not k.startswith("_")
        }
        if extras:
            log_data["context"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local runs (LOG_FORMAT=text)."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure the issuesync logger hierarchy.

    Safe to call more than once: the existing handler is reused and only
    its level and formatter change.

    Args:
        level: Log level name. Falls back to LOG_LEVEL, then INFO.
        log_format: "json" or "text". Falls back to LOG_FORMAT, then json.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if log_format is None:
        log_format = os.getenv("LOG_FORMAT", "json")

    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = TextFormatter() if log_format.lower() == "text" else StructuredFormatter()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)

    if not logger.handlers:
        logger.addHandler(logging.StreamHandler())
    for handler in logger.handlers:
        handler.setFormatter(formatter)

    logger.propagate = False
