"""Structured key=value logging for the compliance engine.

Generation logs carry the section being generated so concurrent section
calls can be told apart:

    log_with_context(logger, logging.WARNING, "Section truncated", section_id=8, attempt=2)

emits ``... message=Section truncated section_id=8 attempt=2``.
"""

import logging
import sys
from typing import Any

from pydantic import ValidationError

from app.core.config import get_settings

# Context fields promoted to top-level attributes on the log record
CONTEXT_FIELDS = ("section_id", "module_id", "submodule_code")


class StructuredFormatter(logging.Formatter):
    """Renders records as space-separated key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                fields[name] = value

        fields.update(getattr(record, "extra_data", {}))

        line = " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_for_environment() -> int:
    try:
        settings = get_settings()
    except ValidationError:
        return logging.INFO
    if settings.LOG_LEVEL:
        return logging.getLevelNamesMapping().get(settings.LOG_LEVEL.upper(), logging.INFO)
    return logging.DEBUG if settings.COMPLIANCE_ENV == "dev" else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger writing structured lines to stdout.

    The level is LOG_LEVEL when set, otherwise DEBUG in the dev environment
    and INFO elsewhere.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_environment())

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **context: Any) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **context: section_id / module_id / submodule_code become record
            attributes; anything else (attempt, duration_ms, ...) is appended
    """
    extra: dict[str, Any] = {name: context.pop(name) for name in CONTEXT_FIELDS if name in context}
    extra["extra_data"] = context
    logger.log(level, msg, extra=extra)
