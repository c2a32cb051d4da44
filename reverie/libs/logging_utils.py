"""Logging setup for the Reverie API, voice core and scripts.

Records are emitted as JSON lines by default or as coloured text for local
work (``REVERIE_LOG_FORMAT=text``). Request handlers bind the acting user and
call with :func:`log_context`; :class:`ContextFilter` stamps those onto every
record emitted inside the block.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any, Dict, Iterator, Optional

_DEV_ENVIRONMENTS = {"local", "dev", "development", "test"}

# Third-party loggers that are chatty at DEBUG.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")

_CONTEXT_FIELDS = ("user_id", "call_id")
_log_context: ContextVar[Dict[str, str]] = ContextVar("reverie_log_context", default={})

_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_ANSI = {"red": "\033[31m", "yellow": "\033[33m", "green": "\033[32m", "cyan": "\033[36m"}
_RESET = "\033[0m"


def _environment() -> str:
    return os.getenv("REVERIE_ENVIRONMENT", "dev").lower()


def _color_enabled() -> bool:
    flag = os.getenv("REVERIE_LOG_COLOR", "")
    if flag:
        return flag == "1"
    return _environment() in _DEV_ENVIRONMENTS


def colorize(text: str, color: str = "red") -> str:
    code = _ANSI.get(color)
    if not code or not _color_enabled():
        return text
    return f"{code}{text}{_RESET}"


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[None]:
    """Attach ``user_id`` / ``call_id`` to every record logged inside the block."""

    merged = dict(_log_context.get())
    merged.update({key: str(value) for key, value in fields.items() if key in _CONTEXT_FIELDS and value})
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields passed through ``extra=`` or bound by :func:`log_context`."""

    return {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; extras are flattened into the payload."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(record_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColorTextFormatter(logging.Formatter):
    _LEVEL_COLORS = {logging.ERROR: "red", logging.WARNING: "yellow"}

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = record_extras(record)
        if extras:
            line += " " + " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        for level, color in self._LEVEL_COLORS.items():
            if record.levelno >= level:
                return colorize(line, color)
        return line


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Install the root handler; arguments override ``REVERIE_LOG_LEVEL`` / ``REVERIE_LOG_FORMAT``."""

    default_level = "DEBUG" if _environment() in _DEV_ENVIRONMENTS else "INFO"
    log_level = (level or os.getenv("REVERIE_LOG_LEVEL", default_level)).upper()
    formatter = "text" if (fmt or os.getenv("REVERIE_LOG_FORMAT", "json")).lower() == "text" else "json"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"context": {"()": ContextFilter}},
            "formatters": {
                "json": {"()": JsonFormatter},
                "text": {
                    "()": ColorTextFormatter,
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "filters": ["context"],
                    "level": log_level,
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["console"], "level": log_level},
        }
    )


__all__ = [
    "ColorTextFormatter",
    "ContextFilter",
    "JsonFormatter",
    "colorize",
    "configure_logging",
    "log_context",
    "record_extras",
]
