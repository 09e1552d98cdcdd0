"""Logging setup for the ``volley`` logger namespace.

Library modules call get_logger("<module>") and never touch handlers. The first call attaches one stderr handler to the ``volley``
root logger; level and format come from the environment unless the CLI
overrides the level with --log-level.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

LOG_LEVEL_ENV = "VOLLEY_LOG_LEVEL"
LOG_FORMAT_ENV = "VOLLEY_LOG_FORMAT"  # "json" | "text" (default)
ROOT_LOGGER_NAME = "volley"
# Interactive tool: stay quiet unless asked
DEFAULT_LOG_LEVEL = "WARNING"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Logger ``volley.<name>``; the root ``volley`` logger is configured on first use."""
    full_name = name if name == ROOT_LOGGER_NAME else f"{ROOT_LOGGER_NAME}.{name}"
    _ensure_handler()
    return logging.getLogger(full_name)


def set_level(level_name: str) -> None:
    """Override the level of the ``volley`` root logger (e.g. from --log-level)."""
    _ensure_handler()
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(_parse_level(level_name))


def _parse_level(level_name: str | None) -> int:
    name = (level_name or DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def _ensure_handler() -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return
    root.setLevel(_parse_level(os.environ.get(LOG_LEVEL_ENV)))
    handler = logging.StreamHandler(sys.stderr)
    if (os.environ.get(LOG_FORMAT_ENV) or "text").strip().lower() == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))
    root.addHandler(handler)


class _JsonFormatter(logging.Formatter):
    """One JSON object per line. VolleyError context is carried along when logged via exc_info."""

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            obj["exception"] = self.formatException(record.exc_info)
            context = getattr(record.exc_info[1], "context", None)
            if context:
                obj["context"] = context
        return orjson.dumps(obj, default=repr).decode("utf-8")
