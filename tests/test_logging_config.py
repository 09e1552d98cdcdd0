"""Unit tests for logging_config (get_logger, set_level, JSON formatter)."""

from __future__ import annotations

import logging
import sys

import orjson

from volley.exceptions import ValidationError
from volley.logging_config import LOG_FORMAT_ENV, LOG_LEVEL_ENV, _JsonFormatter, get_logger, set_level


def test_get_logger_returns_logger() -> None:
    logger = get_logger("test")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "volley.test"


def test_get_logger_root_name() -> None:
    assert get_logger("volley").name == "volley"


def test_root_logger_has_single_handler() -> None:
    get_logger("a")
    get_logger("b")
    assert len(logging.getLogger("volley").handlers) == 1


def test_env_names() -> None:
    assert LOG_LEVEL_ENV == "VOLLEY_LOG_LEVEL"
    assert LOG_FORMAT_ENV == "VOLLEY_LOG_FORMAT"


def test_set_level() -> None:
    root = logging.getLogger("volley")
    previous = root.level
    try:
        set_level("debug")
        assert root.level == logging.DEBUG
        set_level("nonsense")
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_json_formatter() -> None:
    record = logging.LogRecord("volley.x", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    obj = orjson.loads(_JsonFormatter().format(record))
    assert obj["level"] == "INFO"
    assert obj["logger"] == "volley.x"
    assert obj["message"] == "hello world"
    assert "exception" not in obj


def test_json_formatter_includes_error_context() -> None:
    try:
        raise ValidationError("bad body", context={"request": "Create"})
    except ValidationError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("volley.x", logging.ERROR, __file__, 1, "failed", (), exc_info)
    obj = orjson.loads(_JsonFormatter().format(record))
    assert obj["context"] == {"request": "Create"}
    assert "ValidationError" in obj["exception"]
