"""YAML configuration loader for volley load tests."""

from __future__ import annotations

from pathlib import Path

import yaml

from .exceptions import ConfigurationError
from .logging_config import get_logger
from .models import LoadConfig, as_bool
from .runner import validate_load_parameters

logger = get_logger("config")

DEFAULT_CONCURRENCY = 10
DEFAULT_LOOPS_PER_USER = 5
DEFAULT_TIMEOUT_SECONDS = 30.0


def _validate_load_config(c: LoadConfig) -> None:
    """Validate LoadConfig bounds. Raises ConfigurationError if invalid."""
    validate_load_parameters(c.concurrency, c.loops_per_user)
    if c.timeout_seconds <= 0:
        raise ConfigurationError("timeout_seconds must be > 0")


def validate_load_config(config: LoadConfig) -> None:
    """Validate LoadConfig. Raises ConfigurationError if invalid."""
    _validate_load_config(config)


def load_config(path: str | Path) -> LoadConfig:
    """Load load-test configuration from YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated LoadConfig instance

    Raises:
        ConfigurationError: If file not found, invalid YAML, or validation fails
    """
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(
            f"Config file not found: {path}",
            context={"path": str(path)},
        )

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.exception("Failed to parse YAML config file")
        raise ConfigurationError(
            f"Invalid YAML syntax in config file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    except OSError as e:
        logger.exception("Failed to read config file")
        raise ConfigurationError(
            f"Cannot read config file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Config must be a YAML object/dictionary",
            context={"path": str(path), "actual_type": type(raw).__name__},
        )

    try:
        config = LoadConfig(
            concurrency=int(raw.get("concurrency", DEFAULT_CONCURRENCY)),
            loops_per_user=int(raw.get("loops_per_user", DEFAULT_LOOPS_PER_USER)),
            timeout_seconds=float(raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            http2=as_bool(raw.get("http2"), True),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid config value: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    _validate_load_config(config)
    logger.debug(
        "Loaded config: concurrency=%s, loops_per_user=%s, timeout=%s",
        config.concurrency, config.loops_per_user, config.timeout_seconds,
    )
    return config
