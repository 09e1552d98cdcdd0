"""Request file loader: one RequestSpec from a YAML or JSON document.

The document uses the RequestSpec JSON shape (camelCase keys). Two
conveniences on top of it:

- ``body`` may be a mapping or list; it is serialized to JSON text and
  bodyType defaults to ``json``
- ``preScriptFile`` / ``postScriptFile`` name script files, resolved
  relative to the request file
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import yaml

from .exceptions import ValidationError
from .logging_config import get_logger
from .models import RequestSpec

logger = get_logger("requestfile")

JSON_SUFFIXES = frozenset({".json"})


def _read_document(p: Path) -> Any:
    try:
        if p.suffix.lower() in JSON_SUFFIXES:
            return orjson.loads(p.read_bytes())
        return yaml.safe_load(p.read_text(encoding="utf-8"))
    except orjson.JSONDecodeError as e:
        logger.exception("Invalid JSON in request file")
        raise ValidationError(f"Invalid JSON in request file: {e}", context={"path": str(p)}, original_error=e) from e
    except yaml.YAMLError as e:
        logger.exception("Invalid YAML in request file")
        raise ValidationError(f"Invalid YAML in request file: {e}", context={"path": str(p)}, original_error=e) from e
    except OSError as e:
        logger.exception("Failed to read request file")
        raise ValidationError(f"Cannot read request file: {e}", context={"path": str(p)}, original_error=e) from e


def _read_script(base: Path, name: Any) -> str:
    script_path = base / str(name)
    try:
        return script_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(
            f"Cannot read script file: {e}",
            context={"path": str(script_path)},
            original_error=e,
        ) from e


def load_request(path: str | Path) -> RequestSpec:
    """Load one request definition.

    Raises:
        ValidationError: On missing file, parse errors or an invalid request shape
    """
    p = Path(path)
    if not p.exists():
        raise ValidationError(f"Request file not found: {path}", context={"path": str(path)})

    raw = _read_document(p)
    if not isinstance(raw, dict):
        raise ValidationError(
            "Request file must contain an object",
            context={"path": str(path), "actual_type": type(raw).__name__},
        )

    data = dict(raw)
    body = data.get("body")
    if isinstance(body, (dict, list)):
        data["body"] = orjson.dumps(body).decode("utf-8")
        data.setdefault("bodyType", "json")
    if data.get("preScriptFile"):
        data["preScript"] = _read_script(p.parent, data["preScriptFile"])
    if data.get("postScriptFile"):
        data["postScript"] = _read_script(p.parent, data["postScriptFile"])
    if not data.get("name"):
        data["name"] = p.stem

    spec = RequestSpec.from_dict(data)
    logger.debug("Loaded request %r: %s %s", spec.name, spec.method.value, spec.url)
    return spec
