"""Unit tests for requestfile (load_request)."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from volley.exceptions import ValidationError
from volley.models import BodyType, HttpMethod
from volley.requestfile import load_request


def test_load_request_yaml(tmp_request_file: Path) -> None:
    spec = load_request(tmp_request_file)
    assert spec.name == "Create user"
    assert spec.method is HttpMethod.POST
    assert spec.headers[0].key == "Authorization"
    assert spec.query_params[0].value == "true"
    assert spec.body_type is BodyType.JSON
    assert orjson.loads(spec.body) == {"name": "Ada"}
    assert spec.post_script == 'log(response["status"])\n'


def test_load_request_json_name_defaults_to_stem(tmp_path: Path) -> None:
    p = tmp_path / "health.json"
    p.write_text('{"url": "https://x.com/health", "preScript": "log(1)"}', encoding="utf-8")
    spec = load_request(p)
    assert spec.name == "health"
    assert spec.method is HttpMethod.GET
    assert spec.pre_script == "log(1)"


def test_load_request_missing_file() -> None:
    with pytest.raises(ValidationError, match="not found"):
        load_request("/nonexistent/request.yaml")


def test_load_request_invalid_json(tmp_path: Path) -> None:
    p = tmp_path / "bad.json"
    p.write_text("{", encoding="utf-8")
    with pytest.raises(ValidationError, match="Invalid JSON"):
        load_request(p)


def test_load_request_not_object(tmp_path: Path) -> None:
    p = tmp_path / "list.yaml"
    p.write_text("- url: https://x.com\n", encoding="utf-8")
    with pytest.raises(ValidationError, match="must contain an object"):
        load_request(p)


def test_load_request_missing_script_file(tmp_path: Path) -> None:
    p = tmp_path / "r.yaml"
    p.write_text("url: https://x.com\npreScriptFile: missing.py\n", encoding="utf-8")
    with pytest.raises(ValidationError, match="Cannot read script file"):
        load_request(p)


def test_load_request_bad_method(tmp_path: Path) -> None:
    p = tmp_path / "r.yaml"
    p.write_text("url: https://x.com\nmethod: HEAD\n", encoding="utf-8")
    with pytest.raises(ValidationError, match="Unsupported HTTP method"):
        load_request(p)
