"""Unit tests for builder (build, header map, query string)."""

from __future__ import annotations

import pytest

from volley.builder import append_query, build, build_header_map, build_query_string
from volley.exceptions import ValidationError
from volley.models import BodyType, HttpMethod, KeyValue, RequestSpec


def test_build_encodes_query_params() -> None:
    spec = RequestSpec(
        url="https://x.com/search",
        query_params=[KeyValue(key="q", value="a b&c"), KeyValue(key="lang", value="ü")],
    )
    built = build(spec)
    assert built.final_url == "https://x.com/search?q=a%20b%26c&lang=%C3%BC"


def test_build_skips_disabled_and_empty_key_rows() -> None:
    spec = RequestSpec(
        url="https://x.com",
        headers=[
            KeyValue(key="X-On", value="1"),
            KeyValue(key="X-Off", value="2", enabled=False),
            KeyValue(key="", value="orphan"),
        ],
        query_params=[KeyValue(key="a", value="1", enabled=False), KeyValue(key="", value="z")],
    )
    built = build(spec)
    assert built.header_map == {"X-On": "1"}
    assert built.final_url == "https://x.com"


def test_build_header_last_write_wins() -> None:
    rows = [KeyValue(key="X-A", value="first"), KeyValue(key="X-A", value="second")]
    assert build_header_map(rows) == {"X-A": "second"}


def test_build_get_never_has_body() -> None:
    spec = RequestSpec(url="https://x.com", method=HttpMethod.GET, body_type=BodyType.JSON, body='{"a": 1}')
    built = build(spec)
    assert built.body_bytes is None
    assert "Content-Type" not in built.header_map


def test_build_body_type_none_has_no_body() -> None:
    spec = RequestSpec(url="https://x.com", method=HttpMethod.POST, body='{"a": 1}')
    assert build(spec).body_bytes is None


def test_build_empty_json_body_has_no_body() -> None:
    spec = RequestSpec(url="https://x.com", method=HttpMethod.PUT, body_type=BodyType.JSON, body="")
    assert build(spec).body_bytes is None


def test_build_json_body_adds_content_type() -> None:
    spec = RequestSpec(url="https://x.com", method=HttpMethod.POST, body_type=BodyType.JSON, body='{"a": 1}')
    built = build(spec)
    assert built.body_bytes == b'{"a": 1}'
    assert built.header_map["Content-Type"] == "application/json"


def test_build_keeps_existing_content_type() -> None:
    spec = RequestSpec(
        url="https://x.com",
        method=HttpMethod.PATCH,
        body_type=BodyType.JSON,
        body="[1, 2]",
        headers=[KeyValue(key="content-type", value="application/vnd.api+json")],
    )
    built = build(spec)
    assert built.header_map == {"content-type": "application/vnd.api+json"}


def test_build_invalid_json_raises_validation_error() -> None:
    spec = RequestSpec(url="https://x.com", method=HttpMethod.POST, body_type=BodyType.JSON, body="{not json")
    with pytest.raises(ValidationError, match="Invalid JSON body"):
        build(spec)


def test_build_is_deterministic() -> None:
    spec = RequestSpec(
        url="https://x.com/a",
        method=HttpMethod.POST,
        headers=[KeyValue(key="X-A", value="1")],
        query_params=[KeyValue(key="k", value="v")],
        body_type=BodyType.JSON,
        body='{"n": 1}',
    )
    assert build(spec) == build(spec)


def test_build_query_string_empty() -> None:
    assert build_query_string([]) == ""


def test_append_query_to_url_with_existing_query() -> None:
    assert append_query("https://x.com/?a=1", "b=2") == "https://x.com/?a=1&b=2"
    assert append_query("https://x.com/?", "b=2") == "https://x.com/?b=2"
    assert append_query("https://x.com/", "") == "https://x.com/"
