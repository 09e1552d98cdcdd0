"""Request builder: RequestSpec -> BuiltRequest. Pure, no I/O.

The load-test harness builds once and shares the result across every
worker, so nothing here may depend on time, randomness or the network.
"""

from __future__ import annotations

from urllib.parse import quote

import orjson

from .exceptions import ValidationError
from .models import BodyType, BuiltRequest, HttpMethod, KeyValue, RequestSpec

JSON_CONTENT_TYPE = "application/json"


def build_header_map(headers: list[KeyValue]) -> dict[str, str]:
    """Enabled rows with a non-empty key; last write wins on duplicate keys."""
    out: dict[str, str] = {}
    for row in headers:
        if row.active:
            out[row.key] = row.value
    return out


def build_query_string(params: list[KeyValue]) -> str:
    """Percent-encode key and value independently and join as k=v&k=v."""
    return "&".join(
        f"{quote(row.key, safe='')}={quote(row.value, safe='')}"
        for row in params
        if row.active
    )


def append_query(url: str, query: str) -> str:
    if not query:
        return url
    if "?" not in url:
        return f"{url}?{query}"
    if url.endswith(("?", "&")):
        return url + query
    return f"{url}&{query}"


def _body_bytes(spec: RequestSpec) -> bytes | None:
    if spec.method is HttpMethod.GET or spec.body_type is not BodyType.JSON or not spec.body:
        return None
    try:
        orjson.loads(spec.body)
    except orjson.JSONDecodeError as e:
        raise ValidationError(
            f"Invalid JSON body: {e}",
            context={"request": spec.name},
            original_error=e,
        ) from e
    return spec.body.encode("utf-8")


def build(spec: RequestSpec) -> BuiltRequest:
    """Turn a RequestSpec into a wire-ready request.

    Raises:
        ValidationError: If the body is declared JSON but does not parse
    """
    body = _body_bytes(spec)
    headers = build_header_map(spec.headers)
    if body is not None and "content-type" not in {k.lower() for k in headers}:
        headers["Content-Type"] = JSON_CONTENT_TYPE
    return BuiltRequest(
        method=spec.method.value,
        final_url=append_query(spec.url, build_query_string(spec.query_params)),
        header_map=headers,
        body_bytes=body,
    )
