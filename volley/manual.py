"""
Ad-hoc requests from command line flags, without a request file.

When -m URL is used, this module builds the RequestSpec from scratch:
repeated -H 'Key: Value' headers, -q key=value params and an optional -d
JSON body. The rest of the pipeline (builder, executor, load test) works
unchanged.
"""

from __future__ import annotations

from urllib.parse import urlparse

from .exceptions import ValidationError
from .models import BodyType, HttpMethod, KeyValue, RequestSpec

MANUAL_REQUEST_NAME = "Manual Request"


def parse_header_args(values: list[str] | None) -> list[KeyValue]:
    """'Key: Value' strings to rows. Entries without ':' are rejected."""
    rows: list[KeyValue] = []
    for s in values or []:
        if ":" not in s:
            raise ValidationError(f"Invalid header (expected 'Key: Value'): {s}")
        k, _, v = s.partition(":")
        rows.append(KeyValue(key=k.strip(), value=v.strip()))
    return rows


def parse_param_args(values: list[str] | None) -> list[KeyValue]:
    """'key=value' strings to rows. A bare 'key' becomes key with empty value."""
    rows: list[KeyValue] = []
    for s in values or []:
        k, _, v = s.partition("=")
        rows.append(KeyValue(key=k.strip(), value=v.strip()))
    return rows


def build_manual_spec(
    url: str,
    method: str = "GET",
    headers: list[str] | None = None,
    params: list[str] | None = None,
    body: str | None = None,
    pre_script: str = "",
    post_script: str = "",
) -> RequestSpec:
    """
    Build a RequestSpec for the given URL.

    Args:
        url: Full target URL (e.g. https://api.example.com/health).
        method: HTTP method (default GET).
        headers: 'Key: Value' strings.
        params: 'key=value' strings.
        body: JSON body text; sets bodyType to json when given.
        pre_script: Pre-request script source.
        post_script: Post-response script source.

    Raises:
        ValidationError: If URL is empty or invalid, or the method is unsupported.
    """
    url = url.strip()
    if not url:
        raise ValidationError("URL must not be empty")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValidationError(f"Invalid URL: {url}")

    method_name = method.strip().upper() or "GET"
    try:
        http_method = HttpMethod(method_name)
    except ValueError as e:
        raise ValidationError(f"Unsupported HTTP method: {method_name}", original_error=e) from e

    return RequestSpec(
        name=MANUAL_REQUEST_NAME,
        method=http_method,
        url=url,
        headers=parse_header_args(headers),
        query_params=parse_param_args(params),
        body_type=BodyType.JSON if body else BodyType.NONE,
        body=body or "",
        pre_script=pre_script,
        post_script=post_script,
    )


def manual_report_name(url: str) -> str:
    """Short label for report title (host only)."""
    parsed = urlparse(url.strip())
    return parsed.netloc or "manual"
