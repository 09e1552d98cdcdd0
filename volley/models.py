"""Data models for volley.

Requests and outcomes are plain dataclasses with camelCase ``to_dict``
encodings for JSON interchange (history files, reports). BenchmarkSample is
the most allocated object during a load test, so it uses __slots__ directly.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from .exceptions import ValidationError

# Load-test success band: [200, 400)
SUCCESS_STATUS_MIN = 200
SUCCESS_STATUS_MAX = 400
# Status recorded when no HTTP response was obtained
TRANSPORT_FAILURE_STATUS = 0


class HttpMethod(str, Enum):
    """Supported request methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class BodyType(str, Enum):
    """How the request body text is interpreted."""

    NONE = "none"
    JSON = "json"


def is_success_status(status: int) -> bool:
    return SUCCESS_STATUS_MIN <= status < SUCCESS_STATUS_MAX


def as_bool(value: Any, default: bool) -> bool:
    """Booleans from JSON/YAML: real bools, numbers, or strings like "true"/"off"."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(slots=True)
class KeyValue:
    """One header or query-param row. Rows with enabled=False or an empty key are ignored when building."""

    key: str
    value: str = ""
    enabled: bool = True
    id: str = ""

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.key)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "key": self.key, "value": self.value, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: Any) -> "KeyValue":
        if not isinstance(data, Mapping):
            raise ValidationError(
                "Header/param row must be an object",
                context={"actual_type": type(data).__name__},
            )
        value = data.get("value", "")
        return cls(
            key=str(data.get("key") or ""),
            value="" if value is None else str(value),
            enabled=as_bool(data.get("enabled"), True),
            id=str(data.get("id") or ""),
        )


def _rows_from(data: Mapping[str, Any], name: str) -> list[KeyValue]:
    raw = data.get(name)
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        # Shorthand: {"Accept": "application/json"}
        return [KeyValue(key=str(k), value="" if v is None else str(v)) for k, v in raw.items()]
    if not isinstance(raw, list):
        raise ValidationError(f"{name} must be a list of rows", context={"actual_type": type(raw).__name__})
    return [KeyValue.from_dict(item) for item in raw]


@dataclass(slots=True)
class RequestSpec:
    """Declarative description of one HTTP request.

    Owned by the caller. Executions work on a deep copy so that script
    mutations never leak back into the caller's instance.
    """

    url: str
    method: HttpMethod = HttpMethod.GET
    name: str = "New Request"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    headers: list[KeyValue] = field(default_factory=list)
    query_params: list[KeyValue] = field(default_factory=list)
    body_type: BodyType = BodyType.NONE
    body: str = ""
    pre_script: str = ""
    post_script: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "method": self.method.value,
            "url": self.url,
            "headers": [h.to_dict() for h in self.headers],
            "queryParams": [p.to_dict() for p in self.query_params],
            "bodyType": self.body_type.value,
            "body": self.body,
            "preScript": self.pre_script,
            "postScript": self.post_script,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "RequestSpec":
        """Build a RequestSpec from its JSON shape.

        Accepts ``testScript`` as an alias of ``postScript`` and a plain
        mapping as shorthand for header/param rows.

        Raises:
            ValidationError: If the shape or an enum value is invalid
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Request must be an object", context={"actual_type": type(data).__name__})
        method_raw = str(data.get("method") or "GET").strip().upper()
        try:
            method = HttpMethod(method_raw)
        except ValueError as e:
            raise ValidationError(f"Unsupported HTTP method: {method_raw}", original_error=e) from e
        body_type_raw = str(data.get("bodyType") or "none").strip().lower()
        try:
            body_type = BodyType(body_type_raw)
        except ValueError as e:
            raise ValidationError(f"Unsupported body type: {body_type_raw}", original_error=e) from e
        url = data.get("url")
        if not isinstance(url, str):
            raise ValidationError("Request url must be a string")
        post_script = data.get("postScript")
        if post_script is None:
            post_script = data.get("testScript")
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            name=str(data.get("name") or "New Request"),
            method=method,
            url=url,
            headers=_rows_from(data, "headers"),
            query_params=_rows_from(data, "queryParams"),
            body_type=body_type,
            body=str(data.get("body") or ""),
            pre_script=str(data.get("preScript") or ""),
            post_script=str(post_script or ""),
        )

    def copy(self) -> "RequestSpec":
        """Field-for-field deep copy; rows are duplicated, never shared."""
        return replace(
            self,
            headers=[replace(h) for h in self.headers],
            query_params=[replace(p) for p in self.query_params],
        )


@dataclass(frozen=True, slots=True)
class BuiltRequest:
    """Wire-ready request. Shared read-only across all load-test workers."""

    method: str
    final_url: str
    header_map: dict[str, str]
    body_bytes: bytes | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "finalUrl": self.final_url,
            "headerMap": dict(self.header_map),
            "body": self.body_bytes.decode("utf-8") if self.body_bytes is not None else None,
        }


@dataclass(slots=True)
class ExecutionOutcome:
    """Result of one single-request execution; failures are encoded as status 0."""

    status: int
    status_text: str
    elapsed_ms: int
    size_bytes: int
    headers: dict[str, str] = field(default_factory=dict)
    parsed_body: Any = None
    raw_body: str = ""
    script_logs: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """True when no HTTP response was obtained."""
        return self.status == TRANSPORT_FAILURE_STATUS

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "statusText": self.status_text,
            "elapsedMillis": self.elapsed_ms,
            "sizeBytes": self.size_bytes,
            "headers": dict(self.headers),
            "parsedBody": self.parsed_body,
            "rawBody": self.raw_body,
            "scriptLogs": list(self.script_logs),
        }


class BenchmarkSample:
    """One completed load-test attempt (success or failure)."""

    __slots__ = ("sequence_id", "issued_at_ms", "status", "latency_ms")

    def __init__(self, sequence_id: int, issued_at_ms: int, status: int, latency_ms: int) -> None:
        self.sequence_id = sequence_id
        self.issued_at_ms = issued_at_ms
        self.status = status
        self.latency_ms = latency_ms

    @property
    def success(self) -> bool:
        return is_success_status(self.status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequenceId": self.sequence_id,
            "issuedAtEpochMillis": self.issued_at_ms,
            "status": self.status,
            "latencyMillis": self.latency_ms,
        }

    def __repr__(self) -> str:
        return (
            f"BenchmarkSample(seq={self.sequence_id}, status={self.status}, "
            f"latency_ms={self.latency_ms})"
        )


@dataclass(frozen=True, slots=True)
class BenchmarkReport:
    """Aggregate load-test statistics, built once from the full sample list."""

    total_requests: int
    success_count: int
    error_count: int
    total_elapsed_ms: float
    avg_latency_ms: float
    min_latency_ms: int
    max_latency_ms: int
    requests_per_second: float
    timeline: tuple[BenchmarkSample, ...] = ()
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    status_counts: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate_pct(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return 100.0 * self.success_count / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "totalElapsedMillis": round(self.total_elapsed_ms, 3),
            "avgLatency": round(self.avg_latency_ms, 3),
            "minLatency": self.min_latency_ms,
            "maxLatency": self.max_latency_ms,
            "requestsPerSecond": round(self.requests_per_second, 4),
            "p50": round(self.p50_ms, 3),
            "p95": round(self.p95_ms, 3),
            "p99": round(self.p99_ms, 3),
            "statusCounts": dict(self.status_counts),
            "timeline": [s.to_dict() for s in self.timeline],
        }


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One executed request as remembered by the ledger."""

    id: str
    timestamp: int  # epoch milliseconds
    request: RequestSpec
    response_status: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "requestSnapshot": self.request.to_dict(),
            "responseStatus": self.response_status,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "HistoryEntry":
        if not isinstance(data, Mapping):
            raise ValidationError("History entry must be an object")
        status = data.get("responseStatus")
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            timestamp=int(data.get("timestamp") or 0),
            request=RequestSpec.from_dict(data.get("requestSnapshot")),
            response_status=int(status) if status is not None else None,
        )


@dataclass(slots=True)
class LoadConfig:
    """Load-test configuration from YAML or CLI flags."""

    concurrency: int
    loops_per_user: int
    timeout_seconds: float = 30.0
    http2: bool = True
