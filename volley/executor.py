"""Single request execution: pre-script -> build -> transmit -> post-script.

execute() always returns an ExecutionOutcome. Validation, transport and
script failures are encoded in the outcome (status 0 and log lines), never
raised to the caller.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import orjson

from .builder import build
from .engine import DEFAULT_TIMEOUT_SEC, NS_TO_MS, TransportResponse, create_client, send_request
from .exceptions import TransportFailure, ValidationError
from .history import HistoryLedger, default_ledger
from .logging_config import get_logger
from .models import TRANSPORT_FAILURE_STATUS, BuiltRequest, ExecutionOutcome, RequestSpec
from .sandbox import run_script

logger = get_logger("executor")

NETWORK_ERROR_PREFIX = "Network Error: "
VALIDATION_ERROR_PREFIX = "Validation Error: "
FAILURE_STATUS_TEXT = "Error"


def _elapsed_ms(start_ns: int) -> int:
    return round((time.perf_counter_ns() - start_ns) / NS_TO_MS)


def _parse_json_body(text: str) -> Any:
    """Parsed JSON value, or None when the body is not JSON."""
    if not text:
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None


def _response_size(resp: TransportResponse) -> int:
    """Declared content-length when parseable, else the received byte count."""
    if resp.content_length is not None:
        try:
            declared = int(resp.content_length.strip())
        except ValueError:
            declared = -1
        if declared >= 0:
            return declared
    return resp.body_size


def _failure(message: str, elapsed_ms: int, logs: list[str]) -> ExecutionOutcome:
    return ExecutionOutcome(
        status=TRANSPORT_FAILURE_STATUS,
        status_text=FAILURE_STATUS_TEXT,
        elapsed_ms=elapsed_ms,
        size_bytes=0,
        headers={},
        parsed_body=None,
        raw_body=message,
        script_logs=logs,
    )


async def _transmit(
    built: BuiltRequest,
    client: httpx.AsyncClient | None,
    timeout: float,
    http2: bool,
) -> TransportResponse:
    if client is not None:
        return await send_request(client, built)
    async with await create_client(http2=http2, timeout=timeout) as own_client:
        return await send_request(own_client, built)


async def execute(
    spec: RequestSpec,
    *,
    client: httpx.AsyncClient | None = None,
    ledger: HistoryLedger | None = None,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    http2: bool = True,
) -> ExecutionOutcome:
    """Execute one request with its scripts and record it in the history ledger.

    Elapsed time runs from just before the pre-script to just after the
    transport call returns, so it includes pre-script time.

    Args:
        spec: Request to execute; deep-copied, never mutated
        client: Shared client; a short-lived one is created when omitted
        ledger: History ledger; the process default when omitted
        timeout: Transport timeout for a client created here
        http2: HTTP/2 for a client created here

    Returns:
        ExecutionOutcome, status 0 when no HTTP response was obtained
    """
    snapshot = spec.copy()
    working: dict[str, Any] = snapshot.to_dict()
    logs: list[str] = []
    ledger = ledger if ledger is not None else default_ledger()

    start_ns = time.perf_counter_ns()
    run_script(snapshot.pre_script, request=working, logs=logs)

    try:
        built = build(RequestSpec.from_dict(working))
    except ValidationError as e:
        logger.info("Request %r not sent: %s", snapshot.name, e.message)
        logs.append(VALIDATION_ERROR_PREFIX + e.message)
        outcome = _failure(e.message, _elapsed_ms(start_ns), logs)
        ledger.append(snapshot, None)
        return outcome

    logger.debug("Sending %s %s", built.method, built.final_url)
    try:
        resp = await _transmit(built, client, timeout, http2)
    except TransportFailure as e:
        elapsed = _elapsed_ms(start_ns)
        logger.info("Request %r failed after %d ms: %s", snapshot.name, elapsed, e.message)
        logs.append(NETWORK_ERROR_PREFIX + e.message)
        outcome = _failure(e.message, elapsed, logs)
        ledger.append(snapshot, None)
        return outcome
    elapsed = _elapsed_ms(start_ns)

    outcome = ExecutionOutcome(
        status=resp.status,
        status_text=resp.status_text,
        elapsed_ms=elapsed,
        size_bytes=_response_size(resp),
        headers=resp.headers,
        parsed_body=_parse_json_body(resp.body_text),
        raw_body=resp.body_text,
        script_logs=logs,
    )
    run_script(snapshot.post_script, request=working, response=outcome.to_dict(), logs=logs)

    ledger.append(snapshot, outcome.status)
    logger.info("Request %r -> %d in %d ms", snapshot.name, outcome.status, elapsed)
    return outcome
