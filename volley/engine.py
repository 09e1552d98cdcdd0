"""Async transport layer and load-test worker loop.

This module provides the HTTP plumbing shared by both execution modes:
- create_client: Shared async HTTP client factory
- send_request: One transmission with the response fully decoded (single-request mode)
- execute_attempt: One timed load-test attempt, body read and discarded
- run_worker: One virtual user, a fixed number of sequential attempts
- collect_results: Async generator draining the sample queue until every worker is done

Timing uses perf_counter_ns; wall-clock time is only used for the
issued-at stamp of each sample.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import AsyncIterator

import httpx

from .exceptions import TransportFailure
from .logging_config import get_logger
from .models import TRANSPORT_FAILURE_STATUS, BenchmarkSample, BuiltRequest

logger = get_logger("engine")

# High connection limits so the load-test concurrency, not the pool, is the cap.
DEFAULT_MAX_CONNECTIONS = 1000
DEFAULT_MAX_KEEPALIVE = 200
DEFAULT_KEEPALIVE_EXPIRY = 30.0
# Default timeout for HTTP requests (seconds)
DEFAULT_TIMEOUT_SEC = 30.0
# Nanoseconds to milliseconds conversion
NS_TO_MS = 1_000_000
DEFAULT_STATUS_TEXT_OK = "OK"


@dataclass(slots=True)
class TransportResponse:
    """What the executor needs from one HTTP response."""

    status: int
    status_text: str
    headers: dict[str, str] = field(default_factory=dict)
    body_text: str = ""
    body_size: int = 0
    content_length: str | None = None


def _describe(error: BaseException) -> str:
    text = str(error)
    return text if text else type(error).__name__


def _header_map(headers: httpx.Headers) -> dict[str, str]:
    """Headers with the case they were received in; repeated names joined with ', '."""
    out: dict[str, str] = {}
    encoding = headers.encoding
    for raw_key, raw_value in headers.raw:
        key = raw_key.decode(encoding)
        value = raw_value.decode(encoding)
        out[key] = f"{out[key]}, {value}" if key in out else value
    return out


async def _transmit(client: httpx.AsyncClient, built: BuiltRequest) -> httpx.Response:
    try:
        return await client.request(
            built.method,
            built.final_url,
            headers=built.header_map,
            content=built.body_bytes,
        )
    except Exception as e:  # noqa: BLE001
        raise TransportFailure(
            _describe(e),
            context={"method": built.method, "url": built.final_url},
            original_error=e,
        ) from e


async def send_request(client: httpx.AsyncClient, built: BuiltRequest) -> TransportResponse:
    """Transmit ``built`` and decode the response.

    Raises:
        TransportFailure: If no HTTP response was obtained
    """
    r = await _transmit(client, built)
    status_text = r.reason_phrase or ""
    if not status_text and r.status_code == 200:
        status_text = DEFAULT_STATUS_TEXT_OK
    return TransportResponse(
        status=r.status_code,
        status_text=status_text,
        headers=_header_map(r.headers),
        body_text=r.text,
        body_size=len(r.content),
        content_length=r.headers.get("content-length"),
    )


async def execute_attempt(
    client: httpx.AsyncClient,
    built: BuiltRequest,
    sequence_id: int,
) -> BenchmarkSample:
    """Execute one load-test attempt and return its sample.

    Note:
        This never raises for transport errors; they are recorded as status 0
        with the latency measured until the failure was determined.
    """
    issued_at_ms = int(time.time() * 1000)
    start_ns = time.perf_counter_ns()
    try:
        r = await _transmit(client, built)
        status = r.status_code
    except TransportFailure as e:
        logger.debug("Attempt %d failed: %s", sequence_id, e.message)
        status = TRANSPORT_FAILURE_STATUS
    latency_ms = round((time.perf_counter_ns() - start_ns) / NS_TO_MS)
    return BenchmarkSample(
        sequence_id=sequence_id,
        issued_at_ms=issued_at_ms,
        status=status,
        latency_ms=latency_ms,
    )


async def run_worker(
    client: httpx.AsyncClient,
    built: BuiltRequest,
    worker_index: int,
    loops_per_user: int,
    result_queue: asyncio.Queue[BenchmarkSample | None],
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Single virtual user: ``loops_per_user`` strictly sequential attempts.

    Args:
        client: Shared async HTTP client
        built: Request shared by every worker
        worker_index: 0-based worker number; sequence ids are worker_index * loops_per_user + k
        loops_per_user: Number of attempts for this worker
        result_queue: Queue to put samples into
        stop_event: Optional cooperative stop, checked between attempts only

    Note:
        Always sends None sentinel to result_queue when exiting.
    """
    base = worker_index * loops_per_user
    queue_put = result_queue.put
    queue_put_nowait = result_queue.put_nowait
    queue_full = result_queue.full
    try:
        for k in range(loops_per_user):
            if stop_event is not None and stop_event.is_set():
                logger.debug("Worker %d stopped after %d attempts", worker_index, k)
                break
            sample = await execute_attempt(client, built, base + k)
            if not queue_full():
                queue_put_nowait(sample)
            else:
                await queue_put(sample)
    finally:
        await queue_put(None)


def pool_limits(concurrency: int) -> httpx.Limits:
    """Limits with at least one connection per worker, so no worker waits on the pool."""
    return httpx.Limits(
        max_connections=max(concurrency, DEFAULT_MAX_CONNECTIONS),
        max_keepalive_connections=max(concurrency, DEFAULT_MAX_KEEPALIVE),
        keepalive_expiry=DEFAULT_KEEPALIVE_EXPIRY,
    )


async def create_client(
    http2: bool = True,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    limits: httpx.Limits | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create shared async HTTP client.

    Args:
        http2: Enable HTTP/2 protocol
        timeout: Request timeout in seconds
        limits: Custom connection limits (uses high defaults if not specified)
        transport: Custom transport (tests pass httpx.MockTransport)

    Returns:
        Configured AsyncClient ready for use as async context manager
    """
    limits = limits or pool_limits(1)
    return httpx.AsyncClient(
        http2=http2,
        timeout=timeout,
        limits=limits,
        transport=transport,
    )


async def collect_results(
    result_queue: asyncio.Queue[BenchmarkSample | None],
    num_workers: int,
) -> AsyncIterator[BenchmarkSample]:
    """Consume queue until all workers send sentinel.

    Yields:
        BenchmarkSample objects in completion order
    """
    done = 0
    while done < num_workers:
        item = await result_queue.get()
        if item is None:
            done += 1
            continue
        yield item
