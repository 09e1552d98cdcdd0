"""Load-test harness: N virtual users x M sequential attempts, then one report.

The request is built exactly once and shared by every worker. Pre/post
scripts are not run here; script overhead would distort throughput.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import httpx

from .builder import build
from .engine import DEFAULT_TIMEOUT_SEC, NS_TO_MS, collect_results, create_client, pool_limits, run_worker
from .exceptions import ConfigurationError
from .logging_config import get_logger
from .metrics import build_report
from .models import BenchmarkReport, BenchmarkSample, BuiltRequest, LoadConfig, RequestSpec

logger = get_logger("runner")

# Result queue maximum size
RESULT_QUEUE_MAXSIZE = 50_000

SampleCallback = Callable[[BenchmarkSample], None]


def validate_load_parameters(concurrency: int, loops_per_user: int) -> None:
    """Raise ConfigurationError unless both values are integers >= 1."""
    for name, value in (("concurrency", concurrency), ("loops_per_user", loops_per_user)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{name} must be an integer", context={name: value})
        if value < 1:
            raise ConfigurationError(f"{name} must be >= 1", context={name: value})


async def _run_workers(
    client: httpx.AsyncClient,
    built: BuiltRequest,
    concurrency: int,
    loops_per_user: int,
    stop_event: asyncio.Event | None,
    on_sample: SampleCallback | None,
) -> BenchmarkReport:
    result_queue: asyncio.Queue[BenchmarkSample | None] = asyncio.Queue(maxsize=RESULT_QUEUE_MAXSIZE)
    samples: list[BenchmarkSample] = []

    start_ns = time.perf_counter_ns()
    workers = [
        asyncio.create_task(
            run_worker(client, built, u, loops_per_user, result_queue, stop_event)
        )
        for u in range(concurrency)
    ]
    try:
        async for sample in collect_results(result_queue, concurrency):
            samples.append(sample)
            if on_sample is not None:
                on_sample(sample)
        await asyncio.gather(*workers)
    finally:
        pending = [t for t in workers if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    elapsed_ms = (time.perf_counter_ns() - start_ns) / NS_TO_MS

    return build_report(samples, elapsed_ms)


async def run_load(
    spec: RequestSpec,
    concurrency: int,
    loops_per_user: int,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    http2: bool = True,
    stop_event: asyncio.Event | None = None,
    on_sample: SampleCallback | None = None,
) -> BenchmarkReport:
    """Run the load test and wait for every attempt of every worker.

    Args:
        spec: Request to fire; built once, scripts ignored
        concurrency: Number of concurrent virtual users (>= 1)
        loops_per_user: Sequential attempts per user (>= 1)
        client: Shared client; when omitted, one is created with a pool sized to concurrency
        timeout: Per-attempt transport timeout for a client created here
        http2: HTTP/2 for a client created here
        stop_event: Cooperative stop, checked between attempts
        on_sample: Called with each sample as it arrives (live progress)

    Raises:
        ConfigurationError: If concurrency or loops_per_user is invalid
        ValidationError: If the request cannot be built
    """
    validate_load_parameters(concurrency, loops_per_user)
    built = build(spec)
    logger.info(
        "Starting load test: %s %s, concurrency=%d, loops_per_user=%d",
        built.method, built.final_url, concurrency, loops_per_user,
    )
    if client is None:
        async with await create_client(http2=http2, timeout=timeout, limits=pool_limits(concurrency)) as own_client:
            report = await _run_workers(own_client, built, concurrency, loops_per_user, stop_event, on_sample)
    else:
        report = await _run_workers(client, built, concurrency, loops_per_user, stop_event, on_sample)
    logger.info(
        "Load test finished: total=%d success=%d rps=%.1f avg_ms=%.1f",
        report.total_requests, report.success_count, report.requests_per_second, report.avg_latency_ms,
    )
    return report


async def run_load_with_config(
    spec: RequestSpec,
    config: LoadConfig,
    *,
    client: httpx.AsyncClient | None = None,
    stop_event: asyncio.Event | None = None,
    on_sample: SampleCallback | None = None,
) -> BenchmarkReport:
    """run_load with parameters taken from a LoadConfig."""
    return await run_load(
        spec,
        config.concurrency,
        config.loops_per_user,
        client=client,
        timeout=config.timeout_seconds,
        http2=config.http2,
        stop_event=stop_event,
        on_sample=on_sample,
    )
