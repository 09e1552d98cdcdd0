"""Load-test aggregation.

build_report reduces the complete sample list to a BenchmarkReport in a
single pass (T-Digest for percentiles). LiveStats keeps running counters
for the live dashboard while samples are still arriving.
"""

from __future__ import annotations

import time
from collections import defaultdict
from operator import attrgetter
from typing import TYPE_CHECKING

from tdigest import TDigest

from .logging_config import get_logger
from .models import TRANSPORT_FAILURE_STATUS, BenchmarkReport, BenchmarkSample

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger("metrics")

ERROR_STATUS_KEY = "Error"


def _percentile_from_digest(digest: TDigest, p: float) -> float:
    """Get percentile from T-Digest. Returns 0.0 if empty."""
    try:
        return digest.percentile(p) or 0.0
    except (ValueError, IndexError):
        return 0.0


def status_key(status: int) -> str:
    return ERROR_STATUS_KEY if status == TRANSPORT_FAILURE_STATUS else str(status)


def build_report(samples: Iterable[BenchmarkSample], total_elapsed_ms: float) -> BenchmarkReport:
    """Reduce every sample of a finished run to a BenchmarkReport.

    Failed attempts count towards latency statistics and only drop out of
    the success count. The timeline is re-ordered by sequence id because
    completion order across workers is arbitrary.
    """
    timeline = tuple(sorted(samples, key=attrgetter("sequence_id")))
    total = len(timeline)
    if total == 0:
        return BenchmarkReport(
            total_requests=0,
            success_count=0,
            error_count=0,
            total_elapsed_ms=total_elapsed_ms,
            avg_latency_ms=0.0,
            min_latency_ms=0,
            max_latency_ms=0,
            requests_per_second=0.0,
        )

    digest = TDigest()
    success = 0
    sum_latency = 0
    min_latency = timeline[0].latency_ms
    max_latency = timeline[0].latency_ms
    status_counts: dict[str, int] = defaultdict(int)

    for s in timeline:
        lat = s.latency_ms
        if s.success:
            success += 1
        sum_latency += lat
        if lat < min_latency:
            min_latency = lat
        if lat > max_latency:
            max_latency = lat
        digest.update(lat)
        status_counts[status_key(s.status)] += 1

    rps = total / (total_elapsed_ms / 1000.0) if total_elapsed_ms > 0 else 0.0
    logger.debug("Aggregated %d samples over %.1f ms", total, total_elapsed_ms)
    return BenchmarkReport(
        total_requests=total,
        success_count=success,
        error_count=total - success,
        total_elapsed_ms=total_elapsed_ms,
        avg_latency_ms=sum_latency / total,
        min_latency_ms=min_latency,
        max_latency_ms=max_latency,
        requests_per_second=rps,
        timeline=timeline,
        p50_ms=_percentile_from_digest(digest, 50),
        p95_ms=_percentile_from_digest(digest, 95),
        p99_ms=_percentile_from_digest(digest, 99),
        status_counts=dict(status_counts),
    )


class LiveStats:
    """Running counters for the live dashboard. Not used for the final report."""

    __slots__ = ("expected_total", "completed", "success", "_sum_latency", "_start")

    def __init__(self, expected_total: int) -> None:
        self.expected_total = expected_total
        self.completed = 0
        self.success = 0
        self._sum_latency = 0
        self._start = time.perf_counter()

    def add(self, sample: BenchmarkSample) -> None:
        self.completed += 1
        self._sum_latency += sample.latency_ms
        if sample.success:
            self.success += 1

    @property
    def errors(self) -> int:
        return self.completed - self.success

    @property
    def avg_latency_ms(self) -> float:
        return self._sum_latency / self.completed if self.completed else 0.0

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self._start

    @property
    def current_rps(self) -> float:
        elapsed = self.elapsed_seconds
        return self.completed / elapsed if elapsed > 0 else 0.0

    @property
    def progress_pct(self) -> float:
        if self.expected_total <= 0:
            return 100.0
        return 100.0 * self.completed / self.expected_total
