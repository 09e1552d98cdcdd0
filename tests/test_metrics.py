"""Unit tests for metrics (build_report, LiveStats)."""

from __future__ import annotations

import pytest

from volley.metrics import LiveStats, build_report, status_key
from volley.models import BenchmarkSample


def _sample(seq: int, status: int, latency: int) -> BenchmarkSample:
    return BenchmarkSample(sequence_id=seq, issued_at_ms=1_700_000_000_000 + seq, status=status, latency_ms=latency)


def test_build_report_empty() -> None:
    report = build_report([], 0.0)
    assert report.total_requests == 0
    assert report.requests_per_second == 0.0
    assert report.avg_latency_ms == 0.0
    assert report.timeline == ()
    assert report.success_rate_pct == 100.0


def test_build_report_aggregates() -> None:
    samples = [_sample(2, 500, 30), _sample(0, 200, 10), _sample(1, 0, 20), _sample(3, 399, 40)]
    report = build_report(samples, 2000.0)
    assert report.total_requests == 4
    assert report.success_count == 2
    assert report.error_count == 2
    assert report.avg_latency_ms == pytest.approx(25.0)
    assert report.min_latency_ms == 10
    assert report.max_latency_ms == 40
    assert report.requests_per_second == pytest.approx(2.0)
    assert [s.sequence_id for s in report.timeline] == [0, 1, 2, 3]
    assert report.status_counts == {"500": 1, "200": 1, "Error": 1, "399": 1}


def test_build_report_zero_elapsed_gives_zero_rps() -> None:
    report = build_report([_sample(0, 200, 1)], 0.0)
    assert report.requests_per_second == 0.0


def test_build_report_percentiles_in_range() -> None:
    samples = [_sample(i, 200, i + 1) for i in range(100)]
    report = build_report(samples, 1000.0)
    assert 1 <= report.p50_ms <= 100
    assert report.p50_ms <= report.p95_ms <= report.p99_ms <= 100


def test_report_to_dict_keys() -> None:
    d = build_report([_sample(0, 201, 5)], 10.0).to_dict()
    assert d["totalRequests"] == 1
    assert d["successCount"] == 1
    assert d["timeline"] == [
        {"sequenceId": 0, "issuedAtEpochMillis": 1_700_000_000_000, "status": 201, "latencyMillis": 5}
    ]


def test_status_key() -> None:
    assert status_key(0) == "Error"
    assert status_key(204) == "204"


def test_live_stats() -> None:
    stats = LiveStats(expected_total=4)
    stats.add(_sample(0, 200, 10))
    stats.add(_sample(1, 503, 30))
    assert stats.completed == 2
    assert stats.success == 1
    assert stats.errors == 1
    assert stats.avg_latency_ms == pytest.approx(20.0)
    assert stats.progress_pct == pytest.approx(50.0)
    assert stats.current_rps >= 0


def test_live_stats_empty() -> None:
    stats = LiveStats(expected_total=0)
    assert stats.avg_latency_ms == 0.0
    assert stats.progress_pct == 100.0
