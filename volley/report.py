"""Benchmark report writers: JSON (machine-readable) and a single-file HTML page."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse, urlunparse

import orjson
from jinja2 import Environment, PackageLoader, select_autoescape

from . import __version__ as volley_version
from .models import BenchmarkReport, BuiltRequest, is_success_status

# Timeline chart geometry (SVG user units)
CHART_WIDTH = 800
CHART_HEIGHT = 200
CHART_PADDING = 10


def mask_url(url: str, max_path_length: int = 120) -> str:
    """Remove query string and fragment from URL to avoid leaking tokens in reports."""
    if not url or not url.strip():
        return url
    parsed = urlparse(url)
    clean = urlunparse((parsed.scheme, parsed.netloc, parsed.path or "", "", "", ""))
    if len(clean) > max_path_length:
        clean = clean[: max_path_length - 3] + "..."
    return clean


def _fmt_dt(dt: datetime | None) -> str | None:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else None


def _target(built: BuiltRequest | None) -> dict[str, Any]:
    if built is None:
        return {}
    return {"method": built.method, "url": mask_url(built.final_url)}


def _timeline_points(report: BenchmarkReport) -> list[dict[str, Any]]:
    """Latency per sequence id scaled to the SVG viewport."""
    timeline = report.timeline
    if not timeline:
        return []
    max_latency = max(report.max_latency_ms, 1)
    last = max(len(timeline) - 1, 1)
    usable_w = CHART_WIDTH - 2 * CHART_PADDING
    usable_h = CHART_HEIGHT - 2 * CHART_PADDING
    points = []
    for i, s in enumerate(timeline):
        points.append({
            "x": round(CHART_PADDING + usable_w * i / last, 2),
            "y": round(CHART_HEIGHT - CHART_PADDING - usable_h * s.latency_ms / max_latency, 2),
            "ok": is_success_status(s.status),
            "sample": s,
        })
    return points


def build_json_payload(
    report: BenchmarkReport,
    built: BuiltRequest | None = None,
    concurrency: int | None = None,
    loops_per_user: int | None = None,
    start_dt: datetime | None = None,
    end_dt: datetime | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "tool": f"volley {volley_version}",
        "target": _target(built),
        "concurrency": concurrency,
        "loopsPerUser": loops_per_user,
        "startDatetime": _fmt_dt(start_dt),
        "endDatetime": _fmt_dt(end_dt),
    }
    payload.update(report.to_dict())
    return payload


def generate_json_report(
    output_path: str | Path,
    report: BenchmarkReport,
    built: BuiltRequest | None = None,
    concurrency: int | None = None,
    loops_per_user: int | None = None,
    start_dt: datetime | None = None,
    end_dt: datetime | None = None,
) -> None:
    """Write the report, including the full timeline, as indented JSON."""
    payload = build_json_payload(report, built, concurrency, loops_per_user, start_dt, end_dt)
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))


def generate_html_report(
    output_path: str | Path,
    report: BenchmarkReport,
    built: BuiltRequest | None = None,
    concurrency: int | None = None,
    loops_per_user: int | None = None,
    title: str = "Load Test",
    start_dt: datetime | None = None,
    end_dt: datetime | None = None,
) -> None:
    """Write a self-contained HTML page: summary cards, latency timeline (inline SVG), status codes."""
    env = Environment(
        loader=PackageLoader("volley", "templates"),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("benchmark_report.html.j2")
    points = _timeline_points(report)
    html = template.render(
        title=title,
        version=volley_version,
        report=report,
        target=_target(built),
        concurrency=concurrency,
        loops_per_user=loops_per_user,
        points=points,
        polyline=" ".join(f"{p['x']},{p['y']}" for p in points),
        chart_width=CHART_WIDTH,
        chart_height=CHART_HEIGHT,
        status_counts=sorted(report.status_counts.items(), key=lambda x: -x[1]),
        start_datetime_str=start_dt.strftime("%Y-%m-%d %H:%M:%S UTC") if start_dt else "",
        end_datetime_str=end_dt.strftime("%Y-%m-%d %H:%M:%S UTC") if end_dt else "",
    )
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(html, encoding="utf-8")
