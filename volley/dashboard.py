"""Rich rendering for outcomes, benchmark reports, history and the live load-test panel."""

from __future__ import annotations

from typing import Any

import orjson
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .logging_config import get_logger
from .metrics import LiveStats
from .models import BenchmarkReport, ExecutionOutcome, HistoryEntry

logger = get_logger("dashboard")

FAILED_STATUS_LABEL = "ERR"
BODY_PREVIEW_LIMIT = 20_000


def status_label(status: int | None) -> str:
    """'ERR' when no HTTP status was obtained."""
    return str(status) if status else FAILED_STATUS_LABEL


def _status_style(status: int | None) -> str:
    if not status:
        return "bold red"
    if status >= 400:
        return "bold red"
    if status >= 300:
        return "bold yellow"
    return "bold green"


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    return f"{size / 1024:.2f} KB"


def _body_text(outcome: ExecutionOutcome) -> str:
    if outcome.parsed_body is not None:
        try:
            return orjson.dumps(outcome.parsed_body, option=orjson.OPT_INDENT_2).decode("utf-8")
        except orjson.JSONEncodeError:
            logger.debug("Parsed body not re-serializable, showing raw body")
    body = outcome.raw_body
    if len(body) > BODY_PREVIEW_LIMIT:
        return body[:BODY_PREVIEW_LIMIT] + "\n..."
    return body


def build_outcome_panel(outcome: ExecutionOutcome, show_headers: bool = False) -> Panel:
    """One panel: status line, optional headers, body and script logs."""
    title = Text()
    title.append(f"{status_label(outcome.status)} {outcome.status_text}", style=_status_style(outcome.status))
    title.append(f" | {outcome.elapsed_ms} ms | {_format_size(outcome.size_bytes)}", style="dim")

    parts: list[Any] = []
    if show_headers and outcome.headers:
        headers = Table.grid(padding=(0, 2))
        headers.add_column(style="cyan")
        headers.add_column()
        for k, v in outcome.headers.items():
            headers.add_row(k, v)
        parts.append(headers)
        parts.append(Text(""))
    parts.append(Text(_body_text(outcome)))
    if outcome.script_logs:
        parts.append(Text(""))
        parts.append(Text("Script logs", style="bold magenta"))
        for line in outcome.script_logs:
            parts.append(Text(line, style="magenta"))
    return Panel(Group(*parts), title=title, border_style="blue")


def render_outcome(outcome: ExecutionOutcome, console: Console | None = None, show_headers: bool = False) -> None:
    (console or Console()).print(build_outcome_panel(outcome, show_headers=show_headers))


def build_report_table(report: BenchmarkReport) -> Table:
    """Summary table of a finished load test."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column(style="green")
    table.add_row("Total requests", str(report.total_requests))
    table.add_row("Success", str(report.success_count))
    table.add_row("Errors", str(report.error_count))
    table.add_row("Success rate %", f"{report.success_rate_pct:.1f}%")
    table.add_row("Requests/s", f"{report.requests_per_second:.2f}")
    table.add_row("Total time (ms)", f"{report.total_elapsed_ms:.0f}")
    table.add_row("Avg latency (ms)", f"{report.avg_latency_ms:.1f}")
    table.add_row("Min latency (ms)", str(report.min_latency_ms))
    table.add_row("Max latency (ms)", str(report.max_latency_ms))
    table.add_row("P50 / P95 / P99 (ms)", f"{report.p50_ms:.1f} / {report.p95_ms:.1f} / {report.p99_ms:.1f}")
    if report.status_counts:
        dist = ", ".join(f"{k}: {v}" for k, v in sorted(report.status_counts.items(), key=lambda x: -x[1]))
        table.add_row("Status codes", dist)
    return table


def render_report(report: BenchmarkReport, console: Console | None = None, title: str = "Load test") -> None:
    (console or Console()).print(Panel(build_report_table(report), title=title, border_style="magenta"))


def build_progress_table(stats: LiveStats) -> Table:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column(style="green")
    table.add_row("Completed", f"{stats.completed} / {stats.expected_total} ({stats.progress_pct:.0f}%)")
    table.add_row("Success", str(stats.success))
    table.add_row("Errors", str(stats.errors))
    table.add_row("Avg latency (ms)", f"{stats.avg_latency_ms:.1f}")
    table.add_row("Requests/s", f"{stats.current_rps:.1f}")
    return table


def create_live_panel(stats: LiveStats, concurrency: int, loops_per_user: int) -> Panel:
    """Create Rich Panel for live display."""
    title = Text()
    title.append("volley ", style="bold magenta")
    title.append(f"| {concurrency} users x {loops_per_user} loops | {stats.elapsed_seconds:.1f}s", style="dim")
    return Panel(build_progress_table(stats), title=title, border_style="blue")


def build_history_table(entries: list[HistoryEntry]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Method")
    table.add_column("Status")
    table.add_column("URL", overflow="fold")
    for entry in entries:
        table.add_row(
            entry.id[:12],
            entry.request.method.value,
            Text(status_label(entry.response_status), style=_status_style(entry.response_status)),
            entry.request.url,
        )
    return table


def render_history(entries: list[HistoryEntry], console: Console | None = None) -> None:
    console = console or Console()
    if not entries:
        console.print("[dim]No history yet[/dim]")
        return
    console.print(build_history_table(entries))
