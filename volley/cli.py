"""CLI entry point for volley.

Single request mode runs the request with its scripts and prints the
outcome. Bench mode (-b) fires concurrency x loops attempts and prints the
aggregate report, optionally writing JSON/HTML reports.
"""

from __future__ import annotations

import argparse
import asyncio
import gc
import signal
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Coroutine

# uvloop gives a faster event loop where available
_HAS_UVLOOP = False
try:
    import uvloop
    _HAS_UVLOOP = True
except ImportError:
    pass

from rich.console import Console
from rich.live import Live

from . import __version__
from .assist import OllamaTextGenerator, analyze_response, generate_test_code
from .builder import build
from .config import DEFAULT_CONCURRENCY, DEFAULT_LOOPS_PER_USER, DEFAULT_TIMEOUT_SECONDS, load_config, validate_load_config
from .dashboard import create_live_panel, render_history, render_outcome, render_report
from .exceptions import VolleyError
from .executor import execute
from .history import HistoryLedger
from .logging_config import get_logger, set_level
from .manual import build_manual_spec, manual_report_name
from .metrics import LiveStats
from .models import BenchmarkReport, BenchmarkSample, ExecutionOutcome, LoadConfig, RequestSpec
from .report import generate_html_report, generate_json_report
from .requestfile import load_request
from .runner import run_load_with_config

logger = get_logger("cli")

# Minimum seconds between live panel redraws
LIVE_UPDATE_INTERVAL_SEC = 0.1
LIVE_REFRESH_PER_SEC = 4


def _run_async(coro: Coroutine[Any, Any, Any], disable_gc: bool = False) -> Any:
    """Run async coroutine, with uvloop when installed.

    Bench mode disables GC during execution for consistent latency.
    """
    gc_was_enabled = gc.isenabled()
    if disable_gc:
        gc.disable()
    try:
        if _HAS_UVLOOP:
            return uvloop.run(coro)
        return asyncio.run(coro)
    finally:
        if disable_gc and gc_was_enabled:
            gc.enable()
            gc.collect()


def _stdout_is_tty() -> bool:
    """True if stdout is a TTY. False in CI, pipes and containers without -t."""
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _read_script_arg(path: str | None) -> str:
    if not path:
        return ""
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise VolleyError(f"Cannot read script file: {e}", context={"path": path}, original_error=e) from e


def _build_load_config(args: argparse.Namespace) -> LoadConfig:
    """LoadConfig from -f YAML (if given) with CLI overrides applied on top."""
    if args.config:
        base = load_config(args.config)
    else:
        base = LoadConfig(
            concurrency=DEFAULT_CONCURRENCY,
            loops_per_user=DEFAULT_LOOPS_PER_USER,
            timeout_seconds=DEFAULT_TIMEOUT_SECONDS,
        )
    merged = LoadConfig(
        concurrency=args.concurrency if args.concurrency is not None else base.concurrency,
        loops_per_user=args.loops if args.loops is not None else base.loops_per_user,
        timeout_seconds=args.timeout if args.timeout is not None else base.timeout_seconds,
        http2=False if args.http1 else base.http2,
    )
    validate_load_config(merged)
    return merged


def _resolve_spec(args: argparse.Namespace, ledger: HistoryLedger | None) -> RequestSpec | None:
    if args.replay:
        if ledger is None:
            raise VolleyError("--replay requires --history FILE")
        return ledger.replay(args.replay)
    if args.request:
        return load_request(args.request)
    if args.manual_url:
        return build_manual_spec(
            args.manual_url,
            method=args.method,
            headers=args.header,
            params=args.param,
            body=args.data,
            pre_script=_read_script_arg(args.pre_script),
            post_script=_read_script_arg(args.post_script),
        )
    return None


async def _bench(
    spec: RequestSpec,
    config: LoadConfig,
    console: Console,
    live: bool,
) -> BenchmarkReport:
    """Run the load test; SIGINT/SIGTERM stop workers between attempts."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal handler for %s not available", sig)

    stats = LiveStats(config.concurrency * config.loops_per_user)
    if not live:
        def on_sample(sample: BenchmarkSample) -> None:
            stats.add(sample)

        return await run_load_with_config(spec, config, stop_event=stop_event, on_sample=on_sample)

    with Live(
        create_live_panel(stats, config.concurrency, config.loops_per_user),
        console=console,
        refresh_per_second=LIVE_REFRESH_PER_SEC,
    ) as live_ctx:
        last_update = 0.0

        def on_live_sample(sample: BenchmarkSample) -> None:
            nonlocal last_update
            stats.add(sample)
            now = time.perf_counter()
            if now - last_update >= LIVE_UPDATE_INTERVAL_SEC:
                last_update = now
                live_ctx.update(create_live_panel(stats, config.concurrency, config.loops_per_user))

        report = await run_load_with_config(spec, config, stop_event=stop_event, on_sample=on_live_sample)
        live_ctx.update(create_live_panel(stats, config.concurrency, config.loops_per_user))
    return report


def _write_reports(
    args: argparse.Namespace,
    spec: RequestSpec,
    report: BenchmarkReport,
    config: LoadConfig,
    start_dt: datetime,
    end_dt: datetime,
    console: Console,
) -> None:
    built = build(spec)
    if args.json_path:
        generate_json_report(
            args.json_path, report, built,
            concurrency=config.concurrency, loops_per_user=config.loops_per_user,
            start_dt=start_dt, end_dt=end_dt,
        )
        console.print(f"[dim]JSON report:[/dim] {args.json_path}")
    if args.output:
        generate_html_report(
            args.output, report, built,
            concurrency=config.concurrency, loops_per_user=config.loops_per_user,
            title=spec.name if spec.name else manual_report_name(spec.url),
            start_dt=start_dt, end_dt=end_dt,
        )
        console.print(f"[green]Report written to[/green] {args.output}")


def _assist(args: argparse.Namespace, spec: RequestSpec, outcome: ExecutionOutcome, console: Console) -> None:
    if not (args.codegen or args.analyze):
        return
    generator = OllamaTextGenerator()
    try:
        if args.codegen:
            console.rule("Go test code")
            console.print(generate_test_code(spec, generator), markup=False, highlight=False)
        if args.analyze:
            console.rule("Analysis")
            console.print(analyze_response(spec, outcome, generator), markup=False, highlight=False)
    finally:
        generator.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="volley",
        description="Interactive HTTP client with pre/post request scripts and a concurrent load-test mode.",
    )
    target = parser.add_argument_group("request")
    target.add_argument("-r", "--request", help="Path to request file (YAML or JSON)")
    target.add_argument("-m", "--manual-url", metavar="URL", dest="manual_url", help="Target URL (no request file)")
    target.add_argument("-X", "--method", default="GET", help="HTTP method with -m (default: GET)")
    target.add_argument("-H", "--header", action="append", metavar="'KEY: VALUE'", help="Header with -m (repeatable)")
    target.add_argument("-q", "--param", action="append", metavar="KEY=VALUE", help="Query param with -m (repeatable)")
    target.add_argument("-d", "--data", metavar="JSON", help="JSON body with -m")
    target.add_argument("--pre-script", metavar="FILE", dest="pre_script", help="Pre-request script file with -m")
    target.add_argument("--post-script", metavar="FILE", dest="post_script", help="Post-response script file with -m")
    target.add_argument("--timeout", type=float, default=None, metavar="SEC", help="Transport timeout in seconds (default: 30)")
    target.add_argument("--http1", action="store_true", help="Disable HTTP/2")
    target.add_argument("-i", "--include", action="store_true", help="Show response headers")

    bench = parser.add_argument_group("load test")
    bench.add_argument("-b", "--bench", action="store_true", help="Run load test instead of a single request")
    bench.add_argument("-f", "--config", default=None, help="Path to YAML load-test config")
    bench.add_argument("--concurrency", type=int, default=None, metavar="N", help="Override config: virtual users")
    bench.add_argument("--loops", type=int, default=None, metavar="M", help="Override config: attempts per user")
    bench.add_argument("-o", "--output", default=None, metavar="PATH", help="Write HTML report to PATH")
    bench.add_argument("--json", metavar="PATH", dest="json_path", help="Write JSON report to PATH")
    bench.add_argument("--no-live", action="store_true", help="Disable live Rich panel (headless mode)")

    hist = parser.add_argument_group("history")
    hist.add_argument("--history", metavar="FILE", help="History file to load before and save after a request")
    hist.add_argument("--show-history", action="store_true", help="Print history (newest first) and exit")
    hist.add_argument("--replay", metavar="ID", help="Re-execute a history entry (id or unique prefix)")

    ai = parser.add_argument_group("assist")
    ai.add_argument("--codegen", action="store_true", help="Generate a Go test for the request")
    ai.add_argument("--analyze", action="store_true", help="Analyze the response with the text generator")

    parser.add_argument("--log-level", metavar="LEVEL", help="Log level for volley.* loggers (default: $VOLLEY_LOG_LEVEL or WARNING)")
    parser.add_argument("-v", "--version", action="version", version=f"volley {__version__}")
    return parser


def main() -> int:
    args = build_parser().parse_args()
    if args.log_level:
        set_level(args.log_level)
    console = Console()

    def handle_error(e: BaseException) -> int:
        if isinstance(e, VolleyError):
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        if isinstance(e, (FileNotFoundError, ValueError)):
            print(f"Error: {e}", file=sys.stderr)
            return 1
        logger.exception("Unexpected error")
        print("Error: An unexpected error occurred. Check logs for details.", file=sys.stderr)
        return 1

    try:
        ledger = HistoryLedger.load(args.history) if args.history else None
        if args.show_history:
            if ledger is None:
                print("Error: --show-history requires --history FILE", file=sys.stderr)
                return 1
            render_history(ledger.entries(), console)
            return 0

        spec = _resolve_spec(args, ledger)
        if spec is None:
            print("Error: one of -r/--request, -m/--manual-url or --replay is required", file=sys.stderr)
            return 1

        if args.bench:
            config = _build_load_config(args)
            start_dt = datetime.now(timezone.utc)
            report = _run_async(
                _bench(spec, config, console, live=not args.no_live and _stdout_is_tty()),
                disable_gc=True,
            )
            end_dt = datetime.now(timezone.utc)
            render_report(report, console, title=f"{spec.method.value} {spec.url}")
            _write_reports(args, spec, report, config, start_dt, end_dt, console)
            return 0

        timeout = args.timeout if args.timeout is not None else DEFAULT_TIMEOUT_SECONDS
        outcome = _run_async(execute(spec, ledger=ledger, timeout=timeout, http2=not args.http1))
        render_outcome(outcome, console, show_headers=args.include)
        if ledger is not None:
            ledger.dump(args.history)
        _assist(args, spec, outcome, console)
        return 1 if outcome.failed else 0
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except Exception as e:  # noqa: BLE001
        return handle_error(e)


if __name__ == "__main__":
    sys.exit(main())
