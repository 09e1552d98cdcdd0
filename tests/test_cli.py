"""Unit tests for CLI (main exit codes, mode dispatch)."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from volley.cli import build_parser, main
from volley.history import HistoryLedger
from volley.metrics import build_report
from volley.models import BenchmarkSample, ExecutionOutcome, RequestSpec


def _ok_outcome() -> ExecutionOutcome:
    return ExecutionOutcome(status=200, status_text="OK", elapsed_ms=5, size_bytes=2, raw_body="{}", parsed_body={})


def test_main_version_exits_zero() -> None:
    with patch.object(sys, "argv", ["volley", "--version"]):
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0


def test_main_help_exits_zero() -> None:
    with patch.object(sys, "argv", ["volley", "--help"]):
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0


def test_main_requires_target() -> None:
    with patch.object(sys, "argv", ["volley"]):
        assert main() == 1


def test_main_missing_request_file_exits_one() -> None:
    with patch.object(sys, "argv", ["volley", "-r", "/nonexistent/request.yaml"]):
        assert main() == 1


def test_main_invalid_header_exits_one() -> None:
    with patch.object(sys, "argv", ["volley", "-m", "https://x.com", "-H", "broken"]):
        assert main() == 1


def test_main_single_request_writes_history(tmp_path: Path) -> None:
    history = tmp_path / "history.json"

    async def fake_execute(spec, *, ledger, timeout, http2):
        ledger.append(spec, 200)
        return _ok_outcome()

    argv = ["volley", "-m", "https://x.com/ping", "-q", "a=1", "--history", str(history)]
    with patch.object(sys, "argv", argv), patch("volley.cli.execute", side_effect=fake_execute):
        assert main() == 0
    entries = HistoryLedger.load(history).entries()
    assert len(entries) == 1
    assert entries[0].request.url == "https://x.com/ping"


def test_main_single_request_transport_failure_exits_one() -> None:
    failed = ExecutionOutcome(status=0, status_text="Error", elapsed_ms=1, size_bytes=0, raw_body="refused")
    with patch.object(sys, "argv", ["volley", "-m", "https://x.com"]), \
            patch("volley.cli.execute", new=AsyncMock(return_value=failed)):
        assert main() == 1


def test_main_replay_uses_history_entry(tmp_path: Path) -> None:
    history = tmp_path / "history.json"
    ledger = HistoryLedger()
    entry = ledger.append(RequestSpec(url="https://replayed.example.com"), 200)
    ledger.dump(history)
    executed: list[RequestSpec] = []

    async def fake_execute(spec, *, ledger, timeout, http2):
        executed.append(spec)
        return _ok_outcome()

    argv = ["volley", "--history", str(history), "--replay", entry.id[:10]]
    with patch.object(sys, "argv", argv), patch("volley.cli.execute", side_effect=fake_execute):
        assert main() == 0
    assert executed[0].url == "https://replayed.example.com"


def test_main_replay_without_history_exits_one() -> None:
    with patch.object(sys, "argv", ["volley", "--replay", "abc"]):
        assert main() == 1


def test_main_show_history(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    history = tmp_path / "history.json"
    ledger = HistoryLedger()
    ledger.append(RequestSpec(url="https://shown.example.com"), 200)
    ledger.dump(history)
    with patch.object(sys, "argv", ["volley", "--history", str(history), "--show-history"]):
        assert main() == 0
    assert "shown.example.com" in capsys.readouterr().out


def test_main_bench_writes_reports(tmp_path: Path, tmp_load_config: Path) -> None:
    json_out = tmp_path / "report.json"
    html_out = tmp_path / "report.html"
    report = build_report([BenchmarkSample(0, 0, 200, 5)], 10.0)
    run = AsyncMock(return_value=report)
    argv = [
        "volley", "-m", "https://x.com", "-b", "-f", str(tmp_load_config),
        "--concurrency", "2", "--no-live", "--json", str(json_out), "-o", str(html_out),
    ]
    with patch.object(sys, "argv", argv), patch("volley.cli.run_load_with_config", new=run):
        assert main() == 0
    config = run.call_args.args[1]
    assert config.concurrency == 2
    assert config.loops_per_user == 3
    assert json_out.exists()
    assert html_out.exists()


def test_main_bench_invalid_concurrency_exits_one() -> None:
    with patch.object(sys, "argv", ["volley", "-m", "https://x.com", "-b", "--concurrency", "0"]):
        assert main() == 1


def test_main_keyboard_interrupt_exits_130() -> None:
    with patch.object(sys, "argv", ["volley", "-m", "https://x.com"]), \
            patch("volley.cli.execute", new=AsyncMock(return_value=_ok_outcome())), \
            patch("volley.cli._run_async", side_effect=KeyboardInterrupt):
        assert main() == 130


def test_parser_defaults() -> None:
    args = build_parser().parse_args(["-m", "https://x.com"])
    assert args.method == "GET"
    assert args.bench is False
    assert args.concurrency is None
