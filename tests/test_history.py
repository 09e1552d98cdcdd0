"""Unit tests for history (HistoryLedger)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from volley.exceptions import ConfigurationError, ValidationError, VolleyError
from volley.history import DEFAULT_MAX_ENTRIES, HistoryLedger, default_ledger
from volley.models import KeyValue, RequestSpec


def test_ledger_caps_at_fifty_newest_first() -> None:
    ledger = HistoryLedger()
    for i in range(60):
        ledger.append(RequestSpec(url=f"https://x.com/{i}"), 200)
    entries = ledger.entries()
    assert len(entries) == DEFAULT_MAX_ENTRIES == 50
    assert entries[0].request.url == "https://x.com/59"
    assert entries[-1].request.url == "https://x.com/10"


def test_ledger_append_deep_copies_spec() -> None:
    ledger = HistoryLedger()
    spec = RequestSpec(url="https://x.com", headers=[KeyValue(key="A", value="1")])
    entry = ledger.append(spec, None)
    spec.headers[0].value = "changed"
    spec.url = "https://other.com"
    assert entry.request.url == "https://x.com"
    assert entry.request.headers[0].value == "1"
    assert entry.response_status is None
    assert entry.timestamp > 0


def test_ledger_replay_returns_fresh_copy() -> None:
    ledger = HistoryLedger()
    entry = ledger.append(RequestSpec(url="https://x.com"), 201)
    spec = ledger.replay(entry.id)
    spec.url = "https://mutated.com"
    assert ledger.get(entry.id).request.url == "https://x.com"


def test_ledger_get_by_unique_prefix() -> None:
    ledger = HistoryLedger()
    entry = ledger.append(RequestSpec(url="https://x.com"), 200)
    assert ledger.get(entry.id[:12]) is entry
    assert ledger.get("") is None


def test_ledger_replay_unknown_id() -> None:
    with pytest.raises(VolleyError, match="not found"):
        HistoryLedger().replay("nope")


def test_ledger_invalid_max_entries() -> None:
    with pytest.raises(ConfigurationError):
        HistoryLedger(max_entries=0)


def test_ledger_clear() -> None:
    ledger = HistoryLedger()
    ledger.append(RequestSpec(url="https://x.com"), 200)
    ledger.clear()
    assert len(ledger) == 0
    assert ledger.entries() == []


def test_ledger_concurrent_appends() -> None:
    ledger = HistoryLedger(max_entries=1000)

    def worker() -> None:
        for _ in range(100):
            ledger.append(RequestSpec(url="https://x.com"), 200)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(ledger) == 800


def test_ledger_dump_and_load(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    ledger = HistoryLedger()
    for i in range(3):
        ledger.append(RequestSpec(url=f"https://x.com/{i}", pre_script='log("hi")'), 200 + i)
    ledger.dump(path)

    loaded = HistoryLedger.load(path)
    assert [e.id for e in loaded.entries()] == [e.id for e in ledger.entries()]
    newest = loaded.entries()[0]
    assert newest.request.url == "https://x.com/2"
    assert newest.request.pre_script == 'log("hi")'
    assert newest.response_status == 202


def test_ledger_load_missing_file_is_empty(tmp_path: Path) -> None:
    assert len(HistoryLedger.load(tmp_path / "none.json")) == 0


def test_ledger_load_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(ValidationError, match="Invalid JSON"):
        HistoryLedger.load(path)


def test_ledger_load_not_array(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text('{"id": "x"}', encoding="utf-8")
    with pytest.raises(ValidationError, match="JSON array"):
        HistoryLedger.load(path)


def test_default_ledger_is_shared() -> None:
    assert default_ledger() is default_ledger()
