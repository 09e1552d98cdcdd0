"""Pytest fixtures for volley tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest

from volley.history import HistoryLedger
from volley.models import KeyValue, RequestSpec


@pytest.fixture
def ledger() -> HistoryLedger:
    """Fresh ledger so tests never touch the process-wide default."""
    return HistoryLedger()


@pytest.fixture
def get_spec() -> RequestSpec:
    return RequestSpec(
        name="Get users",
        url="https://api.example.com/users",
        query_params=[KeyValue(key="page", value="1")],
        headers=[KeyValue(key="Accept", value="application/json")],
    )


@pytest.fixture
def make_client() -> Callable[..., httpx.AsyncClient]:
    """Factory: AsyncClient over httpx.MockTransport with the given handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def tmp_load_config(tmp_path: Path) -> Path:
    """Minimal valid load-test config."""
    p = tmp_path / "load.yaml"
    p.write_text("concurrency: 4\nloops_per_user: 3\ntimeout_seconds: 5\n", encoding="utf-8")
    return p


@pytest.fixture
def tmp_request_file(tmp_path: Path) -> Path:
    """Request file with a mapping body and a post-script file next to it."""
    (tmp_path / "check.py").write_text('log(response["status"])\n', encoding="utf-8")
    content = """
name: Create user
method: POST
url: https://api.example.com/users
headers:
  Authorization: Bearer abc
queryParams:
  - key: dry_run
    value: "true"
body:
  name: Ada
postScriptFile: check.py
"""
    p = tmp_path / "create_user.yaml"
    p.write_text(content, encoding="utf-8")
    return p
