"""Bounded, thread-safe history of executed requests.

Oldest entries are evicted first once the ledger holds ``max_entries``.
Each entry keeps a deep copy of the request as it was *before* any
pre-script ran, so replaying it starts from what the user wrote.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from pathlib import Path

import orjson

from .exceptions import ConfigurationError, ValidationError, VolleyError
from .logging_config import get_logger
from .models import HistoryEntry, RequestSpec

logger = get_logger("history")

DEFAULT_MAX_ENTRIES = 50


class HistoryLedger:
    """Append-only FIFO ledger. All mutations hold a single lock."""

    __slots__ = ("_entries", "_lock", "_max_entries")

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ConfigurationError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._entries: deque[HistoryEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, spec: RequestSpec, response_status: int | None) -> HistoryEntry:
        """Record ``spec`` (deep-copied) and return the new entry."""
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            timestamp=int(time.time() * 1000),
            request=spec.copy(),
            response_status=response_status,
        )
        self._push(entry)
        return entry

    def _push(self, entry: HistoryEntry) -> None:
        with self._lock:
            if len(self._entries) == self._max_entries:
                logger.debug("History full, evicting %s", self._entries[0].id)
            self._entries.append(entry)

    def entries(self) -> list[HistoryEntry]:
        """Snapshot, newest first."""
        with self._lock:
            return list(reversed(self._entries))

    def get(self, entry_id: str) -> HistoryEntry | None:
        """Entry by exact id, or by id prefix when exactly one entry matches."""
        if not entry_id:
            return None
        with self._lock:
            matches = []
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
                if entry.id.startswith(entry_id):
                    matches.append(entry)
        return matches[0] if len(matches) == 1 else None

    def replay(self, entry_id: str) -> RequestSpec:
        """Return a fresh copy of the stored request for re-execution.

        Raises:
            VolleyError: If no entry has this id
        """
        entry = self.get(entry_id)
        if entry is None:
            raise VolleyError(f"History entry not found: {entry_id}", context={"id": entry_id})
        return entry.request.copy()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def dump(self, path: str | Path) -> None:
        """Write entries (newest first) as a JSON array."""
        payload = [e.to_dict() for e in self.entries()]
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))

    @classmethod
    def load(cls, path: str | Path, max_entries: int = DEFAULT_MAX_ENTRIES) -> "HistoryLedger":
        """Load a ledger written by dump(). A missing file yields an empty ledger.

        Raises:
            ValidationError: If the file is not a JSON array of entries
        """
        ledger = cls(max_entries=max_entries)
        p = Path(path)
        if not p.exists():
            return ledger
        try:
            raw = orjson.loads(p.read_bytes())
        except orjson.JSONDecodeError as e:
            logger.exception("Invalid JSON in history file")
            raise ValidationError(
                f"Invalid JSON in history file: {e}",
                context={"path": str(path)},
                original_error=e,
            ) from e
        except OSError as e:
            logger.exception("Failed to read history file")
            raise ValidationError(
                f"Cannot read history file: {e}",
                context={"path": str(path)},
                original_error=e,
            ) from e
        if not isinstance(raw, list):
            raise ValidationError("History file must contain a JSON array", context={"path": str(path)})
        # File is newest first; push oldest first so eviction order is kept.
        for item in reversed(raw):
            ledger._push(HistoryEntry.from_dict(item))
        return ledger


_default_ledger = HistoryLedger()


def default_ledger() -> HistoryLedger:
    """Process-wide ledger used when callers do not pass their own."""
    return _default_ledger
