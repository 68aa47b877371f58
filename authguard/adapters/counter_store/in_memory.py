"""In-memory counter store.

Notes:
- Per-process only: running multiple workers gives each worker its own
  counters, multiplying the effective limits.
- Thread-safe: uses a lock around shared state.
- Not durable: counters and lockouts are lost on restart. Use the SQL store
  in production.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.schemas.rate_limit import RateLimitRecord


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store backed by a dict of row mappings.

    Rows are kept in their serialized shape and parsed on every read, the same
    way a database row would be.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, dict[str, Any]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryCounterStore(size={len(self)})"

    def get(self, key: str) -> RateLimitRecord | None:
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                return None
            return RateLimitRecord.from_row(row, key=key)

    def set(self, key: str, record: RateLimitRecord) -> None:
        with self._lock:
            current = self._rows.get(key)
            version = (current or {}).get("version", 0)
            if not isinstance(version, int):
                version = 0
            self._rows[key] = replace(record, version=version + 1).to_row()

    def delete(self, key: str) -> None:
        with self._lock:
            self._rows.pop(key, None)

    def compare_and_set(
        self,
        key: str,
        record: RateLimitRecord,
        expected_version: int | None,
    ) -> bool:
        with self._lock:
            current = self._rows.get(key)
            if expected_version is None:
                # An unparseable row counts as absent and is overwritten
                if current is not None and RateLimitRecord.from_row(current, key=key) is not None:
                    return False
                self._rows[key] = replace(record, version=1).to_row()
                return True

            if current is None or current.get("version") != expected_version:
                return False
            self._rows[key] = replace(record, version=expected_version + 1).to_row()
            return True

    def delete_expired(self, stale_before: int, now: int) -> int:
        with self._lock:
            expired = [
                key
                for key, row in self._rows.items()
                if _is_expired(row, stale_before=stale_before, now=now)
            ]
            for key in expired:
                del self._rows[key]
            return len(expired)


def _is_expired(row: dict[str, Any], *, stale_before: int, now: int) -> bool:
    last_attempt_at = row.get("last_attempt_at")
    lockout_until = row.get("lockout_until")
    if not isinstance(last_attempt_at, int) or last_attempt_at >= stale_before:
        return False
    return lockout_until is None or (isinstance(lockout_until, int) and lockout_until <= now)
