"""Sliding-window evaluation over the counter store.

A window is anchored to its first attempt and lasts ``window_ms``. Checking
and recording are separate steps: ``check`` answers "may I proceed" and never
writes, ``record`` notes that an attempt happened.

This module also owns the fail-open policy for the whole engine:

- ``read_record`` turns ``CounterStoreUnavailableError`` into "no record"
  (request allowed) and logs a warning.
- ``update_record`` performs read-modify-write with a version check and
  retries on conflict; a store failure or exhausted retries drops the write
  with a warning.

Neither ever raises a store error to the caller, so an outage of the store
cannot lock legitimate users out.
"""

from __future__ import annotations

import logging
from typing import Callable

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.core.errors import CounterStoreUnavailableError
from authguard.schemas.rate_limit import CounterKey, RateLimitRecord, RateLimitResult, now_ms
from authguard.services.policy import WindowSpec

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
RecordTransform = Callable[[RateLimitRecord | None], RateLimitRecord]


def read_record(store: AbstractCounterStore, key: CounterKey) -> RateLimitRecord | None:
    """Read a record, failing open on store errors.

    Args:
        store: Counter store to query.
        key: Structured counter key.

    Returns:
        The stored record, or None if absent, corrupt or unreadable.
    """

    try:
        return store.get(key.serialize())
    except CounterStoreUnavailableError as exc:
        logger.warning(
            "rate_limit.store_read_failed",
            extra={"scope": key.scope.value, "action": key.action.value, "error_code": exc.code},
        )
        return None


def update_record(
    store: AbstractCounterStore,
    key: CounterKey,
    transform: RecordTransform,
    *,
    max_retries: int = 3,
) -> RateLimitRecord | None:
    """Apply ``transform`` to the stored record with optimistic concurrency.

    ``transform`` receives the current record (or None) and returns the new
    one. If another writer changed the record between the read and the write,
    the read and transform are repeated, up to ``max_retries`` extra times.

    Args:
        store: Counter store to update.
        key: Structured counter key.
        transform: Pure function computing the next record.
        max_retries: Extra attempts after a version conflict.

    Returns:
        The record as written, or None if the write was dropped.
    """

    serialized = key.serialize()
    try:
        for _ in range(max_retries + 1):
            current = store.get(serialized)
            updated = transform(current)
            expected = current.version if current is not None else None
            if store.compare_and_set(serialized, updated, expected):
                return updated
    except CounterStoreUnavailableError as exc:
        logger.warning(
            "rate_limit.store_write_failed",
            extra={"scope": key.scope.value, "action": key.action.value, "error_code": exc.code},
        )
        return None

    logger.warning(
        "rate_limit.write_conflict",
        extra={"scope": key.scope.value, "action": key.action.value, "retries": max_retries},
    )
    return None


def replace_record(
    store: AbstractCounterStore,
    key: CounterKey,
    record: RateLimitRecord,
    expected_version: int | None,
) -> bool:
    """Single compare-and-set attempt; False on conflict or store failure."""

    try:
        return store.compare_and_set(key.serialize(), record, expected_version)
    except CounterStoreUnavailableError as exc:
        logger.warning(
            "rate_limit.store_write_failed",
            extra={"scope": key.scope.value, "action": key.action.value, "error_code": exc.code},
        )
        return False


def delete_record(store: AbstractCounterStore, key: CounterKey) -> None:
    try:
        store.delete(key.serialize())
    except CounterStoreUnavailableError as exc:
        logger.warning(
            "rate_limit.store_delete_failed",
            extra={"scope": key.scope.value, "action": key.action.value, "error_code": exc.code},
        )


def evaluate_window(
    record: RateLimitRecord | None,
    *,
    now: int,
    spec: WindowSpec,
) -> RateLimitResult:
    """Decide whether one more attempt fits in the window described by ``record``.

    Examples:
        >>> evaluate_window(None, now=0, spec=WindowSpec(1000, 3)).remaining
        3
    """

    if record is None or record.window_elapsed(now, spec.window_ms):
        return RateLimitResult(
            allowed=True,
            remaining=spec.max_attempts,
            reset_at=now + spec.window_ms,
            limit=spec.max_attempts,
        )

    reset_at = record.first_attempt_at + spec.window_ms
    remaining = spec.max_attempts - record.attempts
    if remaining <= 0:
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_at=reset_at,
            retry_after=reset_at - now,
            limit=spec.max_attempts,
        )
    return RateLimitResult(
        allowed=True,
        remaining=remaining,
        reset_at=reset_at,
        limit=spec.max_attempts,
    )


def next_window_record(
    record: RateLimitRecord | None,
    *,
    now: int,
    window_ms: int,
) -> RateLimitRecord:
    """Record state after one more attempt at ``now``."""

    if record is None or record.window_elapsed(now, window_ms):
        return RateLimitRecord.first(now)
    return record.bumped(now)


class SlidingWindowLimiter:
    """Accept/reject evaluator for a single window spec over a counter store.

    Attributes:
        spec: Window length and attempt cap.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        spec: WindowSpec,
        *,
        clock: Clock = now_ms,
        max_retries: int = 3,
    ) -> None:
        self._store = store
        self.spec = spec
        self._clock = clock
        self._max_retries = max_retries

    def check(self, key: CounterKey, now: int | None = None) -> RateLimitResult:
        """Evaluate ``key`` against the window without mutating the store.

        Args:
            key: Structured counter key.
            now: Evaluation time in epoch ms; defaults to the limiter clock.

        Returns:
            RateLimitResult for the key's current window.
        """

        now = self._clock() if now is None else now
        return evaluate_window(read_record(self._store, key), now=now, spec=self.spec)

    def record(self, key: CounterKey, now: int | None = None) -> None:
        """Count one attempt for ``key``, starting a new window if the old one elapsed."""

        now = self._clock() if now is None else now
        update_record(
            self._store,
            key,
            lambda current: next_window_record(current, now=now, window_ms=self.spec.window_ms),
            max_retries=self._max_retries,
        )
