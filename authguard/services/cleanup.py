"""Garbage collection of idle rate limit records.

Meant to be triggered periodically by an external scheduler (cron, a
platform scheduled task, or the maintenance endpoint). A record is removed
only when it has been idle for ``stale_after_ms`` and is not enforcing a
lockout, so sweeping never unlocks anyone early.
"""

from __future__ import annotations

import logging

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.core.errors import CounterStoreUnavailableError
from authguard.schemas.rate_limit import now_ms
from authguard.services.window_limiter import Clock

logger = logging.getLogger(__name__)


class CleanupSweeper:
    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        stale_after_ms: int,
        clock: Clock = now_ms,
    ) -> None:
        if stale_after_ms < 1:
            raise ValueError("stale_after_ms must be >= 1")
        self._store = store
        self._stale_after_ms = stale_after_ms
        self._clock = clock

    def sweep(self) -> int:
        """Delete expired records.

        Returns:
            Number of deleted records; 0 if the store could not be reached.
        """

        now = self._clock()
        try:
            deleted = self._store.delete_expired(now - self._stale_after_ms, now)
        except CounterStoreUnavailableError as exc:
            logger.warning("rate_limit.cleanup_failed", extra={"error_code": exc.code})
            return 0

        if deleted > 0:
            logger.info("rate_limit.cleanup_completed", extra={"deleted": deleted})
        return deleted
