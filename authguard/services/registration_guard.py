"""Per-IP cap on successful account registrations."""

from __future__ import annotations

import logging

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.core.logging import hash_identifier
from authguard.schemas.rate_limit import AuthAction, CounterKey, Horizon, RateLimitResult, now_ms
from authguard.services.policy import WindowSpec
from authguard.services.window_limiter import Clock, SlidingWindowLimiter
from authguard.utils.durations import minutes_until

logger = logging.getLogger(__name__)


class RegistrationGuard:
    """Single sliding window per IP, counting successful registrations only.

    Abandoned or rejected registrations are bounded by the IP abuse guard
    instead, so they do not consume this budget.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        spec: WindowSpec,
        *,
        clock: Clock = now_ms,
        max_retries: int = 3,
    ) -> None:
        self._limiter = SlidingWindowLimiter(store, spec, clock=clock, max_retries=max_retries)

    @staticmethod
    def _key(ip: str) -> CounterKey:
        return CounterKey.for_ip(ip, AuthAction.REGISTER, Horizon.HOURLY)

    def check(self, ip: str) -> RateLimitResult:
        result = self._limiter.check(self._key(ip))
        if result.allowed:
            return result

        logger.warning(
            "rate_limit.registration_blocked",
            extra={"ip_hash": hash_identifier(ip or "unknown"), "retry_after_ms": result.retry_after},
        )
        wait = minutes_until(result.retry_after or 0)
        return result.with_message(f"Too many registrations. Please retry in {wait}.")

    def record_success(self, ip: str) -> None:
        self._limiter.record(self._key(ip))
