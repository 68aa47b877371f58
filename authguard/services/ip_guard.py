"""Per-IP request volume limits for login and registration.

Each (ip, action) pair is checked against three horizons, shortest first:
a per-minute burst cap, an hourly cap and a daily cap. Every horizon has its
own counter record, and every request is counted on all three whether or not
it ultimately succeeds.
"""

from __future__ import annotations

import logging

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.core.logging import hash_identifier
from authguard.schemas.rate_limit import AuthAction, CounterKey, Horizon, RateLimitResult, now_ms
from authguard.services.policy import GuardPolicy
from authguard.services.window_limiter import Clock, SlidingWindowLimiter
from authguard.utils.durations import minutes_until, seconds_until

logger = logging.getLogger(__name__)

HORIZON_ORDER = (Horizon.SHORT, Horizon.MEDIUM, Horizon.LONG)


def _denial_message(horizon: Horizon, retry_after_ms: int) -> str:
    if horizon is Horizon.SHORT:
        return f"Too many requests. Please retry in {seconds_until(retry_after_ms)}."
    if horizon is Horizon.MEDIUM:
        return f"Too many requests from this IP. Please retry in {minutes_until(retry_after_ms)}."
    return "Daily request limit reached for this IP. Please try again tomorrow."


def _coerce_action(action: AuthAction | str) -> AuthAction:
    try:
        return AuthAction(action)
    except ValueError as exc:
        raise ValueError(f"unsupported action: {action!r}") from exc


class IpAbuseGuard:
    """Composes short/medium/long sliding windows per (IP, action)."""

    def __init__(
        self,
        store: AbstractCounterStore,
        policy: GuardPolicy,
        *,
        clock: Clock = now_ms,
    ) -> None:
        self._clock = clock
        self._limiters = {
            horizon: SlidingWindowLimiter(
                store,
                policy.ip_horizons[horizon],
                clock=clock,
                max_retries=policy.cas_max_retries,
            )
            for horizon in HORIZON_ORDER
        }

    def check(self, ip: str, action: AuthAction | str) -> RateLimitResult:
        """Check all horizons, stopping at the first one that denies.

        Args:
            ip: Client IP; ``"unknown"`` is a valid shared bucket.
            action: ``login`` or ``register``.

        Returns:
            The denying horizon's result with a message, or an allowed result
            carrying the tightest ``remaining`` and earliest ``reset_at``.

        Raises:
            ValueError: If ``action`` is not a supported action.
        """

        action = _coerce_action(action)
        now = self._clock()
        results: list[RateLimitResult] = []

        for horizon in HORIZON_ORDER:
            result = self._limiters[horizon].check(CounterKey.for_ip(ip, action, horizon), now)
            if not result.allowed:
                logger.warning(
                    "rate_limit.ip_blocked",
                    extra={
                        "action": action.value,
                        "horizon": horizon.value,
                        "ip_hash": hash_identifier(ip or "unknown"),
                        "retry_after_ms": result.retry_after,
                    },
                )
                return result.with_message(_denial_message(horizon, result.retry_after or 0))
            results.append(result)

        tightest = min(results, key=lambda r: r.remaining)
        return RateLimitResult(
            allowed=True,
            remaining=tightest.remaining,
            reset_at=min(r.reset_at for r in results),
            limit=tightest.limit,
        )

    def record_attempt(self, ip: str, action: AuthAction | str) -> None:
        """Count one request from ``ip`` on every horizon."""

        action = _coerce_action(action)
        now = self._clock()
        for horizon in HORIZON_ORDER:
            self._limiters[horizon].record(CounterKey.for_ip(ip, action, horizon), now)
