"""Failed-login tracking and progressive lockout per username.

Only failures are counted, inside a single window (15 minutes by default).
The failure that reaches the threshold locks the account for
``initial_lockout_ms * multiplier ** (lockout_count - 1)``, capped at
``max_lockout_ms``. The lockout count survives the end of a lockout so a
repeat offender waits longer each time; it is forgotten after
``escalation_decay_ms`` without activity, or when a login succeeds.

States, as seen by ``check``:

- clean: no record, window elapsed, or previous lockout already served
- tracking: fewer failures than the threshold inside the window
- locked: ``lockout_until`` in the future
"""

from __future__ import annotations

import logging
from dataclasses import replace

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.core.logging import hash_identifier
from authguard.schemas.rate_limit import CounterKey, RateLimitRecord, RateLimitResult, now_ms
from authguard.services.policy import LockoutPolicy
from authguard.services.window_limiter import (
    Clock,
    delete_record,
    read_record,
    replace_record,
    update_record,
)
from authguard.utils.durations import format_duration

logger = logging.getLogger(__name__)


class UsernameLockoutGuard:
    """Progressive lockout keyed by lower-cased username."""

    def __init__(
        self,
        store: AbstractCounterStore,
        policy: LockoutPolicy,
        *,
        clock: Clock = now_ms,
        max_retries: int = 3,
    ) -> None:
        self._store = store
        self._policy = policy
        self._clock = clock
        self._max_retries = max_retries

    @property
    def max_attempts(self) -> int:
        return self._policy.window.max_attempts

    def _clean(self, now: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            remaining=self.max_attempts,
            reset_at=now + self._policy.window.window_ms,
            limit=self.max_attempts,
        )

    def _locked(self, lockout_until: int, now: int, message: str) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_at=lockout_until,
            retry_after=lockout_until - now,
            message=message,
            limit=self.max_attempts,
        )

    def _carried_lockout_count(self, record: RateLimitRecord, now: int) -> int | None:
        """Lockout count that carries into a new window, after decay."""

        if not record.lockout_count:
            return None
        last_activity = max(record.last_attempt_at, record.lockout_until or 0)
        if now - last_activity >= self._policy.escalation_decay_ms:
            return None
        return record.lockout_count

    def _engage(self, record: RateLimitRecord, now: int) -> RateLimitRecord:
        lockout_count = (record.lockout_count or 0) + 1
        lockout_until = now + self._policy.lockout_duration(lockout_count)
        return replace(record, lockout_until=lockout_until, lockout_count=lockout_count)

    def _after_failure(self, record: RateLimitRecord | None, now: int) -> RateLimitRecord:
        if record is None:
            updated = RateLimitRecord.first(now)
        elif record.is_locked(now):
            # Failures during a lockout do not extend it
            return replace(record, last_attempt_at=max(now, record.last_attempt_at))
        elif record.lockout_until is not None or record.window_elapsed(
            now, self._policy.window.window_ms
        ):
            updated = RateLimitRecord.first(now, lockout_count=self._carried_lockout_count(record, now))
        else:
            updated = record.bumped(now)

        if updated.attempts >= self.max_attempts:
            return self._engage(updated, now)
        return updated

    def check(self, username: str) -> RateLimitResult:
        """Whether a login attempt for ``username`` may be evaluated now.

        Args:
            username: Username as submitted; compared case-insensitively.

        Returns:
            Denial with ``retry_after`` while locked, otherwise the number of
            failures left before a lockout.
        """

        key = CounterKey.for_username(username)
        now = self._clock()
        record = read_record(self._store, key)

        if record is None:
            return self._clean(now)

        if record.lockout_until is not None and record.lockout_until > now:
            retry_after = record.lockout_until - now
            return self._locked(
                record.lockout_until,
                now,
                f"Account temporarily locked. Please retry in {format_duration(retry_after)}.",
            )

        if record.lockout_until is not None or record.window_elapsed(
            now, self._policy.window.window_ms
        ):
            return self._clean(now)

        if record.attempts >= self.max_attempts:
            # Threshold reached without a lockout, e.g. by racing writers
            engaged = self._engage(record, now)
            replace_record(self._store, key, engaged, record.version)
            self._log_locked(username, engaged)
            lockout_until = engaged.lockout_until or now
            return self._locked(
                lockout_until,
                now,
                "Too many failed login attempts. Account locked for "
                f"{format_duration(lockout_until - now)}.",
            )

        return RateLimitResult(
            allowed=True,
            remaining=self.max_attempts - record.attempts,
            reset_at=record.first_attempt_at + self._policy.window.window_ms,
            limit=self.max_attempts,
        )

    def record_failure(self, username: str) -> None:
        """Count a failed login, locking the account when the threshold is hit."""

        key = CounterKey.for_username(username)
        now = self._clock()
        written = update_record(
            self._store,
            key,
            lambda current: self._after_failure(current, now),
            max_retries=self._max_retries,
        )

        if (
            written is not None
            and written.lockout_count
            and written.lockout_until == now + self._policy.lockout_duration(written.lockout_count)
        ):
            self._log_locked(username, written)
        else:
            logger.info(
                "rate_limit.login_failure_recorded",
                extra={"username_hash": hash_identifier(key.identifier)},
            )

    def clear_failures(self, username: str) -> None:
        """Forget all failure and lockout history after a successful login."""

        key = CounterKey.for_username(username)
        delete_record(self._store, key)
        logger.info(
            "rate_limit.login_failures_cleared",
            extra={"username_hash": hash_identifier(key.identifier)},
        )

    def _log_locked(self, username: str, record: RateLimitRecord) -> None:
        logger.warning(
            "rate_limit.username_locked",
            extra={
                "username_hash": hash_identifier(username.strip().lower()),
                "lockout_count": record.lockout_count,
                "lockout_until": record.lockout_until,
            },
        )
