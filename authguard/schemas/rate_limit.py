"""Rate limiting domain types: counter keys, stored records and check results.

Timestamps are integer milliseconds since the UNIX epoch throughout.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


class Scope(str, Enum):
    IP = "ip"
    USERNAME = "username"


class AuthAction(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class Horizon(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    HOURLY = "hourly"


@dataclass(frozen=True)
class CounterKey:
    """Structured address of a single counter record.

    Attributes:
        scope: Whether the subject is an IP or a username.
        action: Protected operation the counter belongs to.
        identifier: The subject itself (IP string or lower-cased username).
        horizon: Window tag for multi-window subjects, None for single-window.
    """

    scope: Scope
    action: AuthAction
    identifier: str
    horizon: Horizon | None = None

    @classmethod
    def for_ip(cls, ip: str, action: AuthAction, horizon: Horizon) -> "CounterKey":
        return cls(Scope.IP, action, ip or "unknown", horizon)

    @classmethod
    def for_username(cls, username: str) -> "CounterKey":
        # Lower-cased so "Alice" and "alice" share one lockout state
        return cls(Scope.USERNAME, AuthAction.LOGIN, username.strip().lower())

    def serialize(self) -> str:
        """Canonical string form used as the storage key.

        Examples:
            >>> CounterKey.for_ip("1.2.3.4", AuthAction.LOGIN, Horizon.SHORT).serialize()
            'ip:login:1.2.3.4:short'
            >>> CounterKey.for_username("Alice").serialize()
            'username:login:alice'
        """

        parts = [self.scope.value, self.action.value, self.identifier]
        if self.horizon is not None:
            parts.append(self.horizon.value)
        return ":".join(parts)

    def __str__(self) -> str:
        return self.serialize()


def _as_int(value: Any) -> int:
    # bool is an int subclass but never a valid counter value
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {type(value).__name__}")
    return value


def _as_optional_int(value: Any) -> int | None:
    return None if value is None else _as_int(value)


@dataclass(frozen=True)
class RateLimitRecord:
    """Persisted bookkeeping for one counter key.

    Attributes:
        attempts: Attempts inside the current window (>= 1 while stored).
        first_attempt_at: Window anchor, epoch ms.
        last_attempt_at: Most recent attempt, epoch ms.
        lockout_until: When set and in the future, the subject is blocked.
        lockout_count: Consecutive lockouts used to escalate the duration.
        version: Optimistic concurrency token; 0 means never persisted.
    """

    attempts: int
    first_attempt_at: int
    last_attempt_at: int
    lockout_until: int | None = None
    lockout_count: int | None = None
    version: int = 0

    @classmethod
    def first(cls, now: int, *, lockout_count: int | None = None) -> "RateLimitRecord":
        """Record for the first attempt of a new window."""

        return cls(
            attempts=1,
            first_attempt_at=now,
            last_attempt_at=now,
            lockout_count=lockout_count or None,
        )

    def bumped(self, now: int) -> "RateLimitRecord":
        """Copy with one more attempt recorded at ``now``."""

        return replace(self, attempts=self.attempts + 1, last_attempt_at=max(now, self.last_attempt_at))

    def window_elapsed(self, now: int, window_ms: int) -> bool:
        return now - self.first_attempt_at >= window_ms

    def is_locked(self, now: int) -> bool:
        return self.lockout_until is not None and self.lockout_until > now

    def to_row(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "first_attempt_at": self.first_attempt_at,
            "last_attempt_at": self.last_attempt_at,
            "lockout_until": self.lockout_until,
            "lockout_count": self.lockout_count,
            "version": self.version,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, key: str = "") -> "RateLimitRecord | None":
        """Parse a stored row, returning None when it is malformed.

        A corrupt row is treated exactly like an absent one so a bad write can
        never lock a subject out.

        Args:
            row: Mapping with the persisted column values.
            key: Storage key, used only for the warning log.

        Returns:
            The parsed record, or None if the row violates record invariants.
        """

        try:
            record = cls(
                attempts=_as_int(row["attempts"]),
                first_attempt_at=_as_int(row["first_attempt_at"]),
                last_attempt_at=_as_int(row["last_attempt_at"]),
                lockout_until=_as_optional_int(row.get("lockout_until")),
                lockout_count=_as_optional_int(row.get("lockout_count")),
                version=_as_int(row.get("version", 0)),
            )
        except (KeyError, TypeError) as exc:
            logger.warning(
                "rate_limit.record_malformed",
                extra={"key": key, "reason": str(exc)},
            )
            return None

        if (
            record.attempts < 1
            or record.first_attempt_at > record.last_attempt_at
            or (record.lockout_count is not None and record.lockout_count < 0)
            or (record.lockout_until is not None and record.lockout_until < 0)
        ):
            logger.warning(
                "rate_limit.record_malformed",
                extra={"key": key, "reason": "invariant_violation"},
            )
            return None
        return record


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a guard check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Attempts left before denial (0 when blocked).
        reset_at: Epoch ms when the governing window or lockout ends.
        retry_after: Milliseconds to wait when blocked.
        message: Human-readable denial reason.
        limit: Attempt cap of the governing window, for response headers.
    """

    allowed: bool
    remaining: int
    reset_at: int
    retry_after: int | None = None
    message: str | None = None
    limit: int | None = None

    @property
    def retry_after_seconds(self) -> int:
        """Retry-After header value, rounded up to whole seconds."""

        return max(0, math.ceil((self.retry_after or 0) / 1000))

    def with_message(self, message: str) -> "RateLimitResult":
        return replace(self, message=message)
