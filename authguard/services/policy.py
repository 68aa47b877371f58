"""Guard policy: every limit and duration the guards enforce.

The policy is an immutable value built once (normally from
``RateLimitSettings``) and passed to each guard, so tests can construct
guards with their own policy without touching process-wide settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from authguard.core.config import DAY_MS, HOUR_MS, MINUTE_MS, RateLimitSettings
from authguard.schemas.rate_limit import Horizon


@dataclass(frozen=True)
class WindowSpec:
    """A window length paired with the attempts allowed inside it."""

    window_ms: int
    max_attempts: int

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def _default_ip_horizons() -> dict[Horizon, WindowSpec]:
    return {
        Horizon.SHORT: WindowSpec(MINUTE_MS, 10),
        Horizon.MEDIUM: WindowSpec(HOUR_MS, 60),
        Horizon.LONG: WindowSpec(DAY_MS, 200),
    }


@dataclass(frozen=True)
class LockoutPolicy:
    """Failed-login tracking and progressive lockout parameters."""

    window: WindowSpec = WindowSpec(15 * MINUTE_MS, 5)
    initial_lockout_ms: int = 5 * MINUTE_MS
    multiplier: int = 2
    max_lockout_ms: int = DAY_MS
    escalation_decay_ms: int = DAY_MS

    def lockout_duration(self, lockout_count: int) -> int:
        """Lockout length for the n-th consecutive lockout (1-based), capped.

        Examples:
            >>> [LockoutPolicy().lockout_duration(n) for n in (1, 2, 3)]
            [300000, 600000, 1200000]
        """

        exponent = max(lockout_count, 1) - 1
        # Stop multiplying once past the cap so huge counts stay cheap
        duration = self.initial_lockout_ms
        for _ in range(exponent):
            duration *= self.multiplier
            if duration >= self.max_lockout_ms:
                break
        return min(duration, self.max_lockout_ms)


@dataclass(frozen=True)
class GuardPolicy:
    """Complete configuration for the abuse-mitigation guards."""

    ip_horizons: dict[Horizon, WindowSpec] = field(default_factory=_default_ip_horizons)
    lockout: LockoutPolicy = LockoutPolicy()
    registration: WindowSpec = WindowSpec(HOUR_MS, 3)
    cleanup_stale_after_ms: int = DAY_MS
    cas_max_retries: int = 3

    @classmethod
    def from_settings(cls, cfg: RateLimitSettings) -> "GuardPolicy":
        """Build the policy from validated environment settings."""

        return cls(
            ip_horizons={
                Horizon.SHORT: WindowSpec(cfg.ip_short_window_ms, cfg.ip_short_max_attempts),
                Horizon.MEDIUM: WindowSpec(cfg.ip_medium_window_ms, cfg.ip_medium_max_attempts),
                Horizon.LONG: WindowSpec(cfg.ip_long_window_ms, cfg.ip_long_max_attempts),
            },
            lockout=LockoutPolicy(
                window=WindowSpec(cfg.username_window_ms, cfg.username_max_attempts),
                initial_lockout_ms=cfg.initial_lockout_ms,
                multiplier=cfg.lockout_multiplier,
                max_lockout_ms=cfg.max_lockout_ms,
                escalation_decay_ms=cfg.escalation_decay_ms,
            ),
            registration=WindowSpec(cfg.register_window_ms, cfg.register_max_attempts),
            cleanup_stale_after_ms=cfg.cleanup_stale_after_ms,
            cas_max_retries=cfg.cas_max_retries,
        )
