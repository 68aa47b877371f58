"""Abuse-mitigation facade used by the authentication handlers.

Login sequence:

1. ``ip = get_client_ip(request)``
2. ``check_ip_rate_limit(ip, "login")``; deny with 429 if not allowed
3. ``check_username_rate_limit(username)``; deny with 429 if not allowed
4. verify credentials
5. failure: ``record_login_failure(username)`` and ``record_ip_attempt(ip, "login")``
   success: ``clear_login_failures(username)`` and ``record_ip_attempt(ip, "login")``

Registration is analogous with ``check_register_rate_limit`` and
``record_register_success``.
"""

from __future__ import annotations

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.schemas.rate_limit import AuthAction, RateLimitResult, now_ms
from authguard.services.cleanup import CleanupSweeper
from authguard.services.ip_guard import IpAbuseGuard
from authguard.services.policy import GuardPolicy
from authguard.services.registration_guard import RegistrationGuard
from authguard.services.username_lockout import UsernameLockoutGuard
from authguard.services.window_limiter import Clock


class AuthGuardService:
    """Composes every guard over one counter store and one policy."""

    def __init__(
        self,
        store: AbstractCounterStore,
        policy: GuardPolicy | None = None,
        *,
        clock: Clock = now_ms,
    ) -> None:
        self.policy = policy or GuardPolicy()
        self.store = store
        self.ip_guard = IpAbuseGuard(store, self.policy, clock=clock)
        self.username_guard = UsernameLockoutGuard(
            store,
            self.policy.lockout,
            clock=clock,
            max_retries=self.policy.cas_max_retries,
        )
        self.registration_guard = RegistrationGuard(
            store,
            self.policy.registration,
            clock=clock,
            max_retries=self.policy.cas_max_retries,
        )
        self.sweeper = CleanupSweeper(
            store,
            stale_after_ms=self.policy.cleanup_stale_after_ms,
            clock=clock,
        )

    def check_ip_rate_limit(self, ip: str, action: AuthAction | str) -> RateLimitResult:
        return self.ip_guard.check(ip, action)

    def record_ip_attempt(self, ip: str, action: AuthAction | str) -> None:
        self.ip_guard.record_attempt(ip, action)

    def check_username_rate_limit(self, username: str) -> RateLimitResult:
        return self.username_guard.check(username)

    def record_login_failure(self, username: str) -> None:
        self.username_guard.record_failure(username)

    def clear_login_failures(self, username: str) -> None:
        self.username_guard.clear_failures(username)

    def check_register_rate_limit(self, ip: str) -> RateLimitResult:
        return self.registration_guard.check(ip)

    def record_register_success(self, ip: str) -> None:
        self.registration_guard.record_success(ip)

    def cleanup_expired_records(self) -> int:
        return self.sweeper.sweep()
