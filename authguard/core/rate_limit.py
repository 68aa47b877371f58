"""Rate limiting dependencies for FastAPI routes.

This module wires the guard service and account store into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on provider functions only, which tests
  replace through ``app.dependency_overrides``.
- Swap-friendly: the counter store backend is chosen by settings behind an
  abstract interface.
- Explicit configuration: the guard policy is built once from settings and
  passed into the service.
"""

from __future__ import annotations

import logging

from authguard.adapters.accounts.base import AbstractAccountStore
from authguard.adapters.accounts.in_memory import InMemoryAccountStore
from authguard.adapters.counter_store.factory import create_counter_store
from authguard.core.config import RateLimitSettings, settings
from authguard.core.errors import RateLimitedAppError
from authguard.schemas.rate_limit import RateLimitResult
from authguard.services.guard_service import AuthGuardService
from authguard.services.policy import GuardPolicy

logger = logging.getLogger(__name__)


_guard_service: AuthGuardService | None = None
_guard_config: RateLimitSettings | None = None
_account_store: AbstractAccountStore | None = None


def get_guard_service() -> AuthGuardService:
    """Return the process-wide guard service.

    The instance is cached in-module so in-memory counters survive across
    requests. If configuration changes (primarily in tests), it is rebuilt.

    Returns:
        AuthGuardService: Service bound to the configured store and policy.
    """

    global _guard_service, _guard_config

    cfg = settings.rate_limit
    if _guard_service is None or _guard_config != cfg:
        store = create_counter_store(cfg)
        _guard_service = AuthGuardService(store, GuardPolicy.from_settings(cfg))
        _guard_config = cfg.model_copy()
        logger.info(
            "rate_limit.guard_initialized",
            extra={"store_backend": cfg.store_backend, "enabled": cfg.enabled},
        )

    return _guard_service


def get_account_store() -> AbstractAccountStore:
    global _account_store

    if _account_store is None:
        _account_store = InMemoryAccountStore()
    return _account_store


def enforce(result: RateLimitResult, *, scope: str) -> None:
    """Raise ``RateLimitedAppError`` when a guard denied the request.

    Does nothing when the result is allowed or rate limiting is disabled.

    Args:
        result: Guard check result.
        scope: Which guard produced it (``ip``, ``username``, ``registration``).

    Raises:
        RateLimitedAppError: Rendered as HTTP 429 by the exception handlers.
    """

    if result.allowed or not settings.rate_limit.enabled:
        return

    raise RateLimitedAppError(
        code="rate_limited",
        message=result.message or "Too many requests. Try again later.",
        details={
            "retry_after_ms": result.retry_after or 0,
            "reset_at": result.reset_at,
            "remaining": result.remaining,
            "scope": scope,
            "context": {"limit": result.limit},
        },
    )
