"""Factory for creating counter store instances."""

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.adapters.counter_store.in_memory import InMemoryCounterStore
from authguard.adapters.counter_store.sql import SqlCounterStore
from authguard.core.config import RateLimitSettings, settings
from authguard.core.errors import ValidationAppError


def create_counter_store(cfg: RateLimitSettings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by ``RATE_LIMIT_STORE_BACKEND``.

    Args:
        cfg: Rate limit settings; defaults to the global settings.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
        CounterStoreUnavailableError: If the SQL schema cannot be created.
    """
    cfg = cfg or settings.rate_limit
    backend = cfg.store_backend.lower()

    if backend == "memory":
        return InMemoryCounterStore()

    if backend == "sql":
        return SqlCounterStore.from_url(cfg.database_url)

    raise ValidationAppError(
        code="counter_store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: memory, sql",
    )
