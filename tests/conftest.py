"""Pytest configuration shared across all test modules.

Environment variables must be set before anything imports
``authguard.core.config``, because settings are read at import time.
"""

import os

os.environ["APP_ENV"] = "testing"

os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("RATE_LIMIT_STORE_BACKEND", "memory")
os.environ.setdefault("LOG_FORMAT", "plain")

import pytest  # noqa: E402

from authguard.adapters.counter_store.in_memory import InMemoryCounterStore  # noqa: E402
from authguard.core.errors import CounterStoreUnavailableError  # noqa: E402


def _unavailable() -> CounterStoreUnavailableError:
    return CounterStoreUnavailableError(code="counter_store_unavailable", message="store is down")


class UnavailableStore(InMemoryCounterStore):
    """Counter store whose backend fails on every operation."""

    def get(self, key):
        raise _unavailable()

    def set(self, key, record):
        raise _unavailable()

    def delete(self, key):
        raise _unavailable()

    def compare_and_set(self, key, record, expected_version):
        raise _unavailable()

    def delete_expired(self, stale_before, now):
        raise _unavailable()


@pytest.fixture
def unavailable_store() -> UnavailableStore:
    return UnavailableStore()
