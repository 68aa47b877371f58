"""Tests for the guard facade following the login and registration sequences."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from authguard.adapters.counter_store.in_memory import InMemoryCounterStore
from authguard.schemas.rate_limit import AuthAction, RateLimitRecord
from authguard.services.guard_service import AuthGuardService

START = 1_700_000_000_000
DAY_MS = 86_400_000


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=START)


@pytest.fixture
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def service(store: InMemoryCounterStore, clock: Mock) -> AuthGuardService:
    return AuthGuardService(store, clock=clock)


def _failed_login(service: AuthGuardService, ip: str, username: str) -> None:
    service.record_login_failure(username)
    service.record_ip_attempt(ip, AuthAction.LOGIN)


def test_failed_logins_lock_the_username_not_the_ip(service: AuthGuardService) -> None:
    for _ in range(5):
        assert service.check_ip_rate_limit("7.7.7.7", "login").allowed is True
        assert service.check_username_rate_limit("alice").allowed is True
        _failed_login(service, "7.7.7.7", "alice")

    assert service.check_username_rate_limit("alice").allowed is False
    ip_result = service.check_ip_rate_limit("7.7.7.7", "login")
    assert ip_result.allowed is True
    assert ip_result.remaining == 5
    assert service.check_username_rate_limit("bob").allowed is True


def test_successful_login_clears_failures(service: AuthGuardService) -> None:
    for _ in range(3):
        _failed_login(service, "7.7.7.7", "alice")

    service.clear_login_failures("alice")
    service.record_ip_attempt("7.7.7.7", AuthAction.LOGIN)

    assert service.check_username_rate_limit("alice").remaining == 5
    # The IP budget still counts the successful attempt
    assert service.check_ip_rate_limit("7.7.7.7", "login").remaining == 6


def test_registration_sequence(service: AuthGuardService) -> None:
    for _ in range(3):
        assert service.check_ip_rate_limit("9.9.9.9", "register").allowed is True
        assert service.check_register_rate_limit("9.9.9.9").allowed is True
        service.record_ip_attempt("9.9.9.9", "register")
        service.record_register_success("9.9.9.9")

    result = service.check_register_rate_limit("9.9.9.9")
    assert result.allowed is False
    assert result.retry_after == 3_600_000
    assert service.check_ip_rate_limit("9.9.9.9", "register").allowed is True


def test_cleanup_goes_through_the_sweeper(
    service: AuthGuardService, store: InMemoryCounterStore, clock: Mock
) -> None:
    store.set("ip:login:1.1.1.1:short", RateLimitRecord.first(START))
    clock.return_value = START + DAY_MS + 1

    assert service.cleanup_expired_records() == 1
    assert len(store) == 0


def test_every_guard_fails_open_when_store_is_down(unavailable_store) -> None:
    service = AuthGuardService(unavailable_store)

    assert service.check_ip_rate_limit("1.1.1.1", "login").allowed is True
    assert service.check_username_rate_limit("alice").allowed is True
    assert service.check_register_rate_limit("1.1.1.1").allowed is True
    service.record_ip_attempt("1.1.1.1", "login")
    service.record_login_failure("alice")
    service.clear_login_failures("alice")
    service.record_register_success("1.1.1.1")
    assert service.cleanup_expired_records() == 0
