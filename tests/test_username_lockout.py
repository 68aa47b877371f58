"""Tests for failed-login tracking and progressive lockout."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from authguard.adapters.counter_store.in_memory import InMemoryCounterStore
from authguard.schemas.rate_limit import RateLimitRecord
from authguard.services.policy import LockoutPolicy, WindowSpec
from authguard.services.username_lockout import UsernameLockoutGuard
from authguard.utils.durations import format_duration

START = 1_700_000_000_000
MINUTE = 60_000


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=START)


@pytest.fixture
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def guard(store: InMemoryCounterStore, clock: Mock) -> UsernameLockoutGuard:
    return UsernameLockoutGuard(store, LockoutPolicy(), clock=clock)


def _fail(guard: UsernameLockoutGuard, clock: Mock, username: str, times: int, start: int) -> None:
    for i in range(times):
        clock.return_value = start + i * 1_000
        guard.record_failure(username)


def test_clean_username_has_full_budget(guard: UsernameLockoutGuard) -> None:
    result = guard.check("bob")

    assert result.allowed is True
    assert result.remaining == 5
    assert result.reset_at == START + 15 * MINUTE


def test_tracking_counts_down(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "bob", 3, START)

    result = guard.check("bob")

    assert result.allowed is True
    assert result.remaining == 2
    assert result.reset_at == START + 15 * MINUTE


def test_fifth_failure_locks_for_five_minutes(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "bob", 5, START)
    locked_at = START + 4_000

    result = guard.check("bob")

    assert result.allowed is False
    assert result.remaining == 0
    assert result.retry_after == 5 * MINUTE
    assert result.reset_at == locked_at + 5 * MINUTE
    assert result.message == "Account temporarily locked. Please retry in 5 minutes."


def test_lockout_outlives_the_failure_window(store: InMemoryCounterStore, clock: Mock) -> None:
    policy = LockoutPolicy(window=WindowSpec(MINUTE, 5), initial_lockout_ms=10 * MINUTE)
    guard = UsernameLockoutGuard(store, policy, clock=clock)
    _fail(guard, clock, "bob", 5, START)

    clock.return_value = START + 5 * MINUTE
    result = guard.check("bob")

    assert result.allowed is False
    assert result.retry_after == 10 * MINUTE + 4_000 - 5 * MINUTE


def test_lockout_escalates_on_repeat_offences(guard: UsernameLockoutGuard, clock: Mock) -> None:
    start = START
    expected = [5 * MINUTE, 10 * MINUTE, 20 * MINUTE]

    for duration in expected:
        _fail(guard, clock, "bob", 5, start)
        locked_at = start + 4_000
        result = guard.check("bob")
        assert result.allowed is False
        assert result.retry_after == duration

        # Serve the lockout in full; the subject is clean again afterwards
        clock.return_value = locked_at + duration
        served = guard.check("bob")
        assert served.allowed is True
        assert served.remaining == 5
        start = locked_at + duration + 1_000


def test_lockout_duration_is_capped(store: InMemoryCounterStore, clock: Mock) -> None:
    guard = UsernameLockoutGuard(store, LockoutPolicy(), clock=clock)
    store.set(
        "username:login:bob",
        RateLimitRecord(
            attempts=4,
            first_attempt_at=START,
            last_attempt_at=START,
            lockout_count=40,
        ),
    )

    guard.record_failure("bob")

    result = guard.check("bob")
    assert result.allowed is False
    assert result.retry_after == 86_400_000


def test_usernames_are_case_insensitive(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "Alice", 3, START)
    _fail(guard, clock, "ALICE", 2, START + 10_000)

    assert guard.check("alice").allowed is False
    assert guard.check("Alice").allowed is False


def test_clear_failures_resets_to_clean(
    guard: UsernameLockoutGuard, clock: Mock, store: InMemoryCounterStore
) -> None:
    _fail(guard, clock, "bob", 5, START)
    assert guard.check("bob").allowed is False

    guard.clear_failures("Bob")

    result = guard.check("bob")
    assert result.allowed is True
    assert result.remaining == 5
    assert store.get("username:login:bob") is None


def test_clear_failures_also_resets_escalation(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "bob", 5, START)
    guard.clear_failures("bob")

    _fail(guard, clock, "bob", 5, START + 10_000)

    assert guard.check("bob").retry_after == 5 * MINUTE


def test_failures_during_lockout_do_not_extend_it(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "bob", 5, START)
    clock.return_value = START + 2 * MINUTE
    guard.record_failure("bob")

    clock.return_value = START + 4_000 + 5 * MINUTE
    assert guard.check("bob").allowed is True


def test_window_expiry_forgets_failures(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "bob", 4, START)

    clock.return_value = START + 15 * MINUTE
    assert guard.check("bob").remaining == 5

    guard.record_failure("bob")
    assert guard.check("bob").remaining == 4


def test_escalation_decays_after_long_inactivity(guard: UsernameLockoutGuard, clock: Mock) -> None:
    _fail(guard, clock, "bob", 5, START)
    lockout_end = START + 4_000 + 5 * MINUTE

    _fail(guard, clock, "bob", 5, lockout_end + 86_400_000)

    assert guard.check("bob").retry_after == 5 * MINUTE


def test_threshold_without_lockout_locks_on_check(
    guard: UsernameLockoutGuard, store: InMemoryCounterStore
) -> None:
    # State a racing writer could leave behind
    store.set(
        "username:login:bob",
        RateLimitRecord(attempts=6, first_attempt_at=START - 1_000, last_attempt_at=START),
    )

    result = guard.check("bob")

    assert result.allowed is False
    assert result.retry_after == 5 * MINUTE
    record = store.get("username:login:bob")
    assert record is not None
    assert record.lockout_until == START + 5 * MINUTE
    assert record.lockout_count == 1


def test_corrupt_record_is_replaced_by_next_failure(
    guard: UsernameLockoutGuard, store: InMemoryCounterStore, clock: Mock
) -> None:
    store._rows["username:login:bob"] = {
        "attempts": 0,
        "first_attempt_at": START,
        "last_attempt_at": START,
        "version": 1,
    }
    assert guard.check("bob").remaining == 5

    _fail(guard, clock, "bob", 5, START)

    result = guard.check("bob")
    assert result.allowed is False
    record = store.get("username:login:bob")
    assert record is not None
    assert record.attempts == 5
    assert record.lockout_count == 1


def test_store_outage_fails_open(clock: Mock, unavailable_store) -> None:
    guard = UsernameLockoutGuard(unavailable_store, LockoutPolicy(), clock=clock)
    for _ in range(10):
        guard.record_failure("bob")
    guard.clear_failures("bob")

    result = guard.check("bob")
    assert result.allowed is True
    assert result.remaining == 5


@pytest.mark.parametrize(
    ("lockout_count", "expected"),
    [
        (1, 300_000),
        (2, 600_000),
        (3, 1_200_000),
        (9, 76_800_000),
        (10, 86_400_000),
        (500, 86_400_000),
    ],
)
def test_lockout_duration_schedule(lockout_count: int, expected: int) -> None:
    assert LockoutPolicy().lockout_duration(lockout_count) == expected


@pytest.mark.parametrize(
    ("ms", "expected"),
    [
        (1, "1 second"),
        (59_000, "59 seconds"),
        (60_000, "1 minute"),
        (61_000, "2 minutes"),
        (3_600_000, "1 hour"),
        (86_400_000, "1 day"),
        (90_000_000, "2 days"),
    ],
)
def test_format_duration(ms: int, expected: str) -> None:
    assert format_duration(ms) == expected
