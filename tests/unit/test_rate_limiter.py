import threading
from datetime import timedelta

import pytest

from core.clock import ManualClock
from core.exceptions import TooManyAttempts
from services.rate_limiter import RateLimiter, MAX_ATTEMPTS, LOCKOUT_DURATION


def test_defaults():
    assert MAX_ATTEMPTS == 5
    assert LOCKOUT_DURATION == timedelta(minutes=15)


def test_check_passes_for_unknown_principal():
    limiter = RateLimiter(ManualClock())

    limiter.check("alice")

    assert limiter.get("alice") is None


def test_failures_below_threshold_do_not_lock():
    limiter = RateLimiter(ManualClock())

    for _ in range(MAX_ATTEMPTS - 1):
        limiter.record_failure("alice")

    limiter.check("alice")
    record = limiter.get("alice")
    assert record.failed_attempts == MAX_ATTEMPTS - 1
    assert record.lockout_start is None


def test_lockout_after_max_failures():
    clock = ManualClock()
    limiter = RateLimiter(clock)

    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    assert limiter.get("alice").lockout_start == clock.now()
    with pytest.raises(TooManyAttempts) as exc_info:
        limiter.check("alice")

    assert exc_info.value.retry_after_seconds == 900


def test_retry_after_counts_down():
    clock = ManualClock()
    limiter = RateLimiter(clock)
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    clock.advance(timedelta(minutes=10, seconds=30))

    with pytest.raises(TooManyAttempts) as exc_info:
        limiter.check("alice")
    assert exc_info.value.retry_after_seconds == 270


def test_retry_after_rounds_up_and_stays_positive():
    clock = ManualClock()
    limiter = RateLimiter(clock)
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    clock.advance(LOCKOUT_DURATION - timedelta(milliseconds=1))

    with pytest.raises(TooManyAttempts) as exc_info:
        limiter.check("alice")
    assert exc_info.value.retry_after_seconds == 1


def test_lockout_decays():
    clock = ManualClock()
    limiter = RateLimiter(clock)
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    clock.advance(LOCKOUT_DURATION)

    limiter.check("alice")
    assert limiter.get("alice") is None


def test_failure_after_elapsed_lockout_starts_fresh_record():
    clock = ManualClock()
    limiter = RateLimiter(clock)
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    clock.advance(LOCKOUT_DURATION + timedelta(seconds=1))
    record = limiter.record_failure("alice")

    assert record.failed_attempts == 1
    assert record.lockout_start is None


def test_reset_clears_failures():
    limiter = RateLimiter(ManualClock())
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    limiter.reset("alice")

    limiter.check("alice")
    assert limiter.get("alice") is None


def test_principals_are_independent():
    limiter = RateLimiter(ManualClock())
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    limiter.check("bob")
    with pytest.raises(TooManyAttempts):
        limiter.check("alice")


def test_principal_keys_are_case_sensitive():
    limiter = RateLimiter(ManualClock())
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")

    limiter.check("Alice")


def test_evict_stale_removes_only_elapsed_records():
    clock = ManualClock()
    limiter = RateLimiter(clock)
    for _ in range(MAX_ATTEMPTS):
        limiter.record_failure("alice")
    limiter.record_failure("bob")

    clock.advance(LOCKOUT_DURATION - timedelta(minutes=1))
    limiter.record_failure("carol")
    clock.advance(timedelta(minutes=1))

    assert limiter.evict_stale() == 2
    assert len(limiter) == 1
    assert limiter.get("carol").failed_attempts == 1


def test_custom_limits():
    clock = ManualClock()
    limiter = RateLimiter(clock, max_attempts=2, lockout_duration=timedelta(minutes=1))
    limiter.record_failure("alice")
    limiter.record_failure("alice")

    with pytest.raises(TooManyAttempts) as exc_info:
        limiter.check("alice")
    assert exc_info.value.retry_after_seconds == 60


def test_concurrent_failures_are_all_counted():
    limiter = RateLimiter(ManualClock(), max_attempts=10_000)
    threads = [
        threading.Thread(target=lambda: [limiter.record_failure("alice") for _ in range(100)])
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert limiter.get("alice").failed_attempts == 800
