"""Tests for LoginAttemptService over an in-memory store with a fake clock."""

import pytest

from property_core.services.login_attempt_service import LoginAttemptService
from property_core.utils.key_value_store import InMemoryKeyValueStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def login_attempts(clock):
    return LoginAttemptService(
        store=InMemoryKeyValueStore(clock=clock), max_attempts=3, ttl_minutes=15
    )


class TestLoginAttemptService:
    def test_nothing_recorded(self, login_attempts):
        assert login_attempts.get_attempts("a@example.com") is None
        assert login_attempts.get_remaining_attempts("a@example.com") == 3
        assert not login_attempts.is_blocked("a@example.com")

    def test_blocked_after_max_attempts(self, login_attempts):
        counts = [login_attempts.record_failed_attempt("a@example.com") for _ in range(3)]

        assert counts == [1, 2, 3]
        assert login_attempts.is_blocked("a@example.com")
        assert login_attempts.get_remaining_attempts("a@example.com") == 0

    def test_remaining_never_negative(self, login_attempts):
        for _ in range(5):
            login_attempts.record_failed_attempt("a@example.com")

        assert login_attempts.get_remaining_attempts("a@example.com") == 0

    def test_identifiers_are_case_sensitive(self, login_attempts):
        login_attempts.record_failed_attempt("A@example.com")

        assert login_attempts.get_attempts("a@example.com") is None

    def test_window_starts_at_first_failure(self, login_attempts, clock):
        login_attempts.record_failed_attempt("a@example.com")
        clock.advance(10 * 60)
        login_attempts.record_failed_attempt("a@example.com")
        clock.advance(5 * 60)

        assert login_attempts.get_attempts("a@example.com") is None
        assert login_attempts.record_failed_attempt("a@example.com") == 1

    def test_reset(self, login_attempts):
        for _ in range(3):
            login_attempts.record_failed_attempt("a@example.com")

        login_attempts.reset_attempts("a@example.com")
        login_attempts.reset_attempts("never@example.com")

        assert not login_attempts.is_blocked("a@example.com")
        assert login_attempts.get_attempts("a@example.com") is None


def test_defaults_come_from_config(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)

    service = LoginAttemptService()

    assert service.max_attempts == 5
    assert service.ttl_minutes == 15
    assert isinstance(service.store, InMemoryKeyValueStore)


def test_default_limit_blocks_on_fifth_failure(clock):
    service = LoginAttemptService(store=InMemoryKeyValueStore(clock=clock))

    for _ in range(4):
        service.record_failed_attempt("a@example.com")

    assert not service.is_blocked("a@example.com")
    assert service.get_remaining_attempts("a@example.com") == 1

    assert service.record_failed_attempt("a@example.com") == 5
    assert service.is_blocked("a@example.com")
    assert service.get_remaining_attempts("a@example.com") == 0
