"""Tests for the OAuth state registry."""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from smartthings_oauth.src.oauth import RandomSourceError, StateRegistry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestStateRegistry:
    """Test cases for StateRegistry."""

    def test_issued_state_validates_exactly_once(self) -> None:
        registry = StateRegistry()
        state = registry.issue()

        assert registry.validate_and_consume(state) is True
        assert registry.validate_and_consume(state) is False
        assert registry.validate_and_consume(state) is False

    def test_never_issued_state_is_rejected(self) -> None:
        registry = StateRegistry()
        registry.issue()

        assert registry.validate_and_consume("abc123") is False
        assert registry.validate_and_consume("") is False
        assert registry.validate_and_consume(None) is False

    def test_failed_validation_does_not_consume_other_states(self) -> None:
        registry = StateRegistry()
        state = registry.issue()

        assert registry.validate_and_consume("unknown") is False
        assert registry.pending_count() == 1
        assert registry.validate_and_consume(state) is True
        assert registry.pending_count() == 0

    def test_state_is_url_safe_with_enough_entropy(self) -> None:
        state = StateRegistry().issue()

        # 32 random bytes, base64url without padding
        assert len(state) >= 43
        assert all(c.isalnum() or c in "-_" for c in state)

    def test_registries_are_isolated(self) -> None:
        first = StateRegistry()
        second = StateRegistry()
        state = first.issue()

        assert second.validate_and_consume(state) is False
        assert first.validate_and_consume(state) is True

    def test_random_source_failure_is_fatal(self) -> None:
        registry = StateRegistry()

        with patch(
            "smartthings_oauth.src.oauth.state.secrets.token_urlsafe",
            side_effect=OSError("no entropy"),
        ):
            with pytest.raises(RandomSourceError):
                registry.issue()

        assert registry.pending_count() == 0

    def test_expired_state_is_rejected(self) -> None:
        clock = FakeClock()
        registry = StateRegistry(ttl_seconds=600, clock=clock)
        state = registry.issue()

        clock.now += 601

        assert registry.validate_and_consume(state) is False
        assert registry.pending_count() == 0

    def test_state_within_ttl_is_accepted(self) -> None:
        clock = FakeClock()
        registry = StateRegistry(ttl_seconds=600, clock=clock)
        state = registry.issue()

        clock.now += 599

        assert registry.validate_and_consume(state) is True

    def test_zero_ttl_keeps_states_until_consumed(self) -> None:
        clock = FakeClock()
        registry = StateRegistry(ttl_seconds=0, clock=clock)
        state = registry.issue()

        clock.now += 10**6

        assert registry.purge_expired() == 0
        assert registry.validate_and_consume(state) is True

    def test_purge_expired_removes_abandoned_states(self) -> None:
        clock = FakeClock()
        registry = StateRegistry(ttl_seconds=60, clock=clock)
        registry.issue()
        registry.issue()
        clock.now += 30
        fresh = registry.issue()
        clock.now += 31

        assert registry.purge_expired() == 2
        assert registry.pending_count() == 1
        assert registry.validate_and_consume(fresh) is True

    def test_issue_purges_expired_states(self) -> None:
        clock = FakeClock()
        registry = StateRegistry(ttl_seconds=60, clock=clock)
        registry.issue()
        clock.now += 61

        registry.issue()

        assert registry.pending_count() == 1


class TestStateRegistryConcurrency:
    """Concurrency tests for StateRegistry."""

    def test_concurrent_issue_returns_distinct_values(self) -> None:
        registry = StateRegistry()

        with ThreadPoolExecutor(max_workers=16) as pool:
            states = list(pool.map(lambda _: registry.issue(), range(500)))

        assert len(set(states)) == 500
        assert registry.pending_count() == 500

    def test_concurrent_validation_of_same_state_succeeds_once(self) -> None:
        registry = StateRegistry()
        state = registry.issue()
        barrier = threading.Barrier(8)

        def _validate(_: int) -> bool:
            barrier.wait()
            return registry.validate_and_consume(state)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(_validate, range(8)))

        assert results.count(True) == 1
        assert results.count(False) == 7
