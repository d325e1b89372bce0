"""Unit tests for the reconnect backoff policy."""

from __future__ import annotations

import pytest

from ztp_notify.backoff import BackoffPolicy


class TestBackoffDelay:
    """Tests for BackoffPolicy.delay."""

    def test_default_sequence(self) -> None:
        """Defaults double from 1s and cap at 30s."""
        policy = BackoffPolicy()
        assert [policy.delay(n) for n in range(7)] == [1, 2, 4, 8, 16, 30, 30]

    def test_custom_policy(self) -> None:
        policy = BackoffPolicy(base_delay=0.5, max_delay=5.0, backoff=3.0)
        assert [policy.delay(n) for n in range(4)] == [0.5, 1.5, 4.5, 5.0]

    def test_constant_backoff(self) -> None:
        """A factor of 1 retries at a fixed interval."""
        policy = BackoffPolicy(base_delay=2.0, max_delay=2.0, backoff=1.0)
        assert {policy.delay(n) for n in range(10)} == {2.0}

    def test_monotonic_and_bounded(self) -> None:
        policy = BackoffPolicy()
        delays = [policy.delay(n) for n in range(50)]

        assert delays == sorted(delays)
        assert all(policy.base_delay <= d <= policy.max_delay for d in delays)

    def test_huge_attempt_does_not_overflow(self) -> None:
        assert BackoffPolicy().delay(10_000) == 30.0

    def test_negative_attempt(self) -> None:
        with pytest.raises(ValueError):
            BackoffPolicy().delay(-1)


class TestBackoffBudget:
    """Tests for BackoffPolicy.exhausted."""

    def test_exhausted_at_max_attempts(self) -> None:
        policy = BackoffPolicy(max_attempts=3)

        assert not policy.exhausted(0)
        assert not policy.exhausted(2)
        assert policy.exhausted(3)
        assert policy.exhausted(4)

    def test_zero_attempts_never_retries(self) -> None:
        assert BackoffPolicy(max_attempts=0).exhausted(0)

    def test_unlimited(self) -> None:
        assert not BackoffPolicy(max_attempts=None).exhausted(1_000_000)


class TestBackoffValidation:
    """Tests for BackoffPolicy argument checks."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_delay": 0},
            {"base_delay": -1},
            {"base_delay": 10, "max_delay": 5},
            {"backoff": 0.5},
            {"max_attempts": -1},
        ],
    )
    def test_rejects_invalid(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)
