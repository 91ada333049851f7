"""Unit tests for BackoffPolicy."""

import random
from unittest.mock import Mock

import pytest

from paced_request_queue.backoff import BackoffPolicy
from paced_request_queue.exceptions import ClassifiedError
from paced_request_queue.types.errors import ErrorKind


class TestBackoffPolicyInit:
    def test_defaults(self):
        policy = BackoffPolicy()
        assert policy.base_delay == 1.0
        assert policy.max_delay == 10.0
        assert policy.jitter_fraction == 0.1
        assert isinstance(policy.rng, random.Random)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_delay": -1.0},
            {"max_delay": -1.0},
            {"jitter_fraction": -0.1},
            {"jitter_fraction": 1.0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)

    def test_repr(self):
        assert "base_delay=1.0" in repr(BackoffPolicy())


class TestCappedDelay:
    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0), (4, 10.0), (10, 10.0)],
    )
    def test_exponential_growth_is_capped(self, attempt, expected):
        assert BackoffPolicy().capped_delay(attempt) == expected

    def test_large_attempt_returns_cap(self):
        assert BackoffPolicy().capped_delay(10_000) == 10.0

    def test_zero_base_delay(self):
        assert BackoffPolicy(base_delay=0.0).capped_delay(5) == 0.0

    def test_negative_attempt_rejected(self):
        with pytest.raises(ValueError):
            BackoffPolicy().capped_delay(-1)


class TestComputeDelay:
    @pytest.mark.parametrize("attempt", range(8))
    def test_delay_within_jitter_bounds(self, attempt):
        policy = BackoffPolicy(rng=random.Random(attempt))
        capped = min(10.0, 2**attempt)

        for _ in range(50):
            delay = policy.compute_delay(attempt)
            assert 0.9 * capped - 1e-9 <= delay <= 1.1 * capped + 1e-9

    def test_seeded_rng_is_reproducible(self):
        first = BackoffPolicy(rng=random.Random(42))
        second = BackoffPolicy(rng=random.Random(42))
        assert [first.compute_delay(n) for n in range(5)] == [
            second.compute_delay(n) for n in range(5)
        ]

    def test_no_jitter_is_exact(self):
        policy = BackoffPolicy(base_delay=0.5, jitter_fraction=0.0)
        assert policy.compute_delay(2) == 2.0

    def test_uses_injected_rng(self):
        rng = Mock(spec=random.Random)
        rng.uniform.return_value = 1.05
        policy = BackoffPolicy(rng=rng)

        assert policy.compute_delay(0) == 1.05
        rng.uniform.assert_called_once_with(pytest.approx(0.9), pytest.approx(1.1))


class TestDelayFor:
    def test_without_error_uses_computed_delay(self):
        policy = BackoffPolicy(jitter_fraction=0.0)
        assert policy.delay_for(1) == 2.0

    def test_retry_after_overrides_computed_delay(self):
        policy = BackoffPolicy(jitter_fraction=0.0)
        error = ClassifiedError(ErrorKind.RATE_LIMIT, "slow down", retry_after=2.0)
        assert policy.delay_for(3, error) == 2.0

    def test_retry_after_is_not_capped(self):
        policy = BackoffPolicy(max_delay=10.0)
        error = ClassifiedError(ErrorKind.RATE_LIMIT, "slow down", retry_after=60.0)
        assert policy.delay_for(0, error) == 60.0

    def test_zero_retry_after_is_ignored(self):
        policy = BackoffPolicy(jitter_fraction=0.0)
        error = ClassifiedError(ErrorKind.SERVER_ERROR, "boom")
        assert policy.delay_for(2, error) == 4.0

    def test_non_finite_retry_after_is_ignored(self):
        policy = BackoffPolicy(jitter_fraction=0.0)
        error = ClassifiedError(
            ErrorKind.RATE_LIMIT, "slow down", retry_after=float("inf")
        )
        assert policy.delay_for(1, error) == 2.0
