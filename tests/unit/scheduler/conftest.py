"""Shared fixtures for scheduler tests."""

import time
from unittest.mock import AsyncMock, Mock

import pytest

from paced_request_queue.backoff import BackoffPolicy
from paced_request_queue.scheduler.config import QueueConfig
from paced_request_queue.scheduler.scheduler import RequestScheduler


class FakeCredentials:
    """Credential provider whose calls are recorded by mocks."""

    def __init__(self) -> None:
        self.ensure_valid_token = AsyncMock(return_value=True)
        self.refresh_token = AsyncMock(return_value=True)
        self.sign_out = Mock()


@pytest.fixture
def credentials():
    """Create a credential provider that always succeeds."""
    return FakeCredentials()


@pytest.fixture
def fast_config():
    """Factory for configs with millisecond pacing and backoff."""

    def _make(**overrides):
        values = {
            "requests_per_second": 1000.0,
            "max_concurrent": 3,
            "base_delay": 0.001,
            "max_delay": 0.005,
        }
        values.update(overrides)
        return QueueConfig(**values)

    return _make


@pytest.fixture
def make_scheduler(fast_config, credentials):
    """Factory for schedulers with fast defaults and fake credentials."""

    def _make(backoff: BackoffPolicy | None = None, with_credentials=True, **overrides):
        return RequestScheduler(
            config=fast_config(**overrides),
            credentials=credentials if with_credentials else None,
            backoff=backoff,
        )

    return _make


@pytest.fixture
def flaky_operation():
    """
    Factory for operations that raise the given errors in turn, then succeed.

    The factory returns (operation, calls) where calls records the monotonic
    start time of every invocation.
    """

    def _make(result, *errors):
        calls: list[float] = []

        async def operation():
            calls.append(time.monotonic())
            if len(calls) <= len(errors):
                raise errors[len(calls) - 1]
            return result

        return operation, calls

    return _make
