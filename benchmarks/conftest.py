"""
Shared fixtures for benchmark tests.
"""

import pytest

from paced_request_queue.scheduler.config import QueueConfig


class BenchmarkCredentials:
    """Credential provider that is always valid."""

    async def ensure_valid_token(self) -> bool:
        return True

    async def refresh_token(self) -> bool:
        return True

    def sign_out(self) -> None:
        return None


@pytest.fixture
def benchmark_config():
    """Configuration that never throttles, so only scheduling overhead is measured."""
    return QueueConfig(
        requests_per_second=1_000_000,
        max_concurrent=1000,
        max_queue_size=10000,
        base_delay=0.0,
        max_delay=0.0,
    )


@pytest.fixture
def benchmark_credentials():
    """Benchmark credential provider instance."""
    return BenchmarkCredentials()
