# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Scheduler Configuration for the Paced Request Queue

This module provides the configuration class for the request scheduler,
covering pacing, concurrency, admission and retry settings.
"""

from dataclasses import dataclass

from ..exceptions import ConfigurationError


@dataclass
class QueueConfig:
    """
    Configuration for the request scheduler.

    Every scheduler instance owns its configuration; two schedulers built
    from different configs never share state.
    """

    # === Pacing and Concurrency ===

    requests_per_second: float = 10.0
    """Maximum rate of dispatch starts. Dispatches are spaced by 1/rate."""

    max_concurrent: int = 3
    """Maximum number of requests in flight at once."""

    # === Admission ===

    max_queue_size: int = 1000
    """Maximum number of pending requests; further submissions are rejected."""

    # === Retry and Backoff ===

    max_retries: int = 3
    """Maximum number of re-enqueues for a request failing retryably."""

    base_delay: float = 1.0
    """Backoff delay for the first retry in seconds."""

    max_delay: float = 10.0
    """Cap on the un-jittered backoff delay in seconds."""

    jitter_fraction: float = 0.1
    """Relative jitter applied around each backoff delay (0.1 = +/-10%)."""

    # === Metrics and Monitoring ===

    metrics_enabled: bool = True
    """Enable metrics collection."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.requests_per_second <= 0:
            raise ConfigurationError("requests_per_second must be positive")
        if self.max_concurrent < 1:
            raise ConfigurationError("max_concurrent must be at least 1")
        if self.max_queue_size < 1:
            raise ConfigurationError("max_queue_size must be at least 1")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be non-negative")
        if self.base_delay < 0:
            raise ConfigurationError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ConfigurationError("max_delay must be at least base_delay")
        if not 0 <= self.jitter_fraction < 1:
            raise ConfigurationError("jitter_fraction must be in [0, 1)")

    @property
    def min_interval(self) -> float:
        """Minimum spacing between dispatch starts in seconds."""
        return 1.0 / self.requests_per_second


__all__ = ["QueueConfig"]
