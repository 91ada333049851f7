# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Paced Request Queue - outbound request scheduling for HTTP API clients.

This library sits between application code and a remote HTTP API. It admits
requests into a bounded FIFO queue, paces their dispatch, caps concurrency,
retries transient failures with jittered exponential backoff, and keeps the
credential valid before and during execution.

Key Features:
    - Dispatch pacing (requests per second) and a concurrency cap
    - Error taxonomy for network, rate limit, server and auth failures
    - Capped exponential backoff with jitter; server Retry-After wins
    - One transparent refresh-and-retry on authentication failure
    - Sign-out on unrecoverable credentials
    - Prometheus metrics in a per-scheduler registry

Quick Start:
    >>> from paced_request_queue import create_scheduler
    >>>
    >>> class Session:
    ...     async def ensure_valid_token(self): ...
    ...     async def refresh_token(self): ...
    ...     def sign_out(self): ...
    >>>
    >>> async with create_scheduler(credentials=Session()) as scheduler:
    ...     profile = await scheduler.execute(fetch_profile)

Main Exports:
    - RequestScheduler, create_scheduler: Core scheduling components
    - QueueConfig: Configuration options
    - BackoffPolicy: Retry delay computation
    - classify_error, ErrorKind: Error taxonomy
    - CredentialProvider: Protocol for the credential lifecycle
    - ApiError and subclasses: Failures raised by request operations

Version: 1.0.0
"""

__version__ = "1.0.0"

from .backoff import BackoffPolicy
from .exceptions import (
    ApiError,
    ClassifiedError,
    ConfigurationError,
    NetworkError,
    QueueOverflowError,
    RequestQueueError,
    RetryableApiError,
    SchedulerClosedError,
    TokenError,
)
from .observability import SchedulerMetrics
from .protocols import CredentialProvider, Operation
from .scheduler import (
    ExecutionGuard,
    QueueConfig,
    RequestScheduler,
    create_scheduler,
)
from .taxonomy import classify_error, is_retryable
from .types import ErrorKind, QueueItem

__all__ = [
    # Exceptions
    "ApiError",
    # Backoff
    "BackoffPolicy",
    "ClassifiedError",
    "ConfigurationError",
    # Protocols
    "CredentialProvider",
    # Taxonomy
    "ErrorKind",
    "ExecutionGuard",
    "NetworkError",
    "Operation",
    "QueueConfig",
    "QueueItem",
    "QueueOverflowError",
    "RequestQueueError",
    # Scheduler
    "RequestScheduler",
    "RetryableApiError",
    "SchedulerClosedError",
    # Observability
    "SchedulerMetrics",
    "TokenError",
    "classify_error",
    "create_scheduler",
    "is_retryable",
]
