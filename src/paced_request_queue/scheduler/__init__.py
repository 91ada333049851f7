# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Scheduler for paced, concurrency-capped request execution.

This module provides:
- QueueConfig: Configuration for pacing, concurrency, admission and retries
- ExecutionGuard: Credential validation and auth refresh around one attempt
- RequestScheduler: The bounded FIFO queue and its drain loop
- create_scheduler: Factory with keyword config overrides
"""

from .config import QueueConfig
from .guard import ExecutionGuard
from .scheduler import RequestScheduler, create_scheduler

__all__ = [
    "ExecutionGuard",
    "QueueConfig",
    "RequestScheduler",
    "create_scheduler",
]
