# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Queue types for the request scheduler.

This module defines the unit of work that moves through the scheduler's
pending queue.
"""

import itertools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from asyncio import Future

_request_ids = itertools.count(1)


@dataclass
class QueueItem:
    """
    A request owned by the scheduler from admission until terminal resolution.

    Wraps the callable that performs the request together with the future
    handed back to the submitter. The future is the only reference shared
    outside the scheduler and is resolved exactly once.

    Attributes:
        operation: Async callable that executes the actual request
        future: Future resolved with the request result or terminal error
        attempt: Number of times the item has been re-enqueued after a
            retryable failure (0 on admission, only ever increases)
        request_id: Monotonic identifier used in logs
        enqueued_at: Monotonic timestamp of the most recent enqueue
    """

    operation: Callable[[], Awaitable[Any]]
    future: "Future[Any]"
    attempt: int = 0
    request_id: int = field(default_factory=lambda: next(_request_ids))
    enqueued_at: float = field(default_factory=time.monotonic)

    @property
    def settled(self) -> bool:
        """True once the handle is done, including cancellation by the submitter."""
        return self.future.done()

    def next_attempt(self) -> None:
        """Advance the attempt counter ahead of a re-enqueue."""
        self.attempt += 1
        self.enqueued_at = time.monotonic()


__all__ = ["QueueItem"]
