# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Request scheduler for the Paced Request Queue.

The scheduler admits request operations into a bounded FIFO queue, paces
dispatch starts, caps the number of requests in flight, runs every attempt
through the ExecutionGuard and re-enqueues retryable failures after a
backoff delay.

Concurrency model:
    The scheduler lives on a single asyncio event loop. All shared state
    (the pending queue, the active count, the drain flag and the last
    dispatch time) is only touched from that loop, so cooperative
    scheduling provides the mutual exclusion. Other threads must go through
    ``submit_threadsafe``, which hands the operation to the loop.
"""

import asyncio
import concurrent.futures
import dataclasses
import functools
import inspect
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from ..backoff import BackoffPolicy
from ..exceptions import (
    ClassifiedError,
    QueueOverflowError,
    RequestQueueError,
    SchedulerClosedError,
)
from ..observability.metrics import SchedulerMetrics
from ..types.errors import ErrorKind
from ..types.queue import QueueItem
from .config import QueueConfig
from .guard import ExecutionGuard

if TYPE_CHECKING:
    from ..protocols.credentials import CredentialProvider

logger = logging.getLogger(__name__)


class RequestScheduler:
    """
    Paced, concurrency-capped request queue with retries.

    The scheduler is responsible for:
    - Admitting operations into a bounded FIFO queue and handing back a
      future that resolves exactly once.
    - Spacing dispatch starts by ``1 / requests_per_second``.
    - Keeping at most ``max_concurrent`` requests in flight.
    - Re-enqueueing NETWORK, RATE_LIMIT and SERVER_ERROR failures at the
      back of the queue after a backoff delay, at most ``max_retries``
      times per request.
    - Signing out when a credential turns out to be invalid.

    Retry budget:
        The execution guard's single refresh-and-retry on authentication
        failure is not counted against ``max_retries``. A request that hits
        both an authentication failure and retryable failures can run its
        operation up to ``2 * (max_retries + 1)`` times.

    Cancellation:
        Cancelling the returned future before dispatch removes the request
        from the queue. Cancelling it during a backoff wait drops the
        pending re-enqueue. Cancelling it while the request is in flight
        lets the operation run to completion; its result is discarded.

    Example:
        >>> async with RequestScheduler(credentials=session) as scheduler:
        ...     profile = await scheduler.execute(fetch_profile)
        ...     handle = scheduler.submit(fetch_playlists)
        ...     playlists = await handle
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        credentials: "CredentialProvider | None" = None,
        backoff: BackoffPolicy | None = None,
        metrics: SchedulerMetrics | None = None,
    ) -> None:
        """
        Initialize the RequestScheduler.

        Args:
            config: Scheduler configuration (defaults to QueueConfig())
            credentials: Credential lifecycle collaborator. Without one there
                is no pre-flight validation and no refresh path.
            backoff: Backoff policy; built from the config when omitted
            metrics: Metrics sink; created when the config enables metrics
        """
        self.config = config if config is not None else QueueConfig()
        self.credentials = credentials
        self.backoff = (
            backoff
            if backoff is not None
            else BackoffPolicy(
                base_delay=self.config.base_delay,
                max_delay=self.config.max_delay,
                jitter_fraction=self.config.jitter_fraction,
            )
        )
        if metrics is None and self.config.metrics_enabled:
            metrics = SchedulerMetrics()
        self.metrics = metrics
        self.guard = ExecutionGuard(credentials=credentials, metrics=metrics)

        self._queue: deque[QueueItem] = deque()
        self._active_count = 0
        self._draining = False
        self._last_dispatch_time: float | None = None
        self._closed = False

        self._loop: asyncio.AbstractEventLoop | None = None
        self._drain_task: asyncio.Task[None] | None = None
        self._dispatch_tasks: dict[asyncio.Task[None], QueueItem] = {}
        self._retry_tasks: dict[asyncio.Task[None], QueueItem] = {}
        self._sign_out_tasks: set[asyncio.Task[Any]] = set()

        logger.info(
            f"Initialized {self.__class__.__name__} with "
            f"max_concurrent={self.config.max_concurrent}, "
            f"requests_per_second={self.config.requests_per_second}, "
            f"max_retries={self.config.max_retries}"
        )

    # Public interface methods

    @property
    def active_count(self) -> int:
        """Number of requests currently in flight."""
        return self._active_count

    @property
    def queue_size(self) -> int:
        """Number of requests waiting for dispatch."""
        return len(self._queue)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_draining(self) -> bool:
        return self._draining

    async def start(self) -> None:
        """Bind the scheduler to the running event loop.

        Optional for callers on the loop (``submit`` binds lazily), required
        before other threads use ``submit_threadsafe``.
        """
        self._bind_loop()

    def submit(self, operation: Callable[[], Awaitable[Any]]) -> "asyncio.Future[Any]":
        """
        Admit an operation into the pending queue.

        Never blocks. Must be called from the scheduler's event loop.

        Args:
            operation: Async callable performing the request

        Returns:
            Future resolving to the operation's result, or raising the
            terminal ClassifiedError

        Raises:
            SchedulerClosedError: If the scheduler has been closed
            QueueOverflowError: If the pending queue is full
        """
        if self._closed:
            raise SchedulerClosedError("Scheduler is closed")

        loop = self._bind_loop()

        if len(self._queue) >= self.config.max_queue_size:
            if self.metrics is not None:
                self.metrics.observe_overflow()
            raise QueueOverflowError(
                f"Request queue is full ({len(self._queue)} pending)",
                queue_size=len(self._queue),
            )

        future: asyncio.Future[Any] = loop.create_future()
        item = QueueItem(operation=operation, future=future)
        future.add_done_callback(functools.partial(self._on_handle_done, item))

        self._queue.append(item)
        if self.metrics is not None:
            self.metrics.observe_submitted(len(self._queue))
        logger.debug(
            f"Request {item.request_id} admitted, {len(self._queue)} pending"
        )

        self._trigger_drain()
        return future

    async def execute(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """
        Submit an operation and wait for its terminal result.

        Raises:
            ClassifiedError: If the request failed terminally
        """
        return await self.submit(operation)

    def submit_threadsafe(
        self, operation: Callable[[], Awaitable[Any]]
    ) -> "concurrent.futures.Future[Any]":
        """
        Submit an operation from a thread other than the scheduler's loop.

        The operation is handed to the loop and admitted there. Do not block
        on the returned future from the loop thread itself.

        Returns:
            concurrent.futures.Future resolving like the asyncio handle

        Raises:
            RequestQueueError: If the scheduler is not bound to a loop yet
            SchedulerClosedError: If the scheduler has been closed
        """
        if self._closed:
            raise SchedulerClosedError("Scheduler is closed")
        if self._loop is None:
            raise RequestQueueError(
                "Scheduler is not bound to an event loop; call start() first"
            )
        return asyncio.run_coroutine_threadsafe(self.execute(operation), self._loop)

    async def close(self) -> None:
        """
        Stop the scheduler.

        Rejects queued and backing-off requests with SchedulerClosedError,
        cancels in-flight dispatches (their handles are rejected the same
        way) and waits for background tasks to settle.
        """
        if self._closed:
            return
        self._closed = True

        while self._queue:
            item = self._queue.popleft()
            self._reject(
                item, SchedulerClosedError("Scheduler closed before dispatch")
            )

        tasks: list[asyncio.Task[Any]] = [
            *self._dispatch_tasks,
            *self._retry_tasks,
        ]
        if self._drain_task is not None:
            tasks.append(self._drain_task)
        for task in tasks:
            if not task.done():
                task.cancel()
        owned_items = [*self._dispatch_tasks.values(), *self._retry_tasks.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        # Tasks cancelled before their first step never ran their handlers
        for item in owned_items:
            self._reject(item, SchedulerClosedError("Scheduler closed"))

        # Sign-outs are left to finish rather than cancelled
        if self._sign_out_tasks:
            await asyncio.gather(*self._sign_out_tasks, return_exceptions=True)

        self._dispatch_tasks.clear()
        self._retry_tasks.clear()
        self._sign_out_tasks.clear()
        self._active_count = 0
        if self.metrics is not None:
            self.metrics.observe_settled(self._active_count)

        logger.info(f"{self.__class__.__name__} closed")

    async def __aenter__(self) -> Self:
        """
        Async context manager entry.

        Returns:
            Self: The scheduler instance, bound to the running loop
        """
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit. Closes the scheduler."""
        await self.close()

    def get_metrics(self) -> dict[str, Any]:
        """
        Get current scheduler metrics.

        Returns:
            Dictionary of scheduler state plus the metrics snapshot when
            metrics are enabled
        """
        metrics: dict[str, Any] = {
            "scheduler_type": self.__class__.__name__,
            "closed": self._closed,
            "draining": self._draining,
            "active_count": self._active_count,
            "queue_size": len(self._queue),
            "backing_off": len(self._retry_tasks),
        }
        if self.metrics is not None:
            metrics.update(self.metrics.snapshot())
        return metrics

    # Drain loop

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is None:
            self._loop = loop
        elif self._loop is not loop:
            raise RequestQueueError("Scheduler is bound to a different event loop")
        return loop

    def _trigger_drain(self) -> None:
        """Start the drain loop unless it is running or has nothing to do."""
        if self._draining or self._closed or self._loop is None:
            return
        if not self._queue or self._active_count >= self.config.max_concurrent:
            return

        self._draining = True
        self._drain_task = self._loop.create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue and self._active_count < self.config.max_concurrent:
                await self._pace()

                # Cancellations during the pacing wait may have emptied the queue
                if not self._queue:
                    break

                item = self._queue.popleft()
                if item.settled:
                    continue

                self._dispatch(item)
        finally:
            self._draining = False
            self._drain_task = None

        # Exited on the concurrency cap; a settling dispatch picks up the rest
        if self._queue and not self._closed and self._loop is not None:
            self._loop.call_soon(self._trigger_drain)

    async def _pace(self) -> None:
        if self._last_dispatch_time is None:
            return

        elapsed = time.monotonic() - self._last_dispatch_time
        remaining = self.config.min_interval - elapsed
        if remaining > 0:
            await asyncio.sleep(remaining)

    def _dispatch(self, item: QueueItem) -> None:
        assert self._loop is not None
        self._active_count += 1
        self._last_dispatch_time = time.monotonic()

        if self.metrics is not None:
            self.metrics.observe_dispatched(len(self._queue), self._active_count)
        logger.debug(
            f"Dispatching request {item.request_id} (attempt {item.attempt}, "
            f"{self._active_count}/{self.config.max_concurrent} active)"
        )

        task = self._loop.create_task(self._execute(item))
        self._dispatch_tasks[task] = item
        task.add_done_callback(self._forget_dispatch)

    async def _execute(self, item: QueueItem) -> None:
        try:
            result = await self.guard.run(item.operation)
        except asyncio.CancelledError:
            if self._closed:
                message = "Scheduler closed while request was in flight"
                self._reject(item, SchedulerClosedError(message))
            elif not item.future.done():
                # Raised by the operation itself; the scheduler is still open
                logger.debug(f"Request {item.request_id} cancelled by its operation")
                item.future.cancel()
            raise
        except ClassifiedError as error:
            self._handle_failure(item, error)
        else:
            self._resolve(item, result)
        finally:
            self._active_count -= 1
            if self.metrics is not None:
                self.metrics.observe_settled(self._active_count)
            self._trigger_drain()

    # Failure handling

    def _handle_failure(self, item: QueueItem, error: ClassifiedError) -> None:
        error.attempts = item.attempt + 1

        if error.kind is ErrorKind.TOKEN_INVALID:
            logger.warning(
                f"Request {item.request_id} failed with an invalid credential, "
                f"signing out"
            )
            self._sign_out()
            self._reject(item, error)
            return

        if error.retryable and item.attempt < self.config.max_retries:
            if item.settled:
                return
            delay = self.backoff.delay_for(item.attempt, error)
            logger.warning(
                f"Request {item.request_id} failed ({error.kind.value}: {error}), "
                f"retry {item.attempt + 1}/{self.config.max_retries} in {delay:.2f}s"
            )
            self._schedule_retry(item, error.kind, delay)
            return

        if error.retryable:
            logger.warning(
                f"Request {item.request_id} exhausted {self.config.max_retries} "
                f"retries: {error!r}"
            )
        else:
            logger.debug(f"Request {item.request_id} failed terminally: {error!r}")
        self._reject(item, error)

    def _schedule_retry(self, item: QueueItem, kind: ErrorKind, delay: float) -> None:
        assert self._loop is not None
        task = self._loop.create_task(self._requeue_after(item, kind, delay))
        self._retry_tasks[task] = item
        task.add_done_callback(self._forget_retry)

    async def _requeue_after(
        self, item: QueueItem, kind: ErrorKind, delay: float
    ) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self._reject(
                item, SchedulerClosedError("Scheduler closed during retry backoff")
            )
            raise

        if item.settled:
            logger.debug(f"Request {item.request_id} settled during backoff")
            return

        # Already admitted once, so retries bypass max_queue_size
        item.next_attempt()
        self._queue.append(item)
        if self.metrics is not None:
            self.metrics.observe_retried(kind, len(self._queue))
        logger.debug(
            f"Request {item.request_id} re-enqueued for attempt {item.attempt}"
        )
        self._trigger_drain()

    def _sign_out(self) -> None:
        """Invoke the sign-out collaborator without waiting on it."""
        if self.credentials is None:
            return
        if self.metrics is not None:
            self.metrics.observe_sign_out()

        try:
            result = self.credentials.sign_out()
        except Exception as e:
            logger.error(f"Sign-out failed: {e}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._sign_out_tasks.add(task)
            task.add_done_callback(self._on_sign_out_done)

    def _on_sign_out_done(self, task: "asyncio.Future[Any]") -> None:
        self._sign_out_tasks.discard(task)  # type: ignore[arg-type]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Sign-out failed: {exc}")

    def _forget_dispatch(self, task: "asyncio.Task[None]") -> None:
        self._dispatch_tasks.pop(task, None)

    def _forget_retry(self, task: "asyncio.Task[None]") -> None:
        self._retry_tasks.pop(task, None)

    # Handle resolution

    def _resolve(self, item: QueueItem, result: Any) -> None:
        if item.future.done():
            logger.debug(
                f"Discarding result of request {item.request_id}, handle already done"
            )
            return
        item.future.set_result(result)
        if self.metrics is not None:
            self.metrics.observe_completed()

    def _reject(self, item: QueueItem, error: BaseException) -> None:
        if item.future.done():
            return
        item.future.set_exception(error)
        if self.metrics is not None and isinstance(error, ClassifiedError):
            self.metrics.observe_failed(error.kind)

    def _on_handle_done(self, item: QueueItem, future: "asyncio.Future[Any]") -> None:
        if not future.cancelled():
            return

        try:
            self._queue.remove(item)
        except ValueError:
            # Already dispatched or backing off
            pass
        if self.metrics is not None:
            self.metrics.observe_cancelled()
        logger.debug(f"Request {item.request_id} cancelled by submitter")


def create_scheduler(
    credentials: "CredentialProvider | None" = None,
    config: QueueConfig | None = None,
    backoff: BackoffPolicy | None = None,
    metrics: SchedulerMetrics | None = None,
    **overrides: Any,
) -> RequestScheduler:
    """
    Factory function to create a RequestScheduler.

    Args:
        credentials: Optional credential lifecycle collaborator
        config: Optional base config (a default config is created if omitted)
        backoff: Optional backoff policy
        metrics: Optional metrics sink
        **overrides: QueueConfig fields overriding the base config

    Returns:
        Configured RequestScheduler instance

    Raises:
        ConfigurationError: If the resulting configuration is invalid
        TypeError: If an override does not name a QueueConfig field
    """
    if config is None:
        config = QueueConfig(**overrides)
    elif overrides:
        config = dataclasses.replace(config, **overrides)

    return RequestScheduler(
        config=config,
        credentials=credentials,
        backoff=backoff,
        metrics=metrics,
    )


__all__ = ["RequestScheduler", "create_scheduler"]
