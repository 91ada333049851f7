"""
Unit tests for RequestScheduler lifecycle and cancellation.

Covers closing with queued, backing-off and in-flight requests, handle
cancellation at each stage, and submission from other threads.
"""

import asyncio

import pytest

from paced_request_queue.exceptions import (
    ApiError,
    RequestQueueError,
    SchedulerClosedError,
)
from paced_request_queue.scheduler.scheduler import RequestScheduler


class TestClose:
    """Tests for RequestScheduler.close()."""

    @pytest.mark.asyncio
    async def test_submit_after_close_raises(self, make_scheduler):
        scheduler = make_scheduler()
        await scheduler.close()

        async def operation():
            return "ok"

        assert scheduler.is_closed
        with pytest.raises(SchedulerClosedError):
            scheduler.submit(operation)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, make_scheduler):
        scheduler = make_scheduler()
        await scheduler.close()
        await scheduler.close()
        assert scheduler.is_closed

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, make_scheduler):
        async with make_scheduler() as scheduler:
            assert not scheduler.is_closed
        assert scheduler.is_closed

    @pytest.mark.asyncio
    async def test_close_rejects_queued_and_in_flight_requests(self, make_scheduler):
        scheduler = make_scheduler(max_concurrent=1)
        started = asyncio.Event()

        async def blocking():
            started.set()
            await asyncio.sleep(10)

        async def queued():
            return "never"

        in_flight = scheduler.submit(blocking)
        pending = scheduler.submit(queued)
        await started.wait()

        await scheduler.close()

        with pytest.raises(SchedulerClosedError):
            await in_flight
        with pytest.raises(SchedulerClosedError):
            await pending
        assert scheduler.active_count == 0
        assert scheduler.queue_size == 0

    @pytest.mark.asyncio
    async def test_close_rejects_requests_in_backoff(self, make_scheduler):
        scheduler = make_scheduler(base_delay=5.0, max_delay=5.0)
        attempted = asyncio.Event()

        async def failing():
            attempted.set()
            raise ApiError("Server error", status_code=500)

        handle = scheduler.submit(failing)
        await attempted.wait()
        # Let the attempt settle into its backoff wait
        await asyncio.sleep(0.01)
        assert scheduler.get_metrics()["backing_off"] == 1

        await scheduler.close()

        with pytest.raises(SchedulerClosedError):
            await handle


class TestCancellation:
    """Tests for cancelling request handles."""

    @pytest.mark.asyncio
    async def test_cancel_before_dispatch_removes_item(self, make_scheduler):
        async with make_scheduler(max_concurrent=1) as scheduler:
            release = asyncio.Event()
            second_called = False

            async def blocking():
                await release.wait()
                return "first"

            async def second():
                nonlocal second_called
                second_called = True

            first_handle = scheduler.submit(blocking)
            second_handle = scheduler.submit(second)
            second_handle.cancel()
            await asyncio.sleep(0)

            assert scheduler.queue_size == 0
            release.set()
            assert await first_handle == "first"
            await asyncio.sleep(0.01)

            assert second_called is False
            assert second_handle.cancelled()
            assert scheduler.get_metrics()["requests_cancelled"] == 1

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_drops_retry(self, make_scheduler):
        async with make_scheduler(base_delay=0.05, max_delay=0.05) as scheduler:
            calls = 0

            async def failing():
                nonlocal calls
                calls += 1
                raise ApiError("Server error", status_code=503)

            handle = scheduler.submit(failing)
            await asyncio.sleep(0.01)
            assert calls == 1

            handle.cancel()
            await asyncio.sleep(0.1)

            assert calls == 1
            assert scheduler.queue_size == 0

    @pytest.mark.asyncio
    async def test_cancel_during_dispatch_lets_operation_finish(self, make_scheduler):
        async with make_scheduler() as scheduler:
            started = asyncio.Event()
            release = asyncio.Event()
            finished = asyncio.Event()

            async def operation():
                started.set()
                await release.wait()
                finished.set()
                return "late"

            handle = scheduler.submit(operation)
            await started.wait()
            handle.cancel()
            release.set()

            await asyncio.wait_for(finished.wait(), timeout=1.0)
            await asyncio.sleep(0)
            assert handle.cancelled()
            assert scheduler.active_count == 0
            assert scheduler.get_metrics()["requests_completed"] == 0

    @pytest.mark.asyncio
    async def test_operation_raising_cancelled_error_cancels_handle(
        self, make_scheduler
    ):
        async with make_scheduler() as scheduler:

            async def cancelled_inside():
                raise asyncio.CancelledError()

            async def follow_up():
                return "still running"

            handle = scheduler.submit(cancelled_inside)
            await asyncio.wait([handle], timeout=1.0)

            assert handle.cancelled()
            assert not scheduler.is_closed
            assert scheduler.active_count == 0
            assert await scheduler.execute(follow_up) == "still running"


class TestThreadsafeSubmit:
    """Tests for RequestScheduler.submit_threadsafe()."""

    @pytest.mark.asyncio
    async def test_submit_from_another_thread(self, make_scheduler):
        async with make_scheduler() as scheduler:

            async def operation():
                return "from thread"

            def worker():
                return scheduler.submit_threadsafe(operation).result(timeout=5)

            assert await asyncio.to_thread(worker) == "from thread"

    def test_submit_threadsafe_requires_bound_loop(self):
        scheduler = RequestScheduler()

        async def operation():
            return None

        with pytest.raises(RequestQueueError, match="not bound"):
            scheduler.submit_threadsafe(operation)

    @pytest.mark.asyncio
    async def test_submit_threadsafe_after_close_raises(self, make_scheduler):
        scheduler = make_scheduler()
        await scheduler.start()
        await scheduler.close()

        async def operation():
            return None

        with pytest.raises(SchedulerClosedError):
            scheduler.submit_threadsafe(operation)
