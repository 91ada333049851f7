"""
Benchmark: Scheduler Overhead

Measures the overhead introduced by the request scheduler when processing
requests. This benchmark isolates the scheduling machinery from actual API
call latency.

Usage:
    uv run pytest benchmarks/test_bench_scheduler_overhead.py -v --no-cov
"""

import asyncio
import time

import pytest

from paced_request_queue.exceptions import ApiError
from paced_request_queue.scheduler.scheduler import RequestScheduler


class TestSchedulerOverhead:
    """Benchmark scheduler overhead for sequential and burst submission."""

    @pytest.mark.asyncio
    async def test_single_request_overhead(
        self, benchmark_config, benchmark_credentials
    ):
        """
        Measure overhead of a single request through the scheduler.

        The request returns instantly, so any measured time is pure overhead.
        """
        async with RequestScheduler(
            benchmark_config, credentials=benchmark_credentials
        ) as scheduler:

            async def instant_request():
                return {"result": "instant"}

            # Warmup
            for _ in range(10):
                await scheduler.execute(instant_request)

            # Benchmark
            iterations = 100
            start = time.perf_counter()
            for _ in range(iterations):
                await scheduler.execute(instant_request)
            elapsed = time.perf_counter() - start

            avg_ms = (elapsed / iterations) * 1000
            ops_per_sec = iterations / elapsed

            print("\n--- Single Request Overhead ---")
            print(f"Iterations: {iterations}")
            print(f"Total time: {elapsed:.4f}s")
            print(f"Average latency: {avg_ms:.3f}ms per request")
            print(f"Throughput: {ops_per_sec:.1f} ops/sec")

            # Assert reasonable overhead (should be < 10ms per request)
            assert avg_ms < 10, f"Overhead too high: {avg_ms:.3f}ms"

    @pytest.mark.asyncio
    async def test_burst_overhead(self, benchmark_config, benchmark_credentials):
        """
        Measure overhead when submitting a burst of concurrent requests.

        Tests how the scheduler handles many simultaneous submissions.
        """
        async with RequestScheduler(
            benchmark_config, credentials=benchmark_credentials
        ) as scheduler:

            def make_request(i: int):
                async def instant_request():
                    return {"result": f"burst-{i}"}

                return instant_request

            # Warmup
            await asyncio.gather(
                *[scheduler.execute(make_request(i)) for i in range(10)]
            )

            # Benchmark burst of 500 concurrent requests
            burst_size = 500
            start = time.perf_counter()
            results = await asyncio.gather(
                *[scheduler.execute(make_request(i)) for i in range(burst_size)]
            )
            elapsed = time.perf_counter() - start

            avg_ms = (elapsed / burst_size) * 1000
            ops_per_sec = burst_size / elapsed

            print(f"\n--- Burst Overhead ({burst_size} concurrent) ---")
            print(f"Total time: {elapsed:.4f}s")
            print(f"Average latency: {avg_ms:.3f}ms per request")
            print(f"Throughput: {ops_per_sec:.1f} ops/sec")

            # All requests should complete in submission order
            assert results == [{"result": f"burst-{i}"} for i in range(burst_size)]
            # Burst should complete in reasonable time
            assert elapsed < 5.0, f"Burst took too long: {elapsed:.2f}s"

    @pytest.mark.asyncio
    async def test_retry_cycle_overhead(self, benchmark_config, benchmark_credentials):
        """
        Measure the cost of a fail, classify, back off and re-enqueue cycle.

        Backoff delays are zero, so the time is spent in the retry machinery.
        """
        async with RequestScheduler(
            benchmark_config, credentials=benchmark_credentials
        ) as scheduler:
            iterations = 100

            def make_flaky():
                failed = False

                async def flaky_request():
                    nonlocal failed
                    if not failed:
                        failed = True
                        raise ApiError("Service unavailable", status_code=503)
                    return "ok"

                return flaky_request

            start = time.perf_counter()
            for _ in range(iterations):
                await scheduler.execute(make_flaky())
            elapsed = time.perf_counter() - start

            avg_ms = (elapsed / iterations) * 1000
            retried = scheduler.get_metrics()["requests_retried"]

            print("\n--- Retry Cycle Overhead ---")
            print(f"Iterations: {iterations}")
            print(f"Average latency: {avg_ms:.3f}ms per retried request")

            assert retried == iterations
            assert avg_ms < 20, f"Retry overhead too high: {avg_ms:.3f}ms"
