# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Prometheus metrics for the request scheduler.

Each SchedulerMetrics owns its own CollectorRegistry, so any number of
schedulers (one per test case, one per API) can coexist in a process
without duplicate registration errors. Expose a registry by passing it to
``prometheus_client.start_http_server(port, registry=metrics.registry)`` or
to ``generate_latest``.

Usage:
    >>> metrics = SchedulerMetrics()
    >>> metrics.observe_submitted(queue_depth=1)
    >>> metrics.snapshot()["requests_submitted"]
    1
"""

import logging
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge

from ..types.errors import ErrorKind
from .constants import (
    ACTIVE_REQUESTS,
    AUTH_REFRESHES_TOTAL,
    QUEUE_DEPTH,
    QUEUE_OVERFLOWS_TOTAL,
    REQUESTS_CANCELLED_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_DISPATCHED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_RETRIED_TOTAL,
    REQUESTS_SUBMITTED_TOTAL,
    SIGN_OUTS_TOTAL,
)

logger = logging.getLogger(__name__)


class SchedulerMetrics:
    """
    Counters and gauges describing scheduler activity.

    Metrics:
        - request_queue_requests_submitted_total
        - request_queue_requests_dispatched_total
        - request_queue_requests_completed_total
        - request_queue_requests_failed_total{kind}
        - request_queue_requests_retried_total{kind}
        - request_queue_requests_cancelled_total
        - request_queue_auth_refreshes_total
        - request_queue_sign_outs_total
        - request_queue_queue_overflows_total
        - request_queue_queue_depth
        - request_queue_active_requests
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize scheduler metrics.

        Args:
            registry: Registry to register metrics with. A fresh private
                registry is created when omitted.
        """
        self.registry = registry if registry is not None else CollectorRegistry()

        self.requests_submitted = Counter(
            REQUESTS_SUBMITTED_TOTAL,
            "Requests admitted into the pending queue",
            registry=self.registry,
        )
        self.requests_dispatched = Counter(
            REQUESTS_DISPATCHED_TOTAL,
            "Dispatch starts including retries",
            registry=self.registry,
        )
        self.requests_completed = Counter(
            REQUESTS_COMPLETED_TOTAL,
            "Requests resolved successfully",
            registry=self.registry,
        )
        self.requests_failed = Counter(
            REQUESTS_FAILED_TOTAL,
            "Requests resolved with a terminal failure",
            ["kind"],
            registry=self.registry,
        )
        self.requests_retried = Counter(
            REQUESTS_RETRIED_TOTAL,
            "Re-enqueues after a retryable failure",
            ["kind"],
            registry=self.registry,
        )
        self.requests_cancelled = Counter(
            REQUESTS_CANCELLED_TOTAL,
            "Requests cancelled by the submitter",
            registry=self.registry,
        )
        self.auth_refreshes = Counter(
            AUTH_REFRESHES_TOTAL,
            "Credential refreshes triggered by authentication failures",
            registry=self.registry,
        )
        self.sign_outs = Counter(
            SIGN_OUTS_TOTAL,
            "Sign-outs triggered by invalid credentials",
            registry=self.registry,
        )
        self.queue_overflows = Counter(
            QUEUE_OVERFLOWS_TOTAL,
            "Submissions rejected because the queue was full",
            registry=self.registry,
        )
        self.queue_depth = Gauge(
            QUEUE_DEPTH,
            "Requests waiting in the pending queue",
            registry=self.registry,
        )
        self.active_requests = Gauge(
            ACTIVE_REQUESTS,
            "Requests currently in flight",
            registry=self.registry,
        )

    def observe_submitted(self, queue_depth: int) -> None:
        self.requests_submitted.inc()
        self.queue_depth.set(queue_depth)

    def observe_dispatched(self, queue_depth: int, active: int) -> None:
        self.requests_dispatched.inc()
        self.queue_depth.set(queue_depth)
        self.active_requests.set(active)

    def observe_settled(self, active: int) -> None:
        self.active_requests.set(active)

    def observe_completed(self) -> None:
        self.requests_completed.inc()

    def observe_failed(self, kind: ErrorKind) -> None:
        self.requests_failed.labels(kind=kind.value).inc()

    def observe_retried(self, kind: ErrorKind, queue_depth: int) -> None:
        self.requests_retried.labels(kind=kind.value).inc()
        self.queue_depth.set(queue_depth)

    def observe_cancelled(self) -> None:
        self.requests_cancelled.inc()

    def observe_auth_refresh(self) -> None:
        self.auth_refreshes.inc()

    def observe_sign_out(self) -> None:
        self.sign_outs.inc()

    def observe_overflow(self) -> None:
        self.queue_overflows.inc()

    def _value(self, name: str, labels: dict[str, str] | None = None) -> float:
        value = self.registry.get_sample_value(name, labels)
        return value if value is not None else 0.0

    def _by_kind(self, name: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for kind in ErrorKind:
            value = self._value(name, {"kind": kind.value})
            if value:
                counts[kind.value] = int(value)
        return counts

    def snapshot(self) -> dict[str, Any]:
        """
        Get a flat snapshot of all metrics.

        Returns:
            Dictionary suitable for JSON serialization
        """
        failed_by_kind = self._by_kind(REQUESTS_FAILED_TOTAL)
        retried_by_kind = self._by_kind(REQUESTS_RETRIED_TOTAL)
        return {
            "requests_submitted": int(self._value(REQUESTS_SUBMITTED_TOTAL)),
            "requests_dispatched": int(self._value(REQUESTS_DISPATCHED_TOTAL)),
            "requests_completed": int(self._value(REQUESTS_COMPLETED_TOTAL)),
            "requests_failed": sum(failed_by_kind.values()),
            "requests_failed_by_kind": failed_by_kind,
            "requests_retried": sum(retried_by_kind.values()),
            "requests_retried_by_kind": retried_by_kind,
            "requests_cancelled": int(self._value(REQUESTS_CANCELLED_TOTAL)),
            "auth_refreshes": int(self._value(AUTH_REFRESHES_TOTAL)),
            "sign_outs": int(self._value(SIGN_OUTS_TOTAL)),
            "queue_overflows": int(self._value(QUEUE_OVERFLOWS_TOTAL)),
            "queue_depth": int(self._value(QUEUE_DEPTH)),
            "active_requests": int(self._value(ACTIVE_REQUESTS)),
        }


__all__ = ["SchedulerMetrics"]
