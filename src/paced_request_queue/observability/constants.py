# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `request_queue_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Gauges use present-tense descriptive names

Label Best Practices:
    The only label is `kind`, the ErrorKind value of a failure. Never label
    by request id or operation; both are unbounded.
"""

METRIC_PREFIX = "request_queue"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Counters
# =============================================================================

REQUESTS_SUBMITTED_TOTAL = f"{METRIC_PREFIX}_requests_submitted_total"
"""Requests admitted into the pending queue."""

REQUESTS_DISPATCHED_TOTAL = f"{METRIC_PREFIX}_requests_dispatched_total"
"""Dispatch starts, including retries."""

REQUESTS_COMPLETED_TOTAL = f"{METRIC_PREFIX}_requests_completed_total"
"""Requests resolved successfully."""

REQUESTS_FAILED_TOTAL = f"{METRIC_PREFIX}_requests_failed_total"
"""Requests resolved with a terminal failure, labelled by kind."""

REQUESTS_RETRIED_TOTAL = f"{METRIC_PREFIX}_requests_retried_total"
"""Re-enqueues after a retryable failure, labelled by kind."""

REQUESTS_CANCELLED_TOTAL = f"{METRIC_PREFIX}_requests_cancelled_total"
"""Requests whose handle was cancelled by the submitter."""

AUTH_REFRESHES_TOTAL = f"{METRIC_PREFIX}_auth_refreshes_total"
"""Credential refreshes triggered by an authentication failure."""

SIGN_OUTS_TOTAL = f"{METRIC_PREFIX}_sign_outs_total"
"""Sign-outs triggered by an invalid credential."""

QUEUE_OVERFLOWS_TOTAL = f"{METRIC_PREFIX}_queue_overflows_total"
"""Submissions rejected because the pending queue was full."""


# =============================================================================
# Gauges
# =============================================================================

QUEUE_DEPTH = f"{METRIC_PREFIX}_queue_depth"
"""Requests currently waiting in the pending queue."""

ACTIVE_REQUESTS = f"{METRIC_PREFIX}_active_requests"
"""Requests currently in flight."""


__all__ = [
    "ACTIVE_REQUESTS",
    "AUTH_REFRESHES_TOTAL",
    "METRIC_PREFIX",
    "QUEUE_DEPTH",
    "QUEUE_OVERFLOWS_TOTAL",
    "REQUESTS_CANCELLED_TOTAL",
    "REQUESTS_COMPLETED_TOTAL",
    "REQUESTS_DISPATCHED_TOTAL",
    "REQUESTS_FAILED_TOTAL",
    "REQUESTS_RETRIED_TOTAL",
    "REQUESTS_SUBMITTED_TOTAL",
    "SIGN_OUTS_TOTAL",
]
