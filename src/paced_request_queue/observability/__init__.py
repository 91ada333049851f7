# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability for the paced request queue.

Classes:
    SchedulerMetrics: Prometheus counters and gauges for one scheduler,
        registered in a private CollectorRegistry.

Modules:
    constants: Metric name constants.
"""

from .constants import METRIC_PREFIX
from .metrics import SchedulerMetrics

__all__ = [
    "METRIC_PREFIX",
    "SchedulerMetrics",
]
