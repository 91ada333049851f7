# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Core types for the paced request queue.

This module exports the data structures shared by the scheduler, the
execution guard and the error taxonomy.
"""

from .errors import RETRYABLE_KINDS, ErrorKind
from .queue import QueueItem

__all__ = [
    "RETRYABLE_KINDS",
    "ErrorKind",
    "QueueItem",
]
