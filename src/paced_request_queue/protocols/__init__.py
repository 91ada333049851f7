# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for request queue collaborators.

Available protocols:
- CredentialProvider: Interface for the credential lifecycle (validation,
  refresh, sign-out) consulted around every request execution

Supporting types:
- Operation: An async callable performing one request against the API
"""

from collections.abc import Awaitable, Callable
from typing import Any

from .credentials import CredentialProvider

Operation = Callable[[], Awaitable[Any]]

__all__ = [
    "CredentialProvider",
    "Operation",
]
