# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Error classification types.

Every failed execution attempt is reduced to one of the kinds below before
the scheduler decides between retrying and resolving the request terminally.
"""

from enum import Enum


class ErrorKind(Enum):
    """Classification of a failed request attempt.

    - NETWORK: Connection refused, timeout, DNS failure. Retryable.
    - RATE_LIMIT: HTTP 429. Retryable, may carry a server retry-after hint.
    - SERVER_ERROR: HTTP 5xx. Retryable.
    - AUTH_REQUIRED: HTTP 401/403 while a credential refresh path exists.
      Resolved by the execution guard, terminal if it reaches the scheduler.
    - TOKEN_INVALID: The credential is unusable and cannot be refreshed.
      Terminal, triggers sign-out.
    - OTHER: Anything else. Terminal.
    """

    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    AUTH_REQUIRED = "auth_required"
    TOKEN_INVALID = "token_invalid"
    OTHER = "other"

    @property
    def retryable(self) -> bool:
        """Whether the scheduler may re-enqueue a request failing this way."""
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset(
    {ErrorKind.NETWORK, ErrorKind.RATE_LIMIT, ErrorKind.SERVER_ERROR}
)


__all__ = ["RETRYABLE_KINDS", "ErrorKind"]
