# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Error taxonomy for failed request attempts.

Turns whatever a request operation raised into a ClassifiedError. The
classification is pure: it inspects the failure and never calls out.

Recognized failures:
    - ClassifiedError: returned unchanged
    - TokenError: TOKEN_INVALID when the token cannot be refreshed,
      otherwise treated as an authentication failure
    - NetworkError, ConnectionError, TimeoutError, DNS failures, OSErrors
      carrying an unreachable-network errno and the transport errors of
      common HTTP clients: NETWORK
    - Anything exposing an HTTP-like status (``status_code``, ``status`` or
      ``response.status_code``): 401/403 -> AUTH_REQUIRED (or TOKEN_INVALID
      without a refresh path), 429 -> RATE_LIMIT, 5xx -> SERVER_ERROR
    - Everything else: OTHER
"""

import asyncio
import errno
import logging
import socket
from typing import Any

from .exceptions import (
    ClassifiedError,
    NetworkError,
    TokenError,
    header_value,
    parse_retry_after,
)
from .types.errors import ErrorKind

logger = logging.getLogger(__name__)

# Transport error class names raised by httpx, aiohttp and requests. Matched
# by name so the taxonomy works without importing any HTTP client.
NETWORK_ERROR_NAMES = frozenset(
    {
        "ConnectionError",
        "TransportError",
        "TimeoutException",
        "ConnectError",
        "ConnectTimeout",
        "ReadTimeout",
        "ClientConnectionError",
        "ClientConnectorError",
        "ServerDisconnectedError",
        "ServerTimeoutError",
    }
)

# OSError errnos meaning the network or the peer could not be reached
NETWORK_ERRNOS = frozenset(
    {
        errno.ENETDOWN,
        errno.ENETUNREACH,
        errno.ENETRESET,
        errno.EHOSTUNREACH,
        errno.ECONNABORTED,
        errno.ECONNRESET,
        errno.ECONNREFUSED,
        errno.ETIMEDOUT,
    }
)

AUTH_STATUS_CODES = frozenset({401, 403})


def classify_error(error: BaseException, can_refresh: bool = True) -> ClassifiedError:
    """
    Classify a failed request attempt.

    Args:
        error: The exception raised by the operation or a collaborator
        can_refresh: Whether a credential refresh path exists. Without one,
            authentication failures are terminal TOKEN_INVALID failures.

    Returns:
        ClassifiedError with the original failure chained as __cause__
    """
    if isinstance(error, ClassifiedError):
        return error

    if isinstance(error, TokenError):
        if error.invalid_token or not can_refresh:
            return _classified(ErrorKind.TOKEN_INVALID, error)
        return _classified(ErrorKind.AUTH_REQUIRED, error)

    if is_network_fault(error):
        return _classified(ErrorKind.NETWORK, error)

    status_code = extract_status_code(error)

    if status_code in AUTH_STATUS_CODES or getattr(
        error, "should_refresh_token", False
    ) is True:
        kind = ErrorKind.AUTH_REQUIRED if can_refresh else ErrorKind.TOKEN_INVALID
        return _classified(kind, error, status_code=status_code)

    if status_code == 429:
        return _classified(
            ErrorKind.RATE_LIMIT,
            error,
            status_code=status_code,
            retry_after=extract_retry_after(error),
        )

    if status_code is not None and 500 <= status_code < 600:
        return _classified(ErrorKind.SERVER_ERROR, error, status_code=status_code)

    return _classified(ErrorKind.OTHER, error, status_code=status_code)


def is_retryable(kind: ErrorKind) -> bool:
    """Whether the scheduler retries failures of this kind."""
    return kind.retryable


def is_network_fault(error: BaseException) -> bool:
    """
    Check whether an exception means no HTTP response was received.

    Args:
        error: The exception to check

    Returns:
        True for connection refusals, timeouts, DNS failures and
        unreachable networks or hosts
    """
    if isinstance(
        error,
        (
            NetworkError,
            ConnectionError,
            TimeoutError,
            asyncio.TimeoutError,
            socket.gaierror,
        ),
    ):
        return True

    if isinstance(error, OSError) and error.errno in NETWORK_ERRNOS:
        return True

    return any(cls.__name__ in NETWORK_ERROR_NAMES for cls in type(error).__mro__)


def extract_status_code(error: BaseException) -> int | None:
    """
    Extract an HTTP-like status code from an exception.

    Checks ``status_code`` (ApiError, httpx responses), ``status`` (aiohttp)
    and ``response.status_code`` (httpx.HTTPStatusError, requests).
    """
    for candidate in (
        getattr(error, "status_code", None),
        getattr(error, "status", None),
        getattr(getattr(error, "response", None), "status_code", None),
    ):
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate
    return None


def extract_retry_after(error: BaseException) -> float:
    """
    Extract the server retry directive from a rate limit failure.

    Prefers an explicit ``retry_after``/``retry_after_seconds`` attribute,
    then a Retry-After header on the error or its response.

    Returns:
        Seconds to wait, or 0.0 when the server gave no directive
    """
    for attr in ("retry_after", "retry_after_seconds"):
        value = getattr(error, attr, None)
        if value is not None:
            return parse_retry_after(value)

    for headers in (
        getattr(error, "headers", None),
        getattr(getattr(error, "response", None), "headers", None),
    ):
        if headers is None:
            continue
        try:
            value = header_value(dict(headers), "retry-after")
        except (TypeError, ValueError):
            logger.debug(f"Could not read headers of type {type(headers)}")
            continue
        if value is not None:
            return parse_retry_after(value)

    return 0.0


def _classified(
    kind: ErrorKind,
    error: BaseException,
    status_code: int | None = None,
    retry_after: float = 0.0,
) -> ClassifiedError:
    message = str(error) or type(error).__name__
    classified = ClassifiedError(
        kind, message, retry_after=retry_after, status_code=status_code
    )
    classified.__cause__ = error
    return classified


__all__ = [
    "classify_error",
    "extract_retry_after",
    "extract_status_code",
    "is_network_fault",
    "is_retryable",
]
