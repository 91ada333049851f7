# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the paced request queue library.

This module defines two families of exceptions:

- Library errors, all inheriting from RequestQueueError, raised by the
  scheduler itself or delivered to submitters as terminal failures.
- API errors, inheriting from ApiError, which request operations raise to
  describe how the remote HTTP API failed. The error taxonomy turns these
  into a ClassifiedError.
"""

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from .types.errors import ErrorKind

logger = logging.getLogger(__name__)


class RequestQueueError(Exception):
    """Base exception for all request queue errors.

    Catch this exception to handle any error originating from the library,
    including terminal request failures.

    Example:
        try:
            await scheduler.execute(fetch_profile)
        except RequestQueueError as e:
            logger.error(f"Request queue error: {e}")
    """

    pass


class ConfigurationError(RequestQueueError, ValueError):
    """Raised when configuration is invalid.

    Common causes include:
    - Non-positive request rate or concurrency limit
    - Jitter fraction outside [0, 1)
    - Base delay larger than the maximum delay
    """

    pass


class QueueOverflowError(RequestQueueError):
    """Raised when the pending queue is full and cannot admit more requests.

    Attributes:
        queue_size: Number of pending items at the time of rejection.

    Example:
        try:
            handle = scheduler.submit(fetch_profile)
        except QueueOverflowError:
            # Shed load instead of growing the backlog
            return cached_profile
    """

    def __init__(self, message: str, queue_size: int | None = None):
        super().__init__(message)
        self.queue_size = queue_size


class SchedulerClosedError(RequestQueueError):
    """Raised on submit after close, and delivered to handles still pending
    when the scheduler is closed."""

    pass


class ClassifiedError(RequestQueueError):
    """A failed request attempt reduced to an ErrorKind.

    This is the terminal error delivered to submitters. Callers distinguish
    exhausted retries, non-retryable failures and invalid credentials by
    the kind. The raw failure, when there is one, is chained as __cause__.

    Attributes:
        kind: The classification of the failure.
        retry_after: Server-suggested delay in seconds before retrying.
            0.0 means no directive; the computed backoff applies.
        status_code: HTTP-like status code of the raw failure, if any.
        attempts: Number of scheduler attempts made before the error became
            terminal. Set by the scheduler, None before that.

    Example:
        try:
            await scheduler.execute(fetch_profile)
        except ClassifiedError as e:
            if e.kind is ErrorKind.TOKEN_INVALID:
                redirect_to_login()
            elif e.retryable:
                logger.warning(f"Gave up after {e.attempts} attempts: {e}")
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retry_after: float = 0.0,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.retry_after = retry_after
        self.status_code = status_code
        self.attempts: int | None = None

    @property
    def retryable(self) -> bool:
        """Whether this kind of failure is retried by the scheduler."""
        return self.kind.retryable

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(kind={self.kind.value!r}, "
            f"message={str(self)!r}, status_code={self.status_code!r}, "
            f"retry_after={self.retry_after!r})"
        )


# =============================================================================
# API errors raised by request operations
# =============================================================================


class ApiError(Exception):
    """Raised by request operations when the remote API call fails.

    Attributes:
        status_code: HTTP status code of the failed response, if any.
        code: Provider-specific error code or reason, if any.
        should_refresh_token: Explicit signal that the credential must be
            refreshed before the request can succeed.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        should_refresh_token: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.should_refresh_token = should_refresh_token

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403) or self.should_refresh_token

    @property
    def is_rate_limit_error(self) -> bool:
        return self.status_code == 429

    @classmethod
    def from_response(
        cls,
        status_code: int,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> "ApiError":
        """
        Build an error from a failed HTTP response.

        The message and code are taken from a JSON error body when one is
        available. Supported shapes are ``{"error": {"message", "reason"}}``
        and the OAuth style ``{"error": ..., "error_description": ...}``.
        Without a usable body the message is derived from the status code.

        Args:
            status_code: HTTP status code of the response
            headers: Response headers (used for Retry-After on 429)
            body: Decoded JSON body, if any

        Returns:
            RetryableApiError for 429 responses, ApiError otherwise
        """
        message, code = _message_from_body(body)
        should_refresh_token = status_code in (401, 403)

        if message is None:
            if should_refresh_token:
                message = "Authentication failed"
            elif status_code == 429:
                message = "Rate limit exceeded"
            elif status_code >= 500:
                message = "Server error"
            else:
                message = f"API error: {status_code}"

        if status_code == 429:
            retry_after = parse_retry_after(header_value(headers, "retry-after"))
            return RetryableApiError(
                message, status_code, code, retry_after=retry_after
            )

        return cls(message, status_code, code, should_refresh_token)


class RetryableApiError(ApiError):
    """An API error carrying a server retry directive.

    Attributes:
        retry_after: Seconds the server asked the client to wait, 0.0 if
            the server gave no directive.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        should_refresh_token: bool = False,
        retry_after: float = 0.0,
    ):
        super().__init__(message, status_code, code, should_refresh_token)
        self.retry_after = retry_after


class TokenError(ApiError):
    """Raised by credential handling when the access token is unusable.

    Attributes:
        invalid_token: True when the token is invalid and cannot be
            refreshed. Such a failure is terminal and signs the user out.
    """

    def __init__(self, message: str, invalid_token: bool = False):
        super().__init__(message, None, "TOKEN_ERROR", True)
        self.invalid_token = invalid_token


class NetworkError(ApiError):
    """Raised when the request never produced an HTTP response."""

    def __init__(self, message: str):
        super().__init__(message, None, "NETWORK_ERROR")


def parse_retry_after(value: Any) -> float:
    """
    Parse a Retry-After value into seconds.

    Accepts delta-seconds (``"120"``, ``2.5``) and HTTP dates. Missing,
    negative, non-finite or unparsable values yield 0.0, which means
    "no directive".
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _delay_seconds(float(value))

    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return _delay_seconds(float(text))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparsable Retry-After value: {text!r}")
        return 0.0
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


def header_value(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _delay_seconds(seconds: float) -> float:
    if not math.isfinite(seconds):
        logger.debug(f"Ignoring non-finite Retry-After value: {seconds!r}")
        return 0.0
    return max(0.0, seconds)


def _message_from_body(body: Any) -> tuple[str | None, str | None]:
    if not isinstance(body, Mapping):
        return None, None

    error = body.get("error")
    if isinstance(error, Mapping):
        message = error.get("message")
        code = error.get("reason")
    else:
        message = body.get("error_description") or error
        code = error

    return (
        str(message) if message else None,
        str(code) if code else None,
    )


__all__ = [
    "ApiError",
    "ClassifiedError",
    "ConfigurationError",
    "NetworkError",
    "QueueOverflowError",
    "RequestQueueError",
    "RetryableApiError",
    "SchedulerClosedError",
    "TokenError",
    "header_value",
    "parse_retry_after",
]
