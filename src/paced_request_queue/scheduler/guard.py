# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Execution guard wrapping a single request attempt with credential handling.

The guard validates the credential before running an operation and, when
the operation fails with an authentication error, refreshes the credential
and runs the operation exactly once more. Everything else is left to the
scheduler's retry policy.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ..exceptions import ClassifiedError
from ..taxonomy import classify_error
from ..types.errors import ErrorKind

if TYPE_CHECKING:
    from ..observability.metrics import SchedulerMetrics
    from ..protocols.credentials import CredentialProvider

logger = logging.getLogger(__name__)


class ExecutionGuard:
    """
    Runs one request attempt under credential control.

    Steps:
        1. ``ensure_valid_token()``; an unrecoverable credential fails the
           attempt with TOKEN_INVALID without running the operation.
        2. Run the operation.
        3. On AUTH_REQUIRED: ``refresh_token()`` once, then run the operation
           one more time. A second failure is classified and raised as is.
        4. Any other failure is classified and raised.

    At most one extra invocation of the operation is caused by a refresh per
    call to ``run``, independent of the scheduler's retry budget.

    Without a credential provider there is no pre-flight check and no
    refresh path, so authentication failures classify as TOKEN_INVALID.
    """

    def __init__(
        self,
        credentials: "CredentialProvider | None" = None,
        metrics: "SchedulerMetrics | None" = None,
    ) -> None:
        self.credentials = credentials
        self.metrics = metrics

    @property
    def can_refresh(self) -> bool:
        return self.credentials is not None

    async def run(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """
        Execute an operation with credential validation and auth refresh.

        Args:
            operation: Async callable performing the request

        Returns:
            The operation's result

        Raises:
            ClassifiedError: If the attempt failed
        """
        await self._ensure_valid_token()

        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_error(e, can_refresh=self.can_refresh)

        if error.kind is not ErrorKind.AUTH_REQUIRED:
            raise error

        logger.warning(f"Authentication failed ({error}), refreshing credential")
        await self._refresh_token()

        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_error(e, can_refresh=self.can_refresh)

        logger.debug(f"Operation failed again after credential refresh: {error!r}")
        raise error

    async def _ensure_valid_token(self) -> None:
        if self.credentials is None:
            return

        try:
            valid = await self.credentials.ensure_valid_token()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The provider already tried to refresh, so auth failures are final
            error = classify_error(e, can_refresh=False)
        else:
            if valid is False:
                raise ClassifiedError(
                    ErrorKind.TOKEN_INVALID,
                    "Credential is invalid and could not be refreshed",
                )
            return

        logger.warning(f"Credential validation failed: {error!r}")
        raise error

    async def _refresh_token(self) -> None:
        if self.credentials is None:
            return

        if self.metrics is not None:
            self.metrics.observe_auth_refresh()

        try:
            refreshed = await self.credentials.refresh_token()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = classify_error(e, can_refresh=False)
        else:
            if refreshed is False:
                raise ClassifiedError(
                    ErrorKind.TOKEN_INVALID, "Credential refresh was rejected"
                )
            return

        logger.warning(f"Credential refresh failed: {error!r}")
        raise error


__all__ = ["ExecutionGuard"]
