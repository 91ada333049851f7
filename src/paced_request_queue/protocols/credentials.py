# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for credential lifecycle integration."""

from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CredentialProvider(Protocol):
    """
    Protocol for the credential lifecycle the scheduler coordinates with.

    The scheduler never inspects tokens itself. It only needs to know
    whether a usable credential exists, how to obtain a new one, and how
    to clear the session once the credential is beyond repair.

    ``ensure_valid_token`` and ``refresh_token`` report an unrecoverable
    credential by raising ``TokenError(invalid_token=True)`` or by
    returning ``False``. Any other return value means success.
    """

    async def ensure_valid_token(self) -> Any:
        """Wait until the current credential is usable, refreshing if needed."""
        ...

    async def refresh_token(self) -> Any:
        """Obtain a new credential."""
        ...

    def sign_out(self) -> Awaitable[None] | None:
        """Clear session state. May be a coroutine function."""
        ...
