# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Backoff policy for retrying failed requests.

Delays grow exponentially with the attempt count, are capped, and are
jittered uniformly by a fraction of their size so that retries from many
requests do not line up. A server retry directive always wins over the
computed delay.
"""

import logging
import math
import random

from .exceptions import ClassifiedError

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0
DEFAULT_JITTER_FRACTION = 0.1


class BackoffPolicy:
    """
    Capped exponential backoff with symmetric jitter.

    ``compute_delay(n)`` draws uniformly from
    ``[d - jitter_fraction * d, d + jitter_fraction * d]`` where
    ``d = min(max_delay, base_delay * 2**n)``.

    Attributes:
        base_delay: Delay in seconds for attempt 0
        max_delay: Cap on the un-jittered delay in seconds
        jitter_fraction: Relative jitter applied around the capped delay
        rng: Source of randomness; inject a seeded random.Random for
            reproducible delays

    Example:
        >>> policy = BackoffPolicy(rng=random.Random(42))
        >>> 0.9 <= policy.compute_delay(0) <= 1.1
        True
    """

    def __init__(
        self,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter_fraction: float = DEFAULT_JITTER_FRACTION,
        rng: random.Random | None = None,
    ) -> None:
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be non-negative")
        if not 0 <= jitter_fraction < 1:
            raise ValueError("jitter_fraction must be in [0, 1)")

        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_fraction = jitter_fraction
        self.rng = rng if rng is not None else random.Random()  # noqa: S311  # nosec B311

    def capped_delay(self, attempt: int) -> float:
        """Un-jittered delay for an attempt: min(max_delay, base_delay * 2^attempt)."""
        if attempt < 0:
            raise ValueError("attempt must be non-negative")
        if self.base_delay == 0:
            return 0.0
        # 2**attempt overflows float conversion long before this matters
        if attempt >= 64:
            return self.max_delay
        return float(min(self.max_delay, self.base_delay * (2**attempt)))

    def compute_delay(self, attempt: int) -> float:
        """
        Calculate the jittered backoff delay.

        Args:
            attempt: Number of retries already made (0-based)

        Returns:
            Delay in seconds
        """
        delay = self.capped_delay(attempt)
        spread = delay * self.jitter_fraction
        delay = self.rng.uniform(delay - spread, delay + spread)

        logger.debug(f"Calculated backoff for attempt {attempt}: {delay:.3f}s")
        return delay

    def delay_for(self, attempt: int, error: ClassifiedError | None = None) -> float:
        """
        Delay before re-enqueueing a failed request.

        Args:
            attempt: Number of retries already made (0-based)
            error: The classified failure; a positive, finite retry_after overrides
                the computed delay

        Returns:
            Delay in seconds
        """
        if (
            error is not None
            and error.retry_after > 0
            and math.isfinite(error.retry_after)
        ):
            logger.debug(
                f"Using server retry directive of {error.retry_after:.3f}s "
                f"for attempt {attempt}"
            )
            return float(error.retry_after)
        return self.compute_delay(attempt)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(base_delay={self.base_delay}, "
            f"max_delay={self.max_delay}, jitter_fraction={self.jitter_fraction})"
        )


__all__ = [
    "DEFAULT_BASE_DELAY",
    "DEFAULT_JITTER_FRACTION",
    "DEFAULT_MAX_DELAY",
    "BackoffPolicy",
]
