"""
Exponential backoff for transaction retries.

The delay starts at zero, so the first wait after a reset is free, then
grows by ``factor`` from ``initial_delay`` up to ``max_delay``. Each delay
is randomized by up to half of ``jitter_factor`` in either direction.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable

from ..runtime.errors import BackoffError, InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_INITIAL_DELAY = 1.0
DEFAULT_BACKOFF_MAX_DELAY = 60.0
DEFAULT_BACKOFF_FACTOR = 1.5
DEFAULT_JITTER_FACTOR = 1.0


def validate_backoff_settings(
    initial_delay: float, max_delay: float, factor: float, jitter_factor: float
) -> None:
    """
    Check backoff parameters.

    Raises:
        InvalidArgumentError: If the delays are not ordered 0 <= initial <= max,
            the factor is below 1 or the jitter factor is negative
    """
    if initial_delay < 0 or max_delay < initial_delay:
        raise InvalidArgumentError(
            f"Backoff delays must satisfy 0 <= initial_delay <= max_delay, "
            f"got initial_delay={initial_delay!r}, max_delay={max_delay!r}."
        )
    if factor < 1.0:
        raise InvalidArgumentError(f"Backoff factor must be at least 1.0, got {factor!r}.")
    if jitter_factor < 0:
        raise InvalidArgumentError(f"Jitter factor must not be negative, got {jitter_factor!r}.")


class ExponentialBackoff:
    """
    Exponential backoff policy.

    Delay after n waits: initial_delay * (factor ^ (n - 1)), capped at max_delay,
    plus jitter.
    """

    def __init__(
        self,
        initial_delay: float = DEFAULT_BACKOFF_INITIAL_DELAY,
        max_delay: float = DEFAULT_BACKOFF_MAX_DELAY,
        factor: float = DEFAULT_BACKOFF_FACTOR,
        jitter_factor: float = DEFAULT_JITTER_FACTOR,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize exponential backoff policy.

        Args:
            initial_delay: First non-zero delay in seconds
            max_delay: Maximum delay cap in seconds
            factor: Exponential factor
            jitter_factor: Jitter randomization factor (0.0 disables jitter)
            sleep: Coroutine function used to wait
        """
        validate_backoff_settings(initial_delay, max_delay, factor, jitter_factor)

        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter_factor = jitter_factor
        self._sleep = sleep

        self._current_base = 0.0
        self._awaiting_backoff_completion = False

    @property
    def current_base(self) -> float:
        """Base delay (before jitter) of the next wait."""
        return self._current_base

    def reset(self) -> None:
        """Reset so that the next wait has no delay."""
        self._current_base = 0.0

    def reset_to_max(self) -> None:
        """Force the next wait to use the maximum delay."""
        self._current_base = self.max_delay

    def add_jitter(self, delay: float) -> float:
        """Randomize a delay by up to +/- delay * jitter_factor / 2."""
        jitter_amount = (random.random() - 0.5) * self.jitter_factor * delay
        return max(0.0, delay + jitter_amount)

    def next_delay(self) -> float:
        """Compute the next delay and advance the base delay."""
        delay = self.add_jitter(self._current_base)

        self._current_base *= self.factor
        self._current_base = min(max(self._current_base, self.initial_delay), self.max_delay)
        return delay

    async def backoff_and_wait(self) -> float:
        """
        Wait for the current delay, then increase it.

        Returns:
            The delay that was waited, in seconds

        Raises:
            BackoffError: If a previous wait has not completed yet
        """
        if self._awaiting_backoff_completion:
            raise BackoffError("A backoff operation is already in progress.")

        delay = self.next_delay()
        if delay <= 0:
            return 0.0

        logger.debug(f"Backing off for {delay:.3f}s")
        self._awaiting_backoff_completion = True
        try:
            await self._sleep(delay)
        finally:
            self._awaiting_backoff_completion = False
        return delay
