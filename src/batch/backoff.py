# src/batch/backoff.py - v1
"""Retry/backoff controller for failed batches.

Linear growth with a cap: the first failure waits ``initial`` seconds and
every further failure in the run adds ``step`` up to ``cap``. The wait never
shrinks within a run. With ``max_retries=None`` the scheduler retries
forever.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from tinyshrink.core.errors import RetryExhausted

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_S = 10
DEFAULT_STEP_S = 10
DEFAULT_CAP_S = 60


class BackoffController:
    """Hands out wait intervals and sleeps through them."""

    def __init__(
        self,
        initial: int = DEFAULT_INITIAL_S,
        step: int = DEFAULT_STEP_S,
        cap: int = DEFAULT_CAP_S,
        max_retries: int | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._initial = initial
        self._step = step
        self._cap = cap
        self._max_retries = max_retries
        self._sleep = sleep
        self._current = min(initial, cap)
        self._failures = 0
        self._total_failures = 0

    @property
    def current_delay(self) -> int:
        """The wait the next failure will get."""
        return self._current

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    @property
    def total_failures(self) -> int:
        return self._total_failures

    def next_delay(self) -> int:
        """Return the wait for this failure and grow the next one."""
        delay = self._current
        self._current = min(self._current + self._step, self._cap)
        return delay

    def reset_failures(self) -> None:
        """A batch succeeded: clear the consecutive-failure counter."""
        self._failures = 0

    async def wait(self, error: BaseException | None = None) -> int:
        """Register a failure and sleep for the backoff interval.

        Returns:
            The number of seconds waited.

        Raises:
            RetryExhausted: If ``max_retries`` consecutive retries already failed.
        """
        self._failures += 1
        self._total_failures += 1
        if self._max_retries is not None and self._failures > self._max_retries:
            raise RetryExhausted(self._failures, error)

        delay = self.next_delay()
        remaining = delay
        while remaining > 0:
            logger.warning("Batch failed, retrying in %ds ...", remaining)
            await self._sleep(1)
            remaining -= 1
        return delay
