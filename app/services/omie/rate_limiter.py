"""Upstream rate limiter shared by every Omie call in the process.

Omie throttles per application key, so one ``RateLimiter`` is built at
startup and handed to the client; all sync steps running in the event loop
go through the same instance.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager


class RateLimiter:
    """Bounds in-flight calls and spaces out their starts.

    Two rules apply to every call:

    * at most ``max_concurrent`` calls are in flight at once;
    * two consecutive calls start at least ``min_interval`` seconds apart,
      however many slots are free.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        min_interval: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._slots = asyncio.Semaphore(max_concurrent)
        self._spacing = asyncio.Lock()
        self._last_start: float | None = None

        # Instrumentation
        self.active = 0
        self.peak = 0
        self.total_calls = 0

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one call slot for the duration of the ``async with`` block."""
        async with self._slots:
            await self._wait_for_spacing()
            self.active += 1
            self.total_calls += 1
            self.peak = max(self.peak, self.active)
            try:
                yield
            finally:
                self.active -= 1

    async def _wait_for_spacing(self) -> None:
        # Serialised so two waiters never claim the same window
        async with self._spacing:
            if self._last_start is not None:
                remaining = self.min_interval - (self._clock() - self._last_start)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last_start = self._clock()
