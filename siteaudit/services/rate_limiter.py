"""Process-wide token budget + call spacing for the completion provider."""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from siteaudit.services.logger import logger


class TokenRateLimiter:
    """Serializes provider calls against a rolling per-minute token budget.

    Every acquisition books an estimated token cost against the current
    window. Once the booked total passes ``threshold * tokens_per_minute`` the
    next caller sleeps until the window rolls over. Consecutive calls are
    always at least ``min_interval`` seconds apart. Waiters are served in
    arrival order because ``asyncio.Lock`` wakes them FIFO.
    """

    def __init__(
        self,
        tokens_per_minute: int = 400_000,
        *,
        threshold: float = 0.8,
        min_interval: float = 0.2,
        window: float = 60.0,
        estimated_tokens: int = 15_000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.tokens_per_minute = tokens_per_minute
        self.threshold = threshold
        self.min_interval = min_interval
        self.window = window
        self.estimated_tokens = estimated_tokens
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._window_start = clock()
        self._tokens_used = 0
        self._last_call: float | None = None

    @property
    def tokens_used(self) -> int:
        return self._tokens_used

    async def acquire(self, estimated_tokens: int | None = None) -> None:
        cost = self.estimated_tokens if estimated_tokens is None else max(int(estimated_tokens), 0)
        async with self._lock:
            now = self._clock()
            if now - self._window_start >= self.window:
                self._reset_window(now)

            if self._tokens_used > self.tokens_per_minute * self.threshold:
                wait_for = self.window - (now - self._window_start)
                if wait_for > 0:
                    logger.warning(
                        f"Rate limiter: {self._tokens_used} tokens booked, waiting {wait_for:.1f}s for window reset"
                    )
                    await self._sleep(wait_for)
                self._reset_window(self._clock())

            if self._last_call is not None:
                gap = self._clock() - self._last_call
                if gap < self.min_interval:
                    await self._sleep(self.min_interval - gap)

            self._last_call = self._clock()
            self._tokens_used += cost

    def _reset_window(self, now: float) -> None:
        self._window_start = now
        self._tokens_used = 0
