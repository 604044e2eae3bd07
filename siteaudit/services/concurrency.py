from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator

from siteaudit.errors import ServerBusyError


class AuditConcurrencyLimiter:
    """Caps concurrently running audits; waiters are admitted strictly FIFO.

    A released slot is handed directly to the oldest waiter, so a newcomer can
    never overtake a queued caller.
    """

    def __init__(self, max_concurrent: int = 5):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def saturated(self) -> bool:
        return self._active >= self.max_concurrent

    def try_acquire(self) -> None:
        if self.saturated or self.waiting:
            raise ServerBusyError()
        self._active += 1

    async def acquire(self) -> None:
        if not self.saturated and not self.waiting:
            self._active += 1
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just as we were cancelled; pass it on.
                self.release()
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot ownership moves to the waiter; active count is unchanged.
                waiter.set_result(None)
                return
        if self._active > 0:
            self._active -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()
