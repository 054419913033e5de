"""Sliding-window rate limiter for outbound API calls.

One instance per upstream API, created by the composition root and passed to
the client that needs pacing. Waiters queue in call order and only the head
of the queue checks the window; the rest park until it leaves. No lock is held
while the head sleeps, so ``reset()`` takes effect for the very next call.
The timestamp deque is only mutated in synchronous steps, never across an await.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

from podmatch.errors import ConfigurationError

logger = logging.getLogger(__name__)


class _Waiter:
    __slots__ = ("epoch", "wakeup")

    def __init__(self, epoch: int):
        self.epoch = epoch
        self.wakeup: asyncio.Future | None = None


class RateLimiter:
    """Admits at most ``max_requests`` calls per trailing ``window_seconds``."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests <= 0:
            raise ConfigurationError(f"max_requests must be positive, got {max_requests}")
        if window_seconds <= 0:
            raise ConfigurationError(f"window_seconds must be positive, got {window_seconds}")

        self.max_requests = max_requests
        self.window = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._queue: deque[_Waiter] = deque()
        self._epoch = 0

    async def wait(self) -> None:
        """Suspend until one more request fits in the window, then record it."""
        waiter = _Waiter(self._epoch)
        self._enqueue(waiter)
        try:
            while True:
                if self._queue[0] is not waiter:
                    waiter.wakeup = asyncio.get_running_loop().create_future()
                    await waiter.wakeup
                    continue

                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return

                delay = self.window - (now - self._timestamps[0])
                logger.debug(
                    "Rate limit reached | in_window=%d | queued=%d | sleeping %.3fs",
                    len(self._timestamps), len(self._queue), delay,
                )
                # Re-checked after waking; reset() may have emptied the window meanwhile.
                await self._sleep(max(delay, 0.0))
        finally:
            self._queue.remove(waiter)
            self._wake_head()

    def reset(self) -> None:
        """Forget every recorded admission.

        Calls made after a reset queue ahead of waiters that were already
        queued; those keep their relative order and re-check once their
        current sleep ends.
        """
        self._timestamps.clear()
        self._epoch += 1

    def in_window(self) -> int:
        """Admissions still inside the trailing window."""
        self._evict(self._clock())
        return len(self._timestamps)

    def _enqueue(self, waiter: _Waiter) -> None:
        position = sum(1 for w in self._queue if w.epoch == self._epoch)
        self._queue.insert(position, waiter)

    def _wake_head(self) -> None:
        if not self._queue:
            return
        head = self._queue[0]
        if head.wakeup is not None and not head.wakeup.done():
            head.wakeup.set_result(None)

    def _evict(self, now: float) -> None:
        window_start = now - self.window
        while self._timestamps and self._timestamps[0] <= window_start:
            self._timestamps.popleft()
