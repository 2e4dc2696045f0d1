"""Fixed-window token bucket shared by every request of a client.

The bucket holds ``permit_limit`` tokens and refills completely at each
window boundary. Refills are computed from the clock on access, and a single
event-loop timer wakes queued waiters, so nothing has to tick the limiter.

Queued waiters are served strictly first-in first-out: a waiter never
overtakes one that started waiting before it, even if it asks for fewer
tokens.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from weebdex.models import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lease:
    """Outcome of one acquisition attempt.

    retry_after is the number of seconds until the window refills; it is
    only populated for denied leases.
    """

    acquired: bool
    retry_after: float | None = None


@dataclass(eq=False)
class _Waiter:
    cost: int
    future: asyncio.Future = field(repr=False)


class FixedWindowRateLimiter:
    """Token bucket with atomic per-window refill and optional FIFO queueing.

    Usage:
        limiter = FixedWindowRateLimiter(permit_limit=5, window=1.0)
        lease = await limiter.acquire()
        if not lease.acquired:
            ...  # only possible when queue=False

    The limiter is meant to be used from a single event loop. Waiting is
    cancelled by cancelling the awaiting task.
    """

    def __init__(
        self,
        permit_limit: int,
        window: float,
        queue: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            permit_limit: Tokens available per window.
            window: Window length in seconds.
            queue: Wait for tokens when exhausted instead of failing.
            clock: Monotonic clock in seconds. Must agree with the event
                   loop clock when queueing is used.
        """
        if permit_limit < 1:
            raise ValueError(f"permit_limit must be at least 1, got {permit_limit}")
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")

        self._permit_limit = permit_limit
        self._window = window
        self._queue = queue
        self._clock = clock

        self._available = permit_limit
        self._window_start = clock()
        self._waiters: deque[_Waiter] = deque()
        self._timer: asyncio.TimerHandle | None = None

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> FixedWindowRateLimiter | None:
        """Build a limiter from configuration, or None if rate limiting is disabled."""
        if not config.enabled:
            return None
        return cls(permit_limit=config.leases, window=config.refresh, queue=config.queue)

    @property
    def permit_limit(self) -> int:
        return self._permit_limit

    @property
    def window(self) -> float:
        return self._window

    @property
    def queue(self) -> bool:
        return self._queue

    @property
    def available(self) -> int:
        """Tokens left in the current window."""
        self._replenish()
        return self._available

    @property
    def queued(self) -> int:
        """Number of tasks currently waiting for tokens."""
        return sum(1 for w in self._waiters if not w.future.done())

    def retry_after(self) -> float:
        """Seconds until the current window ends."""
        self._replenish()
        return max(0.0, self._window_start + self._window - self._clock())

    def try_acquire(self, cost: int = 1) -> Lease:
        """Take tokens if they are available right now; never waits."""
        self._check_cost(cost)
        self._replenish()
        # Queued waiters have priority over new arrivals
        if not self._waiters and self._available >= cost:
            self._available -= cost
            return Lease(acquired=True)
        return Lease(acquired=False, retry_after=self.retry_after())

    async def acquire(self, cost: int = 1) -> Lease:
        """Take tokens, waiting for the next window when queueing is enabled.

        Raises:
            ValueError: If cost exceeds the bucket capacity.
            asyncio.CancelledError: If the awaiting task is cancelled while queued.
        """
        lease = self.try_acquire(cost)
        if lease.acquired or not self._queue:
            return lease

        loop = asyncio.get_running_loop()
        waiter = _Waiter(cost=cost, future=loop.create_future())
        self._waiters.append(waiter)
        logger.debug(
            "Rate limit exhausted, queued (position %d, retry in %.3fs)",
            len(self._waiters), lease.retry_after or 0.0,
        )
        self._schedule_refill()

        try:
            await waiter.future
        except asyncio.CancelledError:
            if waiter.future.done() and not waiter.future.cancelled():
                # Tokens were granted but the task was cancelled before resuming
                self._available = min(self._permit_limit, self._available + cost)
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            self._grant_waiters()
            raise

        return Lease(acquired=True)

    def _check_cost(self, cost: int) -> None:
        if cost < 1 or cost > self._permit_limit:
            raise ValueError(
                f"cost must be between 1 and {self._permit_limit}, got {cost}"
            )

    def _replenish(self) -> None:
        elapsed = self._clock() - self._window_start
        if elapsed >= self._window:
            self._window_start += (elapsed // self._window) * self._window
            self._available = self._permit_limit

    def _grant_waiters(self) -> None:
        self._replenish()
        while self._waiters:
            waiter = self._waiters[0]
            if waiter.future.done():
                self._waiters.popleft()
                continue
            if self._available < waiter.cost:
                break
            self._waiters.popleft()
            self._available -= waiter.cost
            waiter.future.set_result(None)

        if self._waiters:
            self._schedule_refill()

    def _schedule_refill(self) -> None:
        if self._timer is not None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.retry_after(), self._on_refill)

    def _on_refill(self) -> None:
        self._timer = None
        self._grant_waiters()
