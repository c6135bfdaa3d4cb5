"""
Rate-limited request scheduler.

Two independent quota pools are modelled as token buckets:

BULK  : standard JSON-RPC calls (high quota)
API   : indexer / DAS / third-party API calls (low quota)

A bucket starts full at ``capacity`` tokens and refills continuously at
``refill_rate`` tokens per second, computed lazily from a monotonic clock.
Each outbound attempt (retries included) consumes one token, so in any
window of ``t`` seconds at most ``capacity + refill_rate * t`` calls leave a
pool.

Callers that find the bucket empty, or arrive while others are already
waiting, join a per-pool FIFO queue.  A single drain task per pool hands
out tokens to waiters in arrival order, sleeping for exactly the time the
next token needs.

Usage
-----
    scheduler = RequestScheduler.from_config()
    sigs = await scheduler.schedule(lambda: client.call(...), Pool.BULK,
                                    step="getSignaturesForAddress")
"""

from __future__ import annotations

import asyncio
import collections
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .call_counter import ApiCallCounter, current_context
from .data_sources._retry import retry_with_backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

# refill arithmetic leaves residue like 0.9999999999998; treat it as a whole token
_TOKEN_EPSILON = 1e-9


class Pool(str, Enum):
    BULK = "bulk"
    API = "api"


class TokenBucket:
    """Lazily refilled token bucket."""

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be > 0")
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self._clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
            self._last_refill = now

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def try_take(self) -> bool:
        """Consume one token if at least one is available."""
        self._refill()
        if self._tokens >= 1 - _TOKEN_EPSILON:
            self._tokens = max(0.0, self._tokens - 1)
            return True
        return False

    def wait_time(self) -> float:
        """Seconds until one whole token is available."""
        self._refill()
        if self._tokens >= 1 - _TOKEN_EPSILON:
            return 0.0
        return (1 - self._tokens) / self.refill_rate


class RequestScheduler:
    """Admits requests through per-pool token buckets and retries transient failures."""

    def __init__(
        self,
        buckets: dict[Pool, TokenBucket],
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        counter: Optional[ApiCallCounter] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        missing = set(Pool) - set(buckets)
        if missing:
            raise ValueError(f"no bucket configured for pools: {sorted(p.value for p in missing)}")
        self._buckets = buckets
        self._queues: dict[Pool, collections.deque[asyncio.Future]] = {
            pool: collections.deque() for pool in Pool
        }
        self._drainers: dict[Pool, asyncio.Task] = {}
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._sleep = sleep
        self.counter = counter if counter is not None else ApiCallCounter()

    @classmethod
    def from_config(cls, *, counter: Optional[ApiCallCounter] = None) -> "RequestScheduler":
        from config import (
            API_BUCKET_CAPACITY,
            API_BUCKET_RATE,
            MAX_RETRIES,
            RETRY_BASE_DELAY,
            RPC_BUCKET_CAPACITY,
            RPC_BUCKET_RATE,
        )

        return cls(
            {
                Pool.BULK: TokenBucket(RPC_BUCKET_CAPACITY, RPC_BUCKET_RATE),
                Pool.API: TokenBucket(API_BUCKET_CAPACITY, API_BUCKET_RATE),
            },
            max_retries=MAX_RETRIES,
            base_delay=RETRY_BASE_DELAY,
            counter=counter,
        )

    def bucket(self, pool: Pool) -> TokenBucket:
        return self._buckets[pool]

    def queue_depth(self, pool: Pool) -> int:
        return sum(1 for fut in self._queues[pool] if not fut.done())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(self, pool: Pool) -> None:
        """Wait for one token from *pool*, respecting FIFO order."""
        queue = self._queues[pool]
        if not queue and self._buckets[pool].try_take():
            return
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        queue.append(fut)
        self._ensure_drainer(pool)
        await fut

    async def schedule(
        self,
        request: Callable[[], Awaitable[T]],
        pool: Pool = Pool.BULK,
        *,
        step: str = "request",
    ) -> T:
        """Run *request* once a token is available, retrying transient failures.

        Every attempt consumes a token and is recorded in ``self.counter``
        under the caller's main/sub context.
        """
        main, sub = current_context()

        async def _admit() -> None:
            await self.acquire(pool)
            self.counter.increment(step, main, sub)

        return await retry_with_backoff(
            request,
            max_retries=self._max_retries,
            backoff_base=self._base_delay,
            label=step,
            sleep=self._sleep,
            before_attempt=_admit,
        )

    async def aclose(self) -> None:
        """Cancel drain tasks and fail any remaining waiters."""
        for task in self._drainers.values():
            task.cancel()
        for task in self._drainers.values():
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._drainers.clear()
        for queue in self._queues.values():
            while queue:
                fut = queue.popleft()
                if not fut.done():
                    fut.cancel()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_drainer(self, pool: Pool) -> None:
        task = self._drainers.get(pool)
        if task is None or task.done():
            self._drainers[pool] = asyncio.get_running_loop().create_task(
                self._drain(pool), name=f"rate-limiter-drain-{pool.value}"
            )

    async def _drain(self, pool: Pool) -> None:
        bucket = self._buckets[pool]
        queue = self._queues[pool]
        while queue:
            fut = queue[0]
            if fut.done():
                # waiter was cancelled while queued; no token was spent on it
                queue.popleft()
                continue
            if bucket.try_take():
                queue.popleft()
                fut.set_result(None)
                continue
            wait = bucket.wait_time()
            logger.debug("%s pool exhausted, %d waiting, next token in %.3fs", pool.value, len(queue), wait)
            await self._sleep(wait)
