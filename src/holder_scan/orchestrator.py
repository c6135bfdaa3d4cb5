"""
Batch orchestration with per-item timeouts and cooperative cancellation.

Items are processed in fixed-size batches launched concurrently.  The
batch size caps application-level concurrency; actual request throughput
is still governed by the scheduler's token buckets underneath.

- A per-item timeout converts a slow item into a fallback result (for
  wallets: category ``error``) so it never stalls its batch.
- A shared :class:`CancellationToken` is checked before each batch and at
  the start of each item.  Once set, in-flight items are cancelled and
  :class:`ScanCancelledError` is raised, distinct from ordinary failures.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from .errors import ScanCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class CancellationToken:
    """Shared flag a caller sets to abort a running scan."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCancelledError("scan cancelled")

    async def wait(self) -> None:
        await self._event.wait()


class BatchOrchestrator:
    """Runs an async worker over items in batches."""

    def __init__(
        self,
        *,
        batch_size: int = 10,
        inter_batch_delay: float = 0.1,
        item_timeout: Optional[float] = 10.0,
        cancel_token: Optional[CancellationToken] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.item_timeout = item_timeout
        self.cancel_token = cancel_token
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        *,
        cancel_token: Optional[CancellationToken] = None,
        batch_size: Optional[int] = None,
    ) -> "BatchOrchestrator":
        from config import BATCH_SIZE, INTER_BATCH_DELAY, WALLET_TIMEOUT_SECONDS

        return cls(
            batch_size=batch_size or BATCH_SIZE,
            inter_batch_delay=INTER_BATCH_DELAY,
            item_timeout=WALLET_TIMEOUT_SECONDS,
            cancel_token=cancel_token,
        )

    def _check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        *,
        on_timeout: Optional[Callable[[T], R]] = None,
        on_error: Optional[Callable[[T, Exception], R]] = None,
    ) -> list[R]:
        """Return ``worker(item)`` for every item, in input order.

        *on_timeout* builds the result of an item that exceeded the timeout;
        without it the timeout propagates.  *on_error* likewise converts
        other exceptions.  Cancellation is never converted.
        """
        results: list[R] = []
        total = len(items)
        for start in range(0, total, self.batch_size):
            self._check_cancelled()
            batch = items[start:start + self.batch_size]
            results.extend(await self._run_batch(batch, worker, on_timeout, on_error))
            logger.debug("[batch] %d/%d done", min(start + self.batch_size, total), total)
            if start + self.batch_size < total and self.inter_batch_delay > 0:
                await self._sleep(self.inter_batch_delay)
        return results

    async def _run_one(
        self,
        item: T,
        worker: Callable[[T], Awaitable[R]],
        on_timeout: Optional[Callable[[T], R]],
        on_error: Optional[Callable[[T, Exception], R]],
    ) -> R:
        self._check_cancelled()
        try:
            if self.item_timeout is None:
                return await worker(item)
            return await asyncio.wait_for(worker(item), self.item_timeout)
        except asyncio.TimeoutError:
            if on_timeout is None:
                raise
            logger.warning("[batch] item timed out after %.1fs", self.item_timeout)
            return on_timeout(item)
        except ScanCancelledError:
            raise
        except Exception as exc:
            if on_error is None:
                raise
            return on_error(item, exc)

    async def _run_batch(
        self,
        batch: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        on_timeout: Optional[Callable[[T], R]],
        on_error: Optional[Callable[[T, Exception], R]],
    ) -> list[R]:
        tasks = [
            asyncio.ensure_future(self._run_one(item, worker, on_timeout, on_error))
            for item in batch
        ]
        waiter = (
            asyncio.ensure_future(self.cancel_token.wait())
            if self.cancel_token is not None
            else None
        )
        pending = set(tasks)
        try:
            while pending:
                wait_on = pending | {waiter} if waiter is not None else pending
                done, _ = await asyncio.wait(wait_on, return_when=asyncio.FIRST_COMPLETED)
                if waiter is not None and waiter in done:
                    raise ScanCancelledError("scan cancelled")
                for task in done:
                    pending.discard(task)
                    exc = task.exception()
                    if exc is not None:
                        raise exc
            return [task.result() for task in tasks]
        finally:
            if waiter is not None:
                waiter.cancel()
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
