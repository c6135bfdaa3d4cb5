"""Tests for batch orchestration, timeouts and cancellation."""

from __future__ import annotations

import asyncio

import pytest

from holder_scan.errors import ScanCancelledError
from holder_scan.orchestrator import BatchOrchestrator, CancellationToken


class TestRun:

    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        async def _work(i: int) -> int:
            await asyncio.sleep(0.001 * (5 - i % 5))
            return i * 10

        orchestrator = BatchOrchestrator(batch_size=3, inter_batch_delay=0)
        assert await orchestrator.run(list(range(8)), _work) == [i * 10 for i in range(8)]

    @pytest.mark.asyncio
    async def test_batches_run_sequentially(self):
        running = 0
        peak = 0

        async def _work(i: int) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.001)
            running -= 1
            return i

        await BatchOrchestrator(batch_size=4, inter_batch_delay=0).run(list(range(10)), _work)
        assert peak == 4

    @pytest.mark.asyncio
    async def test_inter_batch_delay(self):
        delays: list[float] = []

        async def _sleep(seconds: float) -> None:
            delays.append(seconds)

        async def _work(i: int) -> int:
            return i

        orchestrator = BatchOrchestrator(batch_size=2, inter_batch_delay=0.1, sleep=_sleep)
        await orchestrator.run(list(range(5)), _work)
        assert delays == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_timeout_uses_fallback(self):
        async def _work(i: int) -> str:
            if i == 1:
                await asyncio.sleep(10)
            return f"ok-{i}"

        orchestrator = BatchOrchestrator(batch_size=3, inter_batch_delay=0, item_timeout=0.05)
        results = await orchestrator.run([0, 1, 2], _work, on_timeout=lambda i: f"timeout-{i}")
        assert results == ["ok-0", "timeout-1", "ok-2"]

    @pytest.mark.asyncio
    async def test_error_uses_fallback(self):
        async def _work(i: int) -> str:
            if i == 0:
                raise RuntimeError("boom")
            return "ok"

        results = await BatchOrchestrator(inter_batch_delay=0).run(
            [0, 1], _work, on_error=lambda i, exc: f"error: {exc}"
        )
        assert results == ["error: boom", "ok"]

    @pytest.mark.asyncio
    async def test_error_without_fallback_propagates(self):
        async def _work(i: int) -> str:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await BatchOrchestrator(inter_batch_delay=0).run([0], _work)

    def test_rejects_zero_batch(self):
        with pytest.raises(ValueError):
            BatchOrchestrator(batch_size=0)


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_before_start(self):
        token = CancellationToken()
        token.cancel()

        async def _work(i: int) -> int:
            return i

        with pytest.raises(ScanCancelledError):
            await BatchOrchestrator(cancel_token=token).run([1, 2], _work)

    @pytest.mark.asyncio
    async def test_cancel_mid_batch_stops_in_flight_items(self):
        token = CancellationToken()
        started: list[int] = []
        finished: list[int] = []

        async def _work(i: int) -> int:
            started.append(i)
            if i == 0:
                token.cancel()
                return i
            await asyncio.sleep(10)
            finished.append(i)
            return i

        orchestrator = BatchOrchestrator(
            batch_size=3, inter_batch_delay=0, item_timeout=None, cancel_token=token
        )
        with pytest.raises(ScanCancelledError):
            await orchestrator.run(list(range(6)), _work, on_error=lambda i, exc: -1)
        assert finished == []
        assert max(started) < 3

    @pytest.mark.asyncio
    async def test_worker_cancellation_is_not_converted(self):
        async def _work(i: int) -> int:
            raise ScanCancelledError("scan cancelled")

        with pytest.raises(ScanCancelledError):
            await BatchOrchestrator().run([1], _work, on_error=lambda i, exc: -1)

    @pytest.mark.asyncio
    async def test_token_flag(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel()
        assert token.cancelled
        await asyncio.wait_for(token.wait(), 1)
