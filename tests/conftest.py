"""Shared test fixtures for the Holder Scan test suite."""

from __future__ import annotations

import sys
import os

# Ensure src/ (and the test helpers next to this file) are importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

import pytest

from holder_scan.call_counter import ApiCallCounter
from holder_scan.data_sources._clients import ScanClients
from holder_scan.models import AnalysisConfig
from holder_scan.orchestrator import BatchOrchestrator
from holder_scan.rate_limiter import Pool, RequestScheduler, TokenBucket

from fakes import FakePumpFun, FakeRpc

MINT = "MintAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mint() -> str:
    return MINT


@pytest.fixture
def counter() -> ApiCallCounter:
    return ApiCallCounter()


@pytest.fixture
def fake_rpc(counter) -> FakeRpc:
    return FakeRpc(counter=counter)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def roomy_scheduler(counter) -> RequestScheduler:
    """Scheduler whose buckets never run dry and whose retries never sleep."""

    async def _no_sleep(_seconds: float) -> None:
        return None

    return RequestScheduler(
        {
            Pool.BULK: TokenBucket(10_000, 10_000),
            Pool.API: TokenBucket(10_000, 10_000),
        },
        max_retries=3,
        base_delay=0.0,
        counter=counter,
        sleep=_no_sleep,
    )


@pytest.fixture
def fake_clients(fake_rpc, roomy_scheduler) -> ScanClients:
    return ScanClients(rpc=fake_rpc, pumpfun=FakePumpFun(), scheduler=roomy_scheduler)


@pytest.fixture
def fast_orchestrator() -> BatchOrchestrator:
    return BatchOrchestrator(batch_size=10, inter_batch_delay=0, item_timeout=2.0)


@pytest.fixture
def small_cfg() -> AnalysisConfig:
    """Team-supply thresholds small enough to build histories by hand."""
    return AnalysisConfig(
        fresh_wallet_threshold=100,
        max_assets_threshold=2,
        inactivity_threshold_days=5,
        teambot_tx_check_limit=5,
        cluster_size_threshold=3,
        min_holder_balance=0,
    )
