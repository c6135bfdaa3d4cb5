"""
Client construction and lifecycle for the Holder Scan agent.

There are no module-level singletons: a run builds one :class:`ScanClients`
bundle (scheduler, call counter, RPC and PumpFun clients) and passes it
down explicitly.  Tests build the same bundle around fakes.

    async with open_clients() as clients:
        report = await analyze_team_supply(clients, mint)
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from ..call_counter import ApiCallCounter
from ..rate_limiter import RequestScheduler
from .pumpfun import PumpFunClient
from .solana_rpc import SolanaRpcClient

logger = logging.getLogger(__name__)


@dataclass
class ScanClients:
    rpc: SolanaRpcClient
    pumpfun: PumpFunClient
    scheduler: RequestScheduler

    @property
    def counter(self) -> ApiCallCounter:
        return self.scheduler.counter

    async def close(self) -> None:
        await self.rpc.close()
        await self.pumpfun.close()
        await self.scheduler.aclose()


def build_clients(
    *,
    rpc_endpoint: Optional[str] = None,
    pumpfun_base_url: Optional[str] = None,
    timeout: Optional[int] = None,
    scheduler: Optional[RequestScheduler] = None,
) -> ScanClients:
    """Build a client bundle from config, with optional overrides."""
    from config import PUMPFUN_BASE_URL, REQUEST_TIMEOUT, SOLANA_RPC_ENDPOINT

    scheduler = scheduler or RequestScheduler.from_config()
    timeout = timeout or REQUEST_TIMEOUT
    return ScanClients(
        rpc=SolanaRpcClient(rpc_endpoint or SOLANA_RPC_ENDPOINT, scheduler, timeout=timeout),
        pumpfun=PumpFunClient(pumpfun_base_url or PUMPFUN_BASE_URL, scheduler, timeout=timeout),
        scheduler=scheduler,
    )


@contextlib.asynccontextmanager
async def open_clients(**overrides) -> AsyncIterator[ScanClients]:
    """Async context manager yielding a :class:`ScanClients` closed on exit."""
    clients = build_clients(**overrides)
    try:
        yield clients
    finally:
        await clients.close()
        logger.debug("HTTP clients closed")
