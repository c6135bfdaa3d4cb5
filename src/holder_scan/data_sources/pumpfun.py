"""
PumpFun trade-history client for the Holder Scan agent.

Reference: ``GET {base}/trades/all/{mint}?limit=&offset=&minimumSize=``

Public endpoint, no API key required.  Requests are admitted through the
shared scheduler's API pool.  Raw trades are converted to :class:`Trade`
models: PumpFun tokens always have 6 decimals and SOL amounts are in
lamports.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ._retry import async_http_get
from ..errors import MalformedResponseError
from ..models import Trade, scale_amount
from ..rate_limiter import Pool, RequestScheduler

logger = logging.getLogger(__name__)

PUMPFUN_TOKEN_DECIMALS = 6
SOL_DECIMALS = 9
_PAGE_LIMIT = 200


class PumpFunClient:
    """Async wrapper around the PumpFun trades API."""

    def __init__(
        self,
        base_url: str,
        scheduler: RequestScheduler,
        timeout: int = 15,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._scheduler = scheduler
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={
                    "Accept": "application/json",
                    "Referer": "https://pump.fun/",
                    "Origin": "https://pump.fun",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    async def get_trades(
        self,
        mint: str,
        *,
        limit: int = _PAGE_LIMIT,
        offset: int = 0,
        minimum_size: int = 0,
    ) -> list[Trade]:
        """Return one page of trades for *mint*, oldest first as the API orders them."""
        url = f"{self._base_url}/trades/all/{mint}"
        params = {"limit": limit, "offset": offset, "minimumSize": minimum_size}
        data = await self._get(url, params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedResponseError(f"PumpFun trades for {mint} is not a list")
        return [parse_trade(item) for item in data]

    async def iter_trades(
        self,
        mint: str,
        *,
        max_trades: int = 50_000,
        page_size: int = _PAGE_LIMIT,
    ) -> list[Trade]:
        """Page through the full trade history until an empty page or *max_trades*."""
        trades: list[Trade] = []
        offset = 0
        while len(trades) < max_trades:
            page = await self.get_trades(mint, limit=page_size, offset=offset)
            if not page:
                break
            trades.extend(page)
            offset += page_size
        logger.debug("[pumpfun] %s: fetched %d trades", mint[:8], len(trades))
        return trades[:max_trades]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _get(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        client = await self._get_client()

        async def _do() -> Any:
            return await async_http_get(client, url, params=params, label="PumpFun")

        return await self._scheduler.schedule(_do, Pool.API, step="getAllTrades")


def parse_trade(item: dict[str, Any]) -> Trade:
    """Convert one raw PumpFun trade into a :class:`Trade`."""
    try:
        return Trade(
            wallet=item["user"],
            is_buy=bool(item["is_buy"]),
            token_amount=scale_amount(int(item["token_amount"]), PUMPFUN_TOKEN_DECIMALS),
            sol_amount=scale_amount(int(item["sol_amount"]), SOL_DECIMALS),
            timestamp=int(item["timestamp"]),
            slot=int(item["slot"]) if item.get("slot") is not None else None,
            signature=item.get("signature", ""),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponseError(f"bad PumpFun trade entry: {item!r}") from exc
