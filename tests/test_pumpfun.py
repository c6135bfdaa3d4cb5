"""Tests for the PumpFun trade-history client."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from holder_scan.data_sources.pumpfun import PumpFunClient, parse_trade
from holder_scan.errors import MalformedResponseError


def _raw(user: str, *, is_buy=True, tokens=1_000_000, lamports=500_000_000, ts=1_700_000_000, slot=123):
    return {
        "user": user,
        "is_buy": is_buy,
        "token_amount": tokens,
        "sol_amount": lamports,
        "timestamp": ts,
        "slot": slot,
        "signature": f"sig-{user}",
    }


def _resp(data):
    resp = MagicMock()
    resp.status_code = 200
    resp.headers = {}
    resp.json.return_value = data
    return resp


@pytest.fixture
def pumpfun(roomy_scheduler):
    client = PumpFunClient("https://frontend-api.pump.fun/", roomy_scheduler, timeout=5)
    client._client = AsyncMock()
    client._client.is_closed = False
    return client


class TestParseTrade:

    def test_scales_amounts(self):
        trade = parse_trade(_raw("w1"))
        assert trade.wallet == "w1"
        assert trade.token_amount == Decimal("1")
        assert trade.sol_amount == Decimal("0.5")
        assert trade.slot == 123
        assert trade.signature == "sig-w1"

    def test_missing_slot(self):
        raw = _raw("w1")
        raw["slot"] = None
        assert parse_trade(raw).slot is None

    def test_bad_entry(self):
        with pytest.raises(MalformedResponseError):
            parse_trade({"user": "w1"})


class TestPaging:

    @pytest.mark.asyncio
    async def test_get_trades_query(self, pumpfun):
        pumpfun._client.get = AsyncMock(return_value=_resp([_raw("w1")]))
        trades = await pumpfun.get_trades("MINT", limit=50, offset=100)
        assert len(trades) == 1
        args, kwargs = pumpfun._client.get.call_args
        assert args[0] == "https://frontend-api.pump.fun/trades/all/MINT"
        assert kwargs["params"] == {"limit": 50, "offset": 100, "minimumSize": 0}

    @pytest.mark.asyncio
    async def test_iter_stops_on_empty_page(self, pumpfun):
        pages = [
            _resp([_raw("a"), _raw("b")]),
            _resp([_raw("c")]),
            _resp([]),
        ]
        pumpfun._client.get = AsyncMock(side_effect=pages)
        trades = await pumpfun.iter_trades("MINT", page_size=2)
        assert [t.wallet for t in trades] == ["a", "b", "c"]
        offsets = [c.kwargs["params"]["offset"] for c in pumpfun._client.get.call_args_list]
        assert offsets == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_iter_respects_max_trades(self, pumpfun):
        pumpfun._client.get = AsyncMock(return_value=_resp([_raw("a"), _raw("b")]))
        trades = await pumpfun.iter_trades("MINT", max_trades=3, page_size=2)
        assert len(trades) == 3
        assert pumpfun._client.get.call_count == 2

    @pytest.mark.asyncio
    async def test_non_list_body(self, pumpfun):
        pumpfun._client.get = AsyncMock(return_value=_resp({"error": "nope"}))
        with pytest.raises(MalformedResponseError):
            await pumpfun.get_trades("MINT")
