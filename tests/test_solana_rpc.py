"""Tests for the Solana RPC client (async methods with mocked HTTP)."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from holder_scan.data_sources.solana_rpc import SolanaRpcClient
from holder_scan.errors import MalformedResponseError, UpstreamError
from holder_scan.rate_limiter import Pool


def _rpc_response(result=None, *, error=None, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = {}
    body = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    resp.json.return_value = body
    return resp


def _mock_client(*responses):
    client = AsyncMock()
    client.post = AsyncMock(side_effect=list(responses))
    client.is_closed = False
    return client


@pytest.fixture
def rpc(roomy_scheduler):
    return SolanaRpcClient(endpoint="https://rpc.example.com/", scheduler=roomy_scheduler, timeout=5)


class TestCall:

    @pytest.mark.asyncio
    async def test_payload_shape(self, rpc):
        rpc._client = _mock_client(_rpc_response({"value": 42}))
        result = await rpc._call("getBalance", ["addr123"])
        assert result == {"value": 42}

        args, kwargs = rpc._client.post.call_args
        assert args[0] == "https://rpc.example.com"
        payload = kwargs["json"]
        assert payload["method"] == "getBalance"
        assert payload["params"] == ["addr123"]
        assert payload["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_rpc_error_propagates(self, rpc):
        rpc._client = _mock_client(_rpc_response(error={"code": -32600, "message": "Invalid Request"}))
        with pytest.raises(UpstreamError):
            await rpc._call("badMethod", [])
        assert rpc._client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_429_retried_through_scheduler(self, rpc, counter):
        rpc._client = _mock_client(_rpc_response(status_code=429), _rpc_response({"value": 7}))
        assert await rpc.get_balance("addr") == 7
        assert rpc._client.post.call_count == 2
        assert counter.report()["calls_by_step"]["getBalance"]["calls"] == 2

    @pytest.mark.asyncio
    async def test_das_methods_use_api_pool(self, rpc, roomy_scheduler):
        rpc._client = _mock_client(_rpc_response({"id": "mint"}), _rpc_response({"value": 1}))
        roomy_scheduler.acquire = AsyncMock()
        await rpc.get_asset("mint")
        await rpc.get_balance("addr")
        pools = [c.args[0] for c in roomy_scheduler.acquire.call_args_list]
        assert pools == [Pool.API, Pool.BULK]


class TestSignatures:

    @pytest.mark.asyncio
    async def test_options_forwarded(self, rpc):
        rpc._client = _mock_client(_rpc_response([{"signature": "s1"}, {"foo": 1}]))
        sigs = await rpc.get_signatures_for_address("addr", limit=5000, before="b", until="u")
        assert sigs == [{"signature": "s1"}]
        params = rpc._client.post.call_args.kwargs["json"]["params"]
        assert params == ["addr", {"limit": 1000, "before": "b", "until": "u"}]

    @pytest.mark.asyncio
    async def test_null_result_is_empty(self, rpc):
        rpc._client = _mock_client(_rpc_response(None))
        assert await rpc.get_signatures_for_address("addr") == []

    @pytest.mark.asyncio
    async def test_non_list_is_malformed(self, rpc):
        rpc._client = _mock_client(_rpc_response({"oops": True}))
        with pytest.raises(MalformedResponseError):
            await rpc.get_signatures_for_address("addr")

    @pytest.mark.asyncio
    async def test_missing_transaction_is_none(self, rpc):
        rpc._client = _mock_client(_rpc_response(None))
        assert await rpc.get_transaction("sig") is None


class TestTokenAccounts:

    @pytest.mark.asyncio
    async def test_page_parsed(self, rpc):
        rpc._client = _mock_client(_rpc_response({
            "token_accounts": [
                {"address": "ata1", "owner": "w1", "amount": 500},
                {"address": "ata2", "owner": "w2", "amount": "25"},
            ],
            "cursor": "next",
        }))
        page = await rpc.get_token_accounts("mint", cursor="c0")
        assert [(a.owner, a.amount) for a in page.accounts] == [("w1", 500), ("w2", 25)]
        assert page.cursor == "next"
        params = rpc._client.post.call_args.kwargs["json"]["params"]
        assert params["cursor"] == "c0"

    @pytest.mark.asyncio
    async def test_bad_entry_is_malformed(self, rpc):
        rpc._client = _mock_client(_rpc_response({"token_accounts": [{"amount": 1}]}))
        with pytest.raises(MalformedResponseError):
            await rpc.get_token_accounts("mint")

    @pytest.mark.asyncio
    async def test_token_balance_sums_accounts(self, rpc):
        def _acc(amount):
            return {"pubkey": "ata", "account": {"data": {"parsed": {"info": {
                "tokenAmount": {"amount": str(amount), "decimals": 6},
            }}}}}

        rpc._client = _mock_client(_rpc_response({"context": {}, "value": [_acc(1_500_000), _acc(500_000)]}))
        assert await rpc.get_token_balance("owner", "mint") == Decimal("2")

    @pytest.mark.asyncio
    async def test_supply_requires_amount_and_decimals(self, rpc):
        rpc._client = _mock_client(_rpc_response({"context": {}, "value": {"uiAmount": 1}}))
        with pytest.raises(MalformedResponseError):
            await rpc.get_token_supply("mint")

    @pytest.mark.asyncio
    async def test_missing_value_envelope_is_malformed(self, rpc):
        rpc._client = _mock_client(_rpc_response(5))
        with pytest.raises(MalformedResponseError):
            await rpc.get_balance("addr")


class TestAssets:

    @pytest.mark.asyncio
    async def test_assets_by_owner_requires_items(self, rpc):
        rpc._client = _mock_client(_rpc_response({"total": 0}))
        with pytest.raises(MalformedResponseError):
            await rpc.get_assets_by_owner("owner")

    @pytest.mark.asyncio
    async def test_unknown_asset_is_empty(self, rpc):
        rpc._client = _mock_client(_rpc_response(None))
        assert await rpc.get_asset("mint") == {}
