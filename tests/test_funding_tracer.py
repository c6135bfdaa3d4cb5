"""Tests for funding provenance tracing and funder grouping."""

from __future__ import annotations

import pytest

import config

from holder_scan.funding_tracer import FundingTracer, find_funder_in_transaction, group_by_funder
from holder_scan.models import FundingRecord
from holder_scan.wallet_labels import EXCHANGE, KNOWN_ADDRESSES

from fakes import make_sigs, transfer_tx

FUNDER = "FunderFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF"


def _fund(rpc, wallet: str, funder: str = FUNDER, *, history: int = 5, lamports: int = 1_000_000_000):
    """Give *wallet* a short history whose oldest transaction is funded by *funder*."""
    sigs = make_sigs(wallet, history)
    rpc.signatures[wallet] = sigs
    oldest = sigs[-1]["signature"]
    rpc.transactions[oldest] = transfer_tx(funder, wallet, lamports, block_time=sigs[-1]["blockTime"])


class TestTrace:

    def test_defaults_come_from_config(self, fake_rpc):
        tracer = FundingTracer(fake_rpc)
        assert tracer.max_signatures == config.MAX_SIGNATURES_FOR_FUNDING_SCAN
        assert tracer.max_transactions == config.MAX_FUNDING_TRANSACTIONS
        assert tracer.lamport_tolerance == config.FUNDING_LAMPORT_TOLERANCE

    @pytest.mark.parametrize("max_signatures", [0, config.SIGNATURE_PAGE_LIMIT + 1])
    def test_signature_window_must_fit_one_page(self, fake_rpc, max_signatures):
        with pytest.raises(ValueError):
            FundingTracer(fake_rpc, max_signatures=max_signatures)

    @pytest.mark.asyncio
    async def test_full_page_is_skipped(self, fake_rpc):
        _fund(fake_rpc, "busy", history=5000)
        assert await FundingTracer(fake_rpc, max_signatures=1000).trace("busy") is None
        assert fake_rpc.count("getTransaction") == 0

    @pytest.mark.asyncio
    async def test_oldest_transfer_wins(self, fake_rpc):
        _fund(fake_rpc, "w1")
        # a newer transfer from someone else must not override the first funder
        fake_rpc.transactions["w1-3"] = transfer_tx("Other", "w1", 5)

        record = await FundingTracer(fake_rpc).trace("w1")
        assert record is not None
        assert record.funder_address == FUNDER
        assert record.amount_lamports == 1_000_000_000
        assert record.signature == "w1-0"
        assert record.timestamp is not None

    @pytest.mark.asyncio
    async def test_idempotent(self, fake_rpc):
        _fund(fake_rpc, "w1")
        tracer = FundingTracer(fake_rpc)
        assert await tracer.trace("w1") == await tracer.trace("w1")

    @pytest.mark.asyncio
    async def test_saturated_history_is_skipped(self, fake_rpc):
        _fund(fake_rpc, "busy", history=50)
        record = await FundingTracer(fake_rpc, max_signatures=50).trace("busy")
        assert record is None
        assert fake_rpc.count("getTransaction") == 0

    @pytest.mark.asyncio
    async def test_only_oldest_window_is_inspected(self, fake_rpc):
        sigs = make_sigs("w1", 30)
        fake_rpc.signatures["w1"] = sigs
        # funding sits outside the oldest-10 window
        fake_rpc.transactions["w1-15"] = transfer_tx(FUNDER, "w1", 100)

        assert await FundingTracer(fake_rpc, max_transactions=10).trace("w1") is None
        assert fake_rpc.count("getTransaction") == 10

    @pytest.mark.asyncio
    async def test_failed_transactions_are_skipped(self, fake_rpc):
        _fund(fake_rpc, "w1")
        fake_rpc.signatures["w1"][-1]["err"] = {"InstructionError": [0, "Custom"]}
        assert await FundingTracer(fake_rpc).trace("w1") is None

    @pytest.mark.asyncio
    async def test_no_history(self, fake_rpc):
        assert await FundingTracer(fake_rpc).trace("empty") is None

    @pytest.mark.asyncio
    async def test_known_funder_is_labelled(self, fake_rpc):
        exchange = next(a for a, (_, cat) in KNOWN_ADDRESSES.items() if cat == EXCHANGE)
        _fund(fake_rpc, "w1", exchange)
        record = await FundingTracer(fake_rpc).trace("w1")
        assert record.source_category == EXCHANGE
        assert record.source_name

    @pytest.mark.asyncio
    async def test_as_of_ignores_later_history(self, fake_rpc):
        # funded by A at first, the buy happens at w1-2; later transfers are invisible
        _fund(fake_rpc, "w1", "A")
        record = await FundingTracer(fake_rpc).trace("w1", before="w1-2")
        assert record.funder_address == "A"

        fake_rpc.transactions["w1-0"] = transfer_tx("B", "w1", 1)
        record = await FundingTracer(fake_rpc).trace("w1", before="w1-0")
        assert record is None


class TestWasFreshAt:

    @pytest.mark.asyncio
    async def test_threshold_must_fit_one_page(self, fake_rpc):
        fake_rpc.signatures["w1"] = make_sigs("w1", 5000)
        with pytest.raises(ValueError):
            await FundingTracer(fake_rpc).was_fresh_at("w1", "w1-4999", 1000)
        assert fake_rpc.count("getSignaturesForAddress") == 0

    @pytest.mark.asyncio
    async def test_counts_only_prior_history(self, fake_rpc):
        fake_rpc.signatures["w1"] = make_sigs("w1", 200)
        tracer = FundingTracer(fake_rpc)
        # 30 signatures are older than w1-30
        assert await tracer.was_fresh_at("w1", "w1-30", 50) is True
        # 150 are older than w1-150
        assert await tracer.was_fresh_at("w1", "w1-150", 50) is False

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, fake_rpc):
        fake_rpc.signatures["w1"] = make_sigs("w1", 100)
        assert await FundingTracer(fake_rpc).was_fresh_at("w1", "w1-50", 50) is True


class TestFindFunderInTransaction:

    def test_inner_transfer(self):
        tx = {
            "transaction": {"message": {"accountKeys": [], "instructions": []}},
            "meta": {"innerInstructions": [{"instructions": [{
                "program": "system",
                "parsed": {"type": "transfer", "info": {"source": "F", "destination": "W", "lamports": 42}},
            }]}]},
        }
        assert find_funder_in_transaction(tx, "W") == ("F", 42)

    def test_balance_delta_within_tolerance(self):
        tx = {
            "transaction": {"message": {"accountKeys": ["F", "W", "X"], "instructions": []}},
            "meta": {
                "preBalances": [10_000_000, 0, 5_000],
                "postBalances": [8_995_000, 1_000_000, 5_000],
            },
        }
        # F lost 1_005_000 (incl. fee) and W gained 1_000_000
        assert find_funder_in_transaction(tx, "W", tolerance=10_000) == ("F", 1_000_000)
        assert find_funder_in_transaction(tx, "W", tolerance=1_000) is None

    def test_outgoing_only(self):
        assert find_funder_in_transaction(transfer_tx("W", "Z", 10), "W") is None


class TestGroupByFunder:

    @staticmethod
    def _rec(funder: str, category=None) -> FundingRecord:
        return FundingRecord(funder_address=funder, amount_lamports=1, signature="s", source_category=category)

    def test_cluster_of_five_meets_threshold(self):
        funders = {f"w{i}": self._rec("F") for i in range(5)}
        funders.update({"x1": self._rec("G"), "x2": self._rec("G"), "y": None})

        groups = group_by_funder(funders, 3)
        assert len(groups) == 1
        assert groups[0].funder_address == "F"
        assert groups[0].members == [f"w{i}" for i in range(5)]
        assert groups[0].size == 5

    def test_groups_sorted_by_size(self):
        funders = {f"a{i}": self._rec("A") for i in range(2)}
        funders.update({f"b{i}": self._rec("B") for i in range(4)})
        assert [g.funder_address for g in group_by_funder(funders, 2)] == ["B", "A"]

    def test_exchange_funders_excluded_by_default(self):
        funders = {f"w{i}": self._rec("CEX", EXCHANGE) for i in range(5)}
        assert group_by_funder(funders, 3) == []
        assert len(group_by_funder(funders, 3, exclude_exchanges=False)) == 1
