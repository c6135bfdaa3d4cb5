"""
Wallet classification state machine.

Each holder walks the same fixed sequence of checks and stops at the first
one that assigns a category:

    FRESH_CHECK → ASSET_COUNT_CHECK → INACTIVITY_CHECK → TEAM_BOT_CHECK
                → FUNDING_TRACE → NORMAL

Which checks run is decided by :class:`AnalysisConfig`; a disabled check is
skipped, never reordered.  The funding trace does not assign a category on
its own: whether a funder is suspicious depends on how many *other*
analysed wallets share it, which is only known once the whole batch has
been classified (see :func:`resolve_funding_clusters`).

Failures are contained per wallet: any error raised inside a check ends
that wallet in ``error`` with the message attached, while cancellation
always propagates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from .call_counter import call_context
from .data_sources.solana_rpc import MAX_PAGE_SIZE, SolanaRpcClient
from .errors import HolderScanError, NotFoundError, ScanCancelledError
from .funding_tracer import FundingTracer, group_by_funder
from .inactivity import check_inactivity, touches_only_mint
from .models import (
    AnalysisConfig,
    ClassifiedWallet,
    FunderGroup,
    FundingRecord,
    Holder,
    WalletCategory,
)
from .orchestrator import CancellationToken

logger = logging.getLogger(__name__)

_FUNGIBLE_INTERFACES = frozenset({"FungibleToken", "FungibleAsset"})
_MAX_ASSET_PAGES = 5


class ClassificationState(str, Enum):
    FRESH_CHECK = "fresh_check"
    ASSET_COUNT_CHECK = "asset_count_check"
    INACTIVITY_CHECK = "inactivity_check"
    TEAM_BOT_CHECK = "team_bot_check"
    FUNDING_TRACE = "funding_trace"


STATE_ORDER: tuple[ClassificationState, ...] = tuple(ClassificationState)


@dataclass
class _WalletContext:
    """Facts gathered about one wallet while it moves through the checks."""

    holder: Holder
    transaction_count: Optional[int] = None
    asset_count: Optional[int] = None
    days_since_last_activity: Optional[float] = None
    funding: Optional[FundingRecord] = None


class WalletClassifier:
    """Assigns exactly one :class:`WalletCategory` to each holder of *mint*."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        mint: str,
        cfg: AnalysisConfig,
        *,
        tracer: Optional[FundingTracer] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self._rpc = rpc
        self._mint = mint
        self._cfg = cfg
        self._tracer = tracer or FundingTracer.from_config(rpc, cfg)
        self._cancel = cancel_token
        self._steps: dict[ClassificationState, Callable[[_WalletContext], Awaitable[Optional[WalletCategory]]]] = {
            ClassificationState.FRESH_CHECK: self._fresh_check,
            ClassificationState.ASSET_COUNT_CHECK: self._asset_count_check,
            ClassificationState.INACTIVITY_CHECK: self._inactivity_check,
            ClassificationState.TEAM_BOT_CHECK: self._team_bot_check,
            ClassificationState.FUNDING_TRACE: self._funding_trace,
        }

    @property
    def enabled_states(self) -> list[ClassificationState]:
        switches = {
            ClassificationState.FRESH_CHECK: self._cfg.check_fresh,
            ClassificationState.ASSET_COUNT_CHECK: self._cfg.check_asset_count,
            ClassificationState.INACTIVITY_CHECK: self._cfg.check_inactivity,
            ClassificationState.TEAM_BOT_CHECK: self._cfg.check_team_bot,
            ClassificationState.FUNDING_TRACE: self._cfg.trace_funding,
        }
        return [state for state in STATE_ORDER if switches[state]]

    async def classify(self, holder: Holder) -> ClassifiedWallet:
        """Run the enabled checks for *holder*; first matching category wins."""
        if self._cancel is not None:
            self._cancel.raise_if_cancelled()
        ctx = _WalletContext(holder)
        try:
            for state in self.enabled_states:
                with call_context("", state.value):
                    category = await self._steps[state](ctx)
                if category is not None:
                    return _build(ctx, category)
            return _build(ctx, WalletCategory.NORMAL)
        except (ScanCancelledError, asyncio.CancelledError):
            raise
        except Exception as exc:
            logger.warning("[classify] %s failed: %s", holder.address[:8], exc)
            return _build(ctx, WalletCategory.ERROR, error=str(exc) or type(exc).__name__)

    def error_result(self, holder: Holder, message: str) -> ClassifiedWallet:
        """Result recorded for a wallet that could not be classified at all."""
        return _build(_WalletContext(holder), WalletCategory.ERROR, error=message)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def _fresh_check(self, ctx: _WalletContext) -> Optional[WalletCategory]:
        threshold = self._cfg.fresh_wallet_threshold
        sigs = await self._rpc.get_signatures_for_address(
            ctx.holder.address, limit=threshold + 1
        )
        ctx.transaction_count = len(sigs)
        if len(sigs) >= threshold:
            return None
        if self._cfg.trace_fresh_funding:
            ctx.funding = await self._trace_quietly(ctx.holder.address)
        return WalletCategory.FRESH

    async def _asset_count_check(self, ctx: _WalletContext) -> Optional[WalletCategory]:
        if await self._asset_count(ctx) <= self._cfg.max_assets_threshold:
            return WalletCategory.FEW_ASSETS
        return None

    async def _inactivity_check(self, ctx: _WalletContext) -> Optional[WalletCategory]:
        try:
            result = await check_inactivity(self._rpc, ctx.holder.address, self._mint)
        except NotFoundError:
            return WalletCategory.NO_TOKEN
        days = result.days_since_last_activity
        if days is None:
            # no ATA history, or no swap before the ATA was opened
            return WalletCategory.NO_ATA_TRANSACTION
        ctx.days_since_last_activity = days
        if days > self._cfg.inactivity_threshold_days:
            return WalletCategory.INACTIVE
        return None

    async def _team_bot_check(self, ctx: _WalletContext) -> Optional[WalletCategory]:
        if await self._asset_count(ctx) > self._cfg.max_assets_threshold:
            return None
        sigs = await self._rpc.get_signatures_for_address(
            ctx.holder.address, limit=self._cfg.teambot_tx_check_limit
        )
        if not sigs:
            return None
        for sig_info in sigs:
            tx = await self._rpc.get_transaction(sig_info["signature"])
            if not tx or not touches_only_mint(tx, self._mint):
                return None
        return WalletCategory.TEAMBOT

    async def _funding_trace(self, ctx: _WalletContext) -> Optional[WalletCategory]:
        ctx.funding = await self._tracer.trace(ctx.holder.address)
        return None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _asset_count(self, ctx: _WalletContext) -> int:
        if ctx.asset_count is None:
            ctx.asset_count = await count_fungible_assets(self._rpc, ctx.holder.address)
        return ctx.asset_count

    async def _trace_quietly(self, address: str) -> Optional[FundingRecord]:
        """Funding enrichment that never changes the wallet's category."""
        try:
            return await self._tracer.trace(address)
        except ScanCancelledError:
            raise
        except HolderScanError as exc:
            logger.debug("[classify] %s: funding trace failed (%s)", address[:8], exc)
            return None


async def count_fungible_assets(
    rpc: SolanaRpcClient, owner: str, *, max_pages: int = _MAX_ASSET_PAGES
) -> int:
    """Number of distinct fungible assets held by *owner*."""
    seen: set[str] = set()
    for page in range(1, max_pages + 1):
        result = await rpc.get_assets_by_owner(owner, page=page, limit=MAX_PAGE_SIZE)
        items = result["items"]
        for item in items:
            if isinstance(item, dict) and item.get("interface") in _FUNGIBLE_INTERFACES:
                seen.add(item.get("id", ""))
        if len(items) < MAX_PAGE_SIZE:
            break
    seen.discard("")
    return len(seen)


def resolve_funding_clusters(
    wallets: Iterable[ClassifiedWallet],
    threshold: int,
    *,
    exclude_exchanges: bool = True,
) -> tuple[list[ClassifiedWallet], list[FunderGroup]]:
    """Promote ``normal`` wallets that share a funder with enough others.

    Every wallet with a funding record counts towards its funder's group,
    but only wallets still ``normal`` change category; earlier checks keep
    precedence.  Returns new wallet records and the surfaced groups.
    """
    wallets = list(wallets)
    groups = group_by_funder(
        {w.address: w.funding for w in wallets if w.funding is not None},
        threshold,
        exclude_exchanges=exclude_exchanges,
    )
    clustered = {member for group in groups for member in group.members}
    resolved = [
        w.model_copy(update={"category": WalletCategory.SUSPICIOUS_FUNDING})
        if w.category is WalletCategory.NORMAL and w.address in clustered
        else w
        for w in wallets
    ]
    return resolved, groups


def _build(
    ctx: _WalletContext, category: WalletCategory, *, error: Optional[str] = None
) -> ClassifiedWallet:
    funding = ctx.funding
    return ClassifiedWallet(
        address=ctx.holder.address,
        raw_balance=ctx.holder.raw_balance,
        decimal_balance=ctx.holder.decimal_balance,
        category=category,
        days_since_last_activity=ctx.days_since_last_activity,
        asset_count=ctx.asset_count,
        transaction_count=ctx.transaction_count,
        funder_address=funding.funder_address if funding else None,
        funding=funding,
        error=error,
    )
