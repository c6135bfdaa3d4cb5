"""
Analysis runs: team supply, fresh wallets, bundles, early buyers, top holders.

Each run is one async function taking an explicit :class:`ScanClients`
bundle.  A run:

  1. captures the token's supply once (fatal ``TokenMetadataError`` if it
     cannot) so every percentage in the report divides by the same number
  2. selects wallets (holders above thresholds, or buyers from trades)
  3. drives the per-wallet work through a :class:`BatchOrchestrator`
  4. aggregates categories / funder groups / bundles into a report

All calls made during a run are tagged with the run name as main context,
and the report carries the resulting call/credit breakdown.
"""

from __future__ import annotations

import contextlib
import logging
from decimal import Decimal
from typing import Iterable, Iterator, Mapping, Optional

from .bot_detector import BotThresholds, PoolAndBotDetector
from .bundle_aggregator import find_bundles, team_analysis
from .call_counter import call_context
from .constants import EXCLUDED_ADDRESSES, KNOWN_LP_POOLS
from .data_sources._clients import ScanClients
from .data_sources.solana_rpc import SolanaRpcClient
from .errors import HolderScanError, ScanCancelledError, TokenMetadataError
from .funding_tracer import FundingTracer, group_by_funder
from .holder_enumerator import HolderEnumerator
from .logging_config import generate_run_id, run_id_ctx
from .models import (
    FLAGGED_CATEGORIES,
    AnalysisConfig,
    BundleReport,
    CategoryBucket,
    ClassifiedWallet,
    EarlyBuyer,
    EarlyBuyersReport,
    FreshWalletsReport,
    Holder,
    TeamSupplyReport,
    TokenInfo,
    TopHolder,
    TopHoldersReport,
    Trade,
    WalletCategory,
    WalletTradeStats,
    percentage,
    scale_amount,
)
from .orchestrator import BatchOrchestrator, CancellationToken
from .transactions import get_field
from .wallet_classifier import WalletClassifier, resolve_funding_clusters
from . import wallet_labels

logger = logging.getLogger(__name__)

SOL_DECIMALS = 9


@contextlib.contextmanager
def _run_scope(name: str) -> Iterator[None]:
    """Tag logs with a run id (unless the caller set one) and calls with *name*."""
    token = run_id_ctx.set(generate_run_id()) if run_id_ctx.get() == "-" else None
    try:
        with call_context(name):
            yield
    finally:
        if token is not None:
            run_id_ctx.reset(token)


def _orchestrator(
    orchestrator: Optional[BatchOrchestrator], cancel_token: Optional[CancellationToken]
) -> BatchOrchestrator:
    return orchestrator or BatchOrchestrator.from_config(cancel_token=cancel_token)


# ─────────────────────────────────────────────────────────────────────────────
# Token
# ─────────────────────────────────────────────────────────────────────────────

async def fetch_token_info(rpc: SolanaRpcClient, mint: str) -> TokenInfo:
    """Supply and decimals (required) plus symbol / name (best effort)."""
    with call_context("", "tokenInfo"):
        try:
            supply = await rpc.get_token_supply(mint)
            raw_supply = int(supply["amount"])
            decimals = int(supply["decimals"])
        except ScanCancelledError:
            raise
        except (HolderScanError, KeyError, TypeError, ValueError) as exc:
            raise TokenMetadataError(f"cannot fetch supply of {mint}: {exc}") from exc
        if raw_supply <= 0:
            raise TokenMetadataError(f"{mint} has zero supply")

        symbol = name = ""
        try:
            asset = await rpc.get_asset(mint)
            symbol = (
                get_field(asset, "content", "metadata", "symbol")
                or get_field(asset, "token_info", "symbol")
                or ""
            )
            name = get_field(asset, "content", "metadata", "name") or ""
        except ScanCancelledError:
            raise
        except HolderScanError as exc:
            logger.debug("[token] %s: no asset metadata (%s)", mint[:8], exc)

    return TokenInfo(
        mint=mint,
        symbol=symbol,
        name=name,
        decimals=decimals,
        raw_supply=raw_supply,
        total_supply=scale_amount(raw_supply, decimals),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Classification runs
# ─────────────────────────────────────────────────────────────────────────────

async def _select_holders(
    rpc: SolanaRpcClient, token: TokenInfo, cfg: AnalysisConfig
) -> list[Holder]:
    with call_context("", "holders"):
        holders = await HolderEnumerator(rpc).enumerate(
            token.mint,
            cfg.min_holder_balance,
            decimals=token.decimals,
            total_supply=token.total_supply,
            min_supply_share=cfg.min_supply_share,
            exclude=KNOWN_LP_POOLS,
        )
    holders.sort(key=lambda h: h.raw_balance, reverse=True)
    logger.info("[scan] %s: %d holders selected", token.mint[:8], len(holders))
    return holders


async def classify_holders(
    rpc: SolanaRpcClient,
    mint: str,
    holders: list[Holder],
    cfg: AnalysisConfig,
    *,
    cancel_token: Optional[CancellationToken] = None,
    orchestrator: Optional[BatchOrchestrator] = None,
) -> list[ClassifiedWallet]:
    """Classify every holder; timeouts and stray errors become ``error`` wallets."""
    classifier = WalletClassifier(rpc, mint, cfg, cancel_token=cancel_token)
    return await _orchestrator(orchestrator, cancel_token).run(
        holders,
        classifier.classify,
        on_timeout=lambda h: classifier.error_result(h, "classification timed out"),
        on_error=lambda h, exc: classifier.error_result(h, str(exc) or type(exc).__name__),
    )


def bucket_by_category(
    wallets: Iterable[ClassifiedWallet], total_supply: Decimal
) -> dict[WalletCategory, CategoryBucket]:
    """Wallet count, balance and supply share for every category (empty ones included)."""
    buckets = {category: CategoryBucket() for category in WalletCategory}
    for wallet in wallets:
        bucket = buckets[wallet.category]
        bucket.wallet_count += 1
        bucket.balance += wallet.decimal_balance
    for bucket in buckets.values():
        bucket.supply_percentage = percentage(bucket.balance, total_supply)
    return buckets


async def analyze_team_supply(
    clients: ScanClients,
    mint: str,
    *,
    cfg: Optional[AnalysisConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    orchestrator: Optional[BatchOrchestrator] = None,
) -> TeamSupplyReport:
    """Share of supply held by fresh, low-asset, inactive, bot and co-funded wallets."""
    cfg = cfg or AnalysisConfig.team_supply()
    with _run_scope("teamSupply"):
        clients.counter.reset("teamSupply")
        token = await fetch_token_info(clients.rpc, mint)
        holders = await _select_holders(clients.rpc, token, cfg)
        wallets = await classify_holders(
            clients.rpc, mint, holders, cfg,
            cancel_token=cancel_token, orchestrator=orchestrator,
        )
        wallets, groups = resolve_funding_clusters(wallets, cfg.cluster_size_threshold)

        team = [w for w in wallets if w.category in FLAGGED_CATEGORIES]
        team_balance = sum((w.decimal_balance for w in team), Decimal(0))
        logger.info(
            "[scan] %s: %d/%d team wallets, %d funder groups",
            mint[:8], len(team), len(wallets), len(groups),
        )
        return TeamSupplyReport(
            token=token,
            holders_analyzed=len(wallets),
            wallets=wallets,
            buckets=bucket_by_category(wallets, token.total_supply),
            funder_groups=groups,
            team_wallet_count=len(team),
            team_balance=team_balance,
            team_supply_percentage=percentage(team_balance, token.total_supply),
            call_report=clients.counter.report("teamSupply"),
        )


async def analyze_fresh_wallets(
    clients: ScanClients,
    mint: str,
    *,
    cfg: Optional[AnalysisConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    orchestrator: Optional[BatchOrchestrator] = None,
) -> FreshWalletsReport:
    """Holders with almost no history, with their funders."""
    cfg = cfg or AnalysisConfig.fresh_wallets()
    with _run_scope("freshWallets"):
        clients.counter.reset("freshWallets")
        token = await fetch_token_info(clients.rpc, mint)
        holders = await _select_holders(clients.rpc, token, cfg)
        wallets = await classify_holders(
            clients.rpc, mint, holders, cfg,
            cancel_token=cancel_token, orchestrator=orchestrator,
        )
        fresh = [w for w in wallets if w.category is WalletCategory.FRESH]
        fresh_balance = sum((w.decimal_balance for w in fresh), Decimal(0))
        groups = group_by_funder(
            {w.address: w.funding for w in fresh}, cfg.cluster_size_threshold
        )
        return FreshWalletsReport(
            token=token,
            holders_analyzed=len(wallets),
            fresh_wallets=fresh,
            fresh_balance=fresh_balance,
            fresh_supply_percentage=percentage(fresh_balance, token.total_supply),
            funder_groups=groups,
            errors=sum(1 for w in wallets if w.category is WalletCategory.ERROR),
            call_report=clients.counter.report("freshWallets"),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Trade-based runs
# ─────────────────────────────────────────────────────────────────────────────

async def _fetch_trades(clients: ScanClients, mint: str, max_trades: Optional[int]) -> list[Trade]:
    from config import BUNDLE_MAX_TRADES, BUNDLE_TRADE_PAGE_SIZE

    with call_context("", "trades"):
        return await clients.pumpfun.iter_trades(
            mint,
            max_trades=max_trades or BUNDLE_MAX_TRADES,
            page_size=BUNDLE_TRADE_PAGE_SIZE,
        )


async def _current_holdings(
    clients: ScanClients,
    mint: str,
    wallets: list[str],
    orchestrator: BatchOrchestrator,
) -> Decimal:
    async def _balance(wallet: str) -> Decimal:
        return await clients.rpc.get_token_balance(wallet, mint)

    def _unknown(wallet: str, exc: Optional[Exception] = None) -> Decimal:
        logger.warning("[bundle] %s: balance unavailable (%s)", wallet[:8], exc or "timeout")
        return Decimal(0)

    with call_context("", "holdings"):
        balances = await orchestrator.run(wallets, _balance, on_timeout=_unknown, on_error=_unknown)
    return sum(balances, Decimal(0))


async def analyze_bundles(
    clients: ScanClients,
    mint: str,
    *,
    team: bool = False,
    window_seconds: Optional[int] = None,
    max_trades: Optional[int] = None,
    cfg: Optional[AnalysisConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    orchestrator: Optional[BatchOrchestrator] = None,
) -> BundleReport:
    """Same-slot buy bundles, optionally with the team wallets behind them."""
    from config import BUNDLE_WINDOW_SECONDS

    cfg = cfg or AnalysisConfig.bundle_team()
    orchestrator = _orchestrator(orchestrator, cancel_token)
    with _run_scope("bundle"):
        clients.counter.reset("bundle")
        token = await fetch_token_info(clients.rpc, mint)
        trades = await _fetch_trades(clients, mint, max_trades)
        bundles = find_bundles(trades, window_seconds or BUNDLE_WINDOW_SECONDS)

        team_result = None
        if team and bundles:
            wallets = sorted({w for b in bundles for w in b.unique_wallets})
            tracer = FundingTracer.from_config(clients.rpc, cfg)

            def _untraced(wallet: str, exc: Optional[Exception] = None) -> None:
                logger.warning("[bundle] %s: funding trace failed (%s)", wallet[:8], exc or "timeout")
                return None

            with call_context("", "funding"):
                records = await orchestrator.run(
                    wallets, tracer.trace, on_timeout=_untraced, on_error=_untraced
                )
            groups = group_by_funder(dict(zip(wallets, records)), cfg.cluster_size_threshold)
            team_wallets = team_analysis(bundles, groups, token.total_supply).team_wallets
            held = await _current_holdings(clients, mint, team_wallets, orchestrator)
            team_result = team_analysis(bundles, groups, token.total_supply, held_amount=held)

        total_tokens = sum((b.tokens_bought for b in bundles), Decimal(0))
        return BundleReport(
            token=token,
            trades_analyzed=len(trades),
            bundles=bundles,
            total_tokens_bundled=total_tokens,
            total_sol_spent=sum((b.sol_spent for b in bundles), Decimal(0)),
            bundled_supply_percentage=percentage(total_tokens, token.total_supply),
            team=team_result,
            call_report=clients.counter.report("bundle"),
        )


def first_buyers(trades: Iterable[Trade], count: int) -> list[tuple[Trade, list[Trade]]]:
    """The first *count* distinct buyers with their first buy and all their buys."""
    buys = sorted(
        (t for t in trades if t.is_buy and t.wallet not in EXCLUDED_ADDRESSES),
        key=lambda t: (t.timestamp, t.slot or 0),
    )
    order: list[str] = []
    by_wallet: dict[str, list[Trade]] = {}
    for trade in buys:
        if trade.wallet not in by_wallet:
            if len(order) >= count:
                continue
            order.append(trade.wallet)
            by_wallet[trade.wallet] = []
        by_wallet[trade.wallet].append(trade)
    return [(by_wallet[w][0], by_wallet[w]) for w in order]


async def analyze_early_buyers(
    clients: ScanClients,
    mint: str,
    *,
    count: int = 50,
    fresh_threshold: Optional[int] = None,
    max_trades: Optional[int] = None,
    cfg: Optional[AnalysisConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    orchestrator: Optional[BatchOrchestrator] = None,
) -> EarlyBuyersReport:
    """First buyers of the token, judged as of the moment they first bought."""
    from config import EARLY_BUYER_FRESH_THRESHOLD, SIGNATURE_PAGE_LIMIT

    cfg = cfg or AnalysisConfig()
    threshold = fresh_threshold or EARLY_BUYER_FRESH_THRESHOLD
    if not 1 <= threshold < SIGNATURE_PAGE_LIMIT:
        raise ValueError(f"fresh_threshold must be below {SIGNATURE_PAGE_LIMIT}, got {threshold}")
    tracer = FundingTracer.from_config(clients.rpc, cfg)

    with _run_scope("earlyBuyers"):
        clients.counter.reset("earlyBuyers")
        token = await fetch_token_info(clients.rpc, mint)
        trades = await _fetch_trades(clients, mint, max_trades)
        buyers = first_buyers(trades, count)

        async def _analyze(entry: tuple[Trade, list[Trade]]) -> EarlyBuyer:
            first, buys = entry
            base = EarlyBuyer(
                wallet=first.wallet,
                first_buy=first,
                tokens_bought=sum((t.token_amount for t in buys), Decimal(0)),
                sol_spent=sum((t.sol_amount for t in buys), Decimal(0)),
            )
            if not first.signature:
                return base.model_copy(update={"error": "first buy has no signature"})
            with call_context("", "asOf"):
                was_fresh = await tracer.was_fresh_at(first.wallet, first.signature, threshold)
                funding = await tracer.trace(first.wallet, before=first.signature)
            return base.model_copy(update={"was_fresh": was_fresh, "funding": funding})

        def _failed(entry: tuple[Trade, list[Trade]], exc: Optional[Exception] = None) -> EarlyBuyer:
            first, buys = entry
            return EarlyBuyer(
                wallet=first.wallet,
                first_buy=first,
                tokens_bought=sum((t.token_amount for t in buys), Decimal(0)),
                sol_spent=sum((t.sol_amount for t in buys), Decimal(0)),
                error=str(exc) if exc else "timed out",
            )

        results = await _orchestrator(orchestrator, cancel_token).run(
            buyers, _analyze, on_timeout=_failed, on_error=_failed
        )
        groups = group_by_funder(
            {b.wallet: b.funding for b in results}, cfg.cluster_size_threshold
        )
        return EarlyBuyersReport(
            token=token,
            buyers=results,
            fresh_count=sum(1 for b in results if b.was_fresh),
            funder_groups=groups,
            call_report=clients.counter.report("earlyBuyers"),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Top holders
# ─────────────────────────────────────────────────────────────────────────────

async def scan_top_holders(
    clients: ScanClients,
    mint: str,
    *,
    count: int = 20,
    trade_stats: Optional[Mapping[str, WalletTradeStats]] = None,
    cancel_token: Optional[CancellationToken] = None,
    orchestrator: Optional[BatchOrchestrator] = None,
) -> TopHoldersReport:
    """Largest holders with SOL balance, pool recognition and bot detection.

    Bot detection needs *trade_stats* (per-wallet buy/sell counters from a
    trading-stats source); without them non-pool holders are ``unknown``.
    """
    trade_stats = trade_stats or {}
    detector = PoolAndBotDetector(clients.rpc, BotThresholds.from_config())

    with _run_scope("topHolders"):
        clients.counter.reset("topHolders")
        token = await fetch_token_info(clients.rpc, mint)
        with call_context("", "holders"):
            holders = await HolderEnumerator(clients.rpc).top_holders(
                mint, count, decimals=token.decimals
            )

        async def _scan(holder: Holder) -> TopHolder:
            try:
                sol: Optional[Decimal] = scale_amount(
                    await clients.rpc.get_balance(holder.address), SOL_DECIMALS
                )
            except ScanCancelledError:
                raise
            except HolderScanError as exc:
                logger.debug("[top] %s: no SOL balance (%s)", holder.address[:8], exc)
                sol = None
            activity, pool = await detector.analyze(holder.address, trade_stats.get(holder.address))
            known = wallet_labels.lookup(holder.address)
            return TopHolder(
                holder=holder,
                supply_percentage=percentage(holder.decimal_balance, token.total_supply),
                sol_balance=sol,
                activity=activity,
                label=pool or (known.name if known else None),
            )

        def _plain(holder: Holder, exc: Optional[Exception] = None) -> TopHolder:
            return TopHolder(
                holder=holder,
                supply_percentage=percentage(holder.decimal_balance, token.total_supply),
            )

        results = await _orchestrator(orchestrator, cancel_token).run(
            holders, _scan, on_timeout=_plain, on_error=_plain
        )
        return TopHoldersReport(
            token=token,
            holders=results,
            call_report=clients.counter.report("topHolders"),
        )
