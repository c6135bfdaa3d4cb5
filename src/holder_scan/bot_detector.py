"""
Liquidity-pool and trading-bot recognition for top-holder scans.

Pools are recognised on chain: the Raydium authority by address, other
launchpad / AMM pools by the program that owns the account.  Bots are
recognised from trade counters: a very large number of trades that are
either almost perfectly balanced between buys and sells or carry an
outsized unrealized profit looks like market making, not a person.

Both results are informational; nothing is dropped from a scan because of
them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .constants import POOL_OWNER_PROGRAMS, RAYDIUM_AUTHORITY
from .data_sources.solana_rpc import SolanaRpcClient
from .errors import HolderScanError, ScanCancelledError
from .models import HolderActivity, WalletTradeStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotThresholds:
    min_total_trades: int = 10_000
    max_buy_sell_imbalance: float = 0.05
    min_unrealized_profit: float = 2_000_000.0

    @classmethod
    def from_config(cls) -> "BotThresholds":
        from config import BOT_BUY_SELL_RATIO, BOT_MIN_TOTAL_TRADES, BOT_UNREALIZED_PROFIT_USD

        return cls(
            min_total_trades=BOT_MIN_TOTAL_TRADES,
            max_buy_sell_imbalance=BOT_BUY_SELL_RATIO,
            min_unrealized_profit=BOT_UNREALIZED_PROFIT_USD,
        )


def is_bot_wallet(stats: WalletTradeStats, thresholds: BotThresholds = BotThresholds()) -> bool:
    total = stats.total_trades
    if total < thresholds.min_total_trades:
        return False
    imbalance = abs(stats.buy_count - stats.sell_count) / total
    return (
        imbalance < thresholds.max_buy_sell_imbalance
        or stats.unrealized_profit_usd > thresholds.min_unrealized_profit
    )


class PoolAndBotDetector:
    """Tags a holder as pool, bot, normal or unknown."""

    def __init__(self, rpc: SolanaRpcClient, thresholds: Optional[BotThresholds] = None) -> None:
        self._rpc = rpc
        self._thresholds = thresholds or BotThresholds()

    async def check_liquidity_pool(self, address: str) -> Optional[str]:
        """Pool name if *address* is a known liquidity pool, else ``None``."""
        try:
            info = await self._rpc.get_account_info(address)
        except ScanCancelledError:
            raise
        except HolderScanError as exc:
            logger.warning("[pool] %s: account lookup failed (%s)", address[:8], exc)
            return None
        if not info:
            return None
        if address == RAYDIUM_AUTHORITY:
            return "Raydium"
        return POOL_OWNER_PROGRAMS.get(info.get("owner", ""))

    async def analyze(
        self, address: str, stats: Optional[WalletTradeStats] = None
    ) -> tuple[HolderActivity, Optional[str]]:
        """Return ``(activity, pool_name)`` for *address*."""
        pool = await self.check_liquidity_pool(address)
        if pool:
            return HolderActivity.POOL, pool
        if stats is None:
            return HolderActivity.UNKNOWN, None
        if is_bot_wallet(stats, self._thresholds):
            logger.debug("[pool] %s identified as bot", address[:8])
            return HolderActivity.BOT, None
        return HolderActivity.NORMAL, None
