"""
Bundle and team-cluster aggregation over raw trades.

A *bundle* is a set of buys by at least two distinct wallets that landed
in the same slot.  When a trade source does not report slots, buys are
bucketed into fixed time windows instead (default 10 seconds) as an
approximation of "same block".

Team analysis then combines two independent signals:
  1. wallets that take part in two or more bundles
  2. wallets that share a funder (from the funding tracer)
and reports the union's share of supply and of bundled SOL.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from .models import Bundle, FunderGroup, TeamBundleAnalysis, Trade, percentage

logger = logging.getLogger(__name__)

_MIN_BUNDLE_WALLETS = 2
_MIN_BUNDLE_APPEARANCES = 2


def find_bundles(trades: Iterable[Trade], window_seconds: int = 10) -> list[Bundle]:
    """Group buy trades into bundles, largest purchase first.

    Slot grouping is used only when every buy carries a slot, so a batch
    is never split across the two keying schemes.
    """
    if window_seconds < 1:
        raise ValueError("window_seconds must be >= 1")
    buys = [t for t in trades if t.is_buy]
    by_slot = bool(buys) and all(t.slot is not None for t in buys)

    groups: dict[int, list[Trade]] = {}
    for trade in buys:
        key = trade.slot if by_slot else trade.timestamp // window_seconds
        groups.setdefault(key, []).append(trade)  # type: ignore[arg-type]

    bundles: list[Bundle] = []
    for key, group in groups.items():
        wallets = {t.wallet for t in group}
        if len(wallets) < _MIN_BUNDLE_WALLETS:
            continue
        bundles.append(
            Bundle(
                time_key=key,
                key_kind="slot" if by_slot else "window",
                unique_wallets=wallets,
                tokens_bought=sum((t.token_amount for t in group), Decimal(0)),
                sol_spent=sum((t.sol_amount for t in group), Decimal(0)),
                trades=group,
            )
        )
    bundles.sort(key=lambda b: (-b.tokens_bought, b.time_key))
    logger.debug("[bundle] %d buys → %d bundles", len(buys), len(bundles))
    return bundles


def recurring_wallets(bundles: Iterable[Bundle], min_appearances: int = _MIN_BUNDLE_APPEARANCES) -> set[str]:
    """Wallets present in at least *min_appearances* bundles."""
    counts: dict[str, int] = {}
    for bundle in bundles:
        for wallet in bundle.unique_wallets:
            counts[wallet] = counts.get(wallet, 0) + 1
    return {w for w, n in counts.items() if n >= min_appearances}


def team_analysis(
    bundles: list[Bundle],
    funder_groups: Iterable[FunderGroup],
    total_supply: Decimal,
    *,
    held_amount: Optional[Decimal] = None,
) -> TeamBundleAnalysis:
    """Team wallets across *bundles* and their share of supply and liquidity.

    *held_amount* is the team's current balance when the caller fetched it;
    its supply share is reported alongside.
    """
    funder_groups = list(funder_groups)
    recurring = recurring_wallets(bundles)
    funder_linked = {m for g in funder_groups for m in g.members}
    team = recurring | funder_linked

    team_bundles: list[Bundle] = []
    tokens = Decimal(0)
    sol = Decimal(0)
    for bundle in bundles:
        team_trades = [t for t in bundle.trades if t.wallet in team]
        if not team_trades:
            continue
        bundle_tokens = sum((t.token_amount for t in team_trades), Decimal(0))
        bundle_sol = sum((t.sol_amount for t in team_trades), Decimal(0))
        tokens += bundle_tokens
        sol += bundle_sol
        team_bundles.append(bundle)

    total_bundled_sol = sum((b.sol_spent for b in bundles), Decimal(0))
    return TeamBundleAnalysis(
        team_wallets=sorted(team),
        recurring_wallets=sorted(recurring),
        funder_linked_wallets=sorted(funder_linked),
        funder_groups=funder_groups,
        team_bundles=team_bundles,
        tokens_bought=tokens,
        sol_spent=sol,
        supply_percentage=percentage(tokens, total_supply),
        liquidity_percentage=percentage(sol, total_bundled_sol),
        held_amount=held_amount,
        held_percentage=percentage(held_amount, total_supply) if held_amount is not None else None,
    )
