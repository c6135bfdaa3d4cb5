"""
Command line interface for the Holder Scan agent.

Usage::

    python src/main.py --mint <TOKEN_MINT> [--mode team-supply] [--json]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import os

# Ensure ``src/`` is on the import path
sys.path.insert(0, os.path.dirname(__file__))

import sentry_sdk

from config import SENTRY_DSN, SENTRY_ENVIRONMENT, SENTRY_TRACES_SAMPLE_RATE
from holder_scan import (
    analyze_bundles,
    analyze_early_buyers,
    analyze_fresh_wallets,
    analyze_team_supply,
    open_clients,
    scan_top_holders,
)
from holder_scan.errors import HolderScanError, ScanCancelledError
from holder_scan.logging_config import setup_logging
from holder_scan.models import FLAGGED_CATEGORIES

logger = logging.getLogger("holder_scan.cli")

MODES = ("team-supply", "fresh", "bundle", "bundle-team", "early-buyers", "top-holders")


async def _analyze(mint: str, mode: str, count: int | None):
    async with open_clients() as clients:
        if mode == "team-supply":
            return await analyze_team_supply(clients, mint)
        if mode == "fresh":
            return await analyze_fresh_wallets(clients, mint)
        if mode in ("bundle", "bundle-team"):
            return await analyze_bundles(clients, mint, team=mode == "bundle-team")
        if mode == "early-buyers":
            return await analyze_early_buyers(clients, mint, count=count or 50)
        return await scan_top_holders(clients, mint, count=count or 20)


def _print_summary(mode: str, report) -> None:
    token = report.token
    print("=" * 60)
    print(f"  Holder Scan – {mode}")
    print("=" * 60)
    print(f"  Mint         : {token.mint}")
    print(f"  Token        : {token.name or '?'} ({token.symbol or '?'})")
    print(f"  Supply       : {token.total_supply:,f}")
    print("-" * 60)

    if mode == "team-supply":
        print(f"  Holders      : {report.holders_analyzed}")
        for category, bucket in report.buckets.items():
            if not bucket.wallet_count:
                continue
            flag = "*" if category in FLAGGED_CATEGORIES else " "
            print(
                f"   {flag} {category.value:20s} {bucket.wallet_count:>5}  "
                f"{bucket.supply_percentage:6.2f}%"
            )
        print(f"  Team share   : {report.team_supply_percentage:.2f}% "
              f"({report.team_wallet_count} wallets)")
        print(f"  Funder groups: {len(report.funder_groups)}")
    elif mode == "fresh":
        print(f"  Holders      : {report.holders_analyzed}")
        print(f"  Fresh        : {len(report.fresh_wallets)} wallets, "
              f"{report.fresh_supply_percentage:.2f}% of supply")
        print(f"  Funder groups: {len(report.funder_groups)}")
        print(f"  Errors       : {report.errors}")
    elif mode in ("bundle", "bundle-team"):
        print(f"  Trades       : {report.trades_analyzed}")
        print(f"  Bundles      : {len(report.bundles)}, "
              f"{report.bundled_supply_percentage:.2f}% of supply")
        for i, b in enumerate(report.bundles[:10], 1):
            print(f"    {i:>2}. {b.key_kind} {b.time_key}  wallets={len(b.unique_wallets)}  "
                  f"tokens={b.tokens_bought:,.0f}  sol={b.sol_spent:.3f}")
        if report.team is not None:
            team = report.team
            print(f"  Team wallets : {len(team.team_wallets)}  "
                  f"supply={team.supply_percentage:.2f}%  "
                  f"liquidity={team.liquidity_percentage:.2f}%")
            if team.held_percentage is not None:
                print(f"  Team holds   : {team.held_percentage:.2f}%")
    elif mode == "early-buyers":
        print(f"  Buyers       : {len(report.buyers)} ({report.fresh_count} fresh)")
        for i, b in enumerate(report.buyers[:10], 1):
            fresh = {True: "fresh", False: "", None: "?"}[b.was_fresh]
            print(f"    {i:>2}. {b.wallet[:12]}…  sol={b.sol_spent:.3f}  {fresh}")
        print(f"  Funder groups: {len(report.funder_groups)}")
    else:
        for i, h in enumerate(report.holders, 1):
            name = h.label or h.holder.address[:12] + "…"
            print(f"    {i:>2}. {name:20s} {h.supply_percentage:6.2f}%  {h.activity.value}")

    calls = report.call_report
    print("-" * 60)
    print(f"  Calls        : {calls.get('total_calls', 0)} "
          f"({calls.get('total_credits', 0)} credits)")
    print("=" * 60)


async def _run(mint: str, mode: str, count: int | None, as_json: bool) -> int:
    """Async entry point."""
    try:
        report = await _analyze(mint, mode, count)
    except ScanCancelledError:
        logger.warning("scan cancelled")
        return 130
    except HolderScanError as exc:
        logger.error("scan failed: %s", exc)
        return 1

    if as_json:
        print(report.model_dump_json(indent=2))
    else:
        _print_summary(mode, report)
    return 0


def main() -> None:
    """Entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Classify the holders of a Solana token"
    )
    parser.add_argument(
        "--mint",
        required=True,
        help="Mint address of the token to analyse",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="team-supply",
        help="Analysis to run (default: team-supply)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Number of early buyers / top holders",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Output result as raw JSON",
    )
    args = parser.parse_args()

    setup_logging()
    if SENTRY_DSN:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=SENTRY_ENVIRONMENT,
            traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
            send_default_pii=False,
        )
        logger.info("Sentry initialised (env=%s)", SENTRY_ENVIRONMENT)

    sys.exit(asyncio.run(_run(args.mint, args.mode, args.count, args.as_json)))


if __name__ == "__main__":
    main()
