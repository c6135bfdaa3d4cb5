"""
Paginated holder enumeration.

Walks every token account of a mint through the DAS cursor API and folds
them into one :class:`Holder` per owner.  A failed or empty page ends the
walk instead of failing it: a partial holder set is still useful for
triage.  Pagination is sequential because each cursor comes from the
previous page.

For small top-N queries (N ≤ 20) the bounded ``getTokenLargestAccounts``
call is used instead of a full walk.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Iterable, Optional

from .data_sources.solana_rpc import MAX_PAGE_SIZE, SolanaRpcClient
from .errors import HolderScanError, MalformedResponseError
from .models import Holder

logger = logging.getLogger(__name__)

# getTokenLargestAccounts always returns (at most) this many accounts
LARGEST_ACCOUNTS_LIMIT = 20


class HolderEnumerator:
    """Builds holder sets for a mint from paged token-account listings."""

    def __init__(self, rpc: SolanaRpcClient, *, page_size: int = MAX_PAGE_SIZE) -> None:
        self._rpc = rpc
        self._page_size = page_size

    async def fetch_balances(self, mint: str) -> dict[str, int]:
        """Return ``owner -> raw amount`` over every page of token accounts."""
        balances: dict[str, int] = {}
        cursor: Optional[str] = None
        seen_cursors: set[str] = set()
        pages = 0

        while True:
            try:
                page = await self._rpc.get_token_accounts(
                    mint, limit=self._page_size, cursor=cursor
                )
            except HolderScanError as exc:
                logger.warning(
                    "[holders] %s: page %d failed (%s), keeping %d owners",
                    mint[:8], pages + 1, exc, len(balances),
                )
                break
            pages += 1

            if not page.accounts:
                break
            for account in page.accounts:
                # pages are disjoint, so last write wins equals a union
                balances[account.owner] = account.amount

            if not page.cursor or len(page.accounts) < self._page_size:
                break
            if page.cursor in seen_cursors:
                logger.warning("[holders] %s: cursor repeated, stopping", mint[:8])
                break
            seen_cursors.add(page.cursor)
            cursor = page.cursor

        logger.debug("[holders] %s: %d owners in %d pages", mint[:8], len(balances), pages)
        return balances

    async def enumerate(
        self,
        mint: str,
        min_balance: Decimal | int | str,
        *,
        decimals: int,
        total_supply: Optional[Decimal] = None,
        min_supply_share: Optional[Decimal] = None,
        exclude: Iterable[str] = (),
    ) -> list[Holder]:
        """Return holders of *mint* with at least *min_balance* tokens.

        When both *total_supply* and *min_supply_share* are given, holders
        owning less than that fraction of supply are dropped too.
        Addresses in *exclude* (pool vaults, ...) are never returned.
        """
        balances = await self.fetch_balances(mint)
        holders = [Holder.from_raw(owner, amount, decimals) for owner, amount in balances.items()]
        return filter_holders(
            holders,
            Decimal(min_balance),
            total_supply=total_supply,
            min_supply_share=min_supply_share,
            exclude=exclude,
        )

    async def top_holders(self, mint: str, count: int, *, decimals: int) -> list[Holder]:
        """Return the *count* largest holders of *mint*, largest first."""
        if count <= LARGEST_ACCOUNTS_LIMIT:
            holders = await self._largest_holders(mint, decimals)
        else:
            balances = await self.fetch_balances(mint)
            holders = [Holder.from_raw(o, a, decimals) for o, a in balances.items()]
        holders.sort(key=lambda h: h.raw_balance, reverse=True)
        return holders[:count]

    async def _largest_holders(self, mint: str, decimals: int) -> list[Holder]:
        accounts = await self._rpc.get_token_largest_accounts(mint)
        owners = await asyncio.gather(
            *(self._resolve_owner(acc.get("address", "")) for acc in accounts)
        )
        # One owner can hold several of the largest token accounts
        per_owner: dict[str, int] = {}
        for account, owner in zip(accounts, owners):
            if owner is None:
                continue
            try:
                amount = int(account["amount"])
            except (KeyError, TypeError, ValueError):
                logger.warning("[holders] bad largest-account entry %r", account)
                continue
            per_owner[owner] = per_owner.get(owner, 0) + amount
        return [Holder.from_raw(o, a, decimals) for o, a in per_owner.items()]

    async def _resolve_owner(self, token_account: str) -> Optional[str]:
        """Owner wallet of a token account, ``None`` when it cannot be read."""
        if not token_account:
            return None
        try:
            info = await self._rpc.get_account_info(token_account)
            return info["data"]["parsed"]["info"]["owner"]
        except (KeyError, TypeError):
            logger.warning("[holders] %s: account info has no parsed owner", token_account[:8])
            return None
        except MalformedResponseError as exc:
            logger.warning("[holders] %s: %s", token_account[:8], exc)
            return None


def filter_holders(
    holders: Iterable[Holder],
    min_balance: Decimal,
    *,
    total_supply: Optional[Decimal] = None,
    min_supply_share: Optional[Decimal] = None,
    exclude: Iterable[str] = (),
) -> list[Holder]:
    """Drop holders under *min_balance*, under the supply share, or excluded."""
    excluded = set(exclude)
    out: list[Holder] = []
    for holder in holders:
        if holder.address in excluded:
            continue
        if holder.decimal_balance < min_balance:
            continue
        if total_supply and min_supply_share is not None:
            if holder.decimal_balance / total_supply < min_supply_share:
                continue
        out.append(holder)
    return out
