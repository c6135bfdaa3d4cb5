"""
Inactivity helpers: token-account history and swap recognition.

A holder is *inactive* when the wallet had not swapped for a long time
before it opened its token account for the analysed mint, the typical
profile of a dormant wallet reactivated to receive a team allocation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .constants import SWAP_PROGRAMS, TEAMBOT_ALLOWED_MINTS
from .data_sources.solana_rpc import MAX_PAGE_SIZE, SolanaRpcClient
from .errors import NotFoundError
from .transactions import account_keys, token_balance_deltas, token_balance_mints

logger = logging.getLogger(__name__)

_MAX_ATA_PAGES   = 10    # 10 x 1000 signatures to reach the token account's first tx
_SWAP_PAGE_SIZE  = 100   # owner signatures per page when hunting the last swap
_MAX_SWAP_PAGES  = 3     # every signature costs a getTransaction, keep this small

SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class InactivityResult:
    ata_address: str
    ata_signature: Optional[str]
    ata_time: Optional[int]
    swap_signature: Optional[str] = None
    swap_time: Optional[int] = None

    @property
    def days_since_last_activity(self) -> Optional[float]:
        if self.ata_time is None or self.swap_time is None:
            return None
        return (self.ata_time - self.swap_time) / SECONDS_PER_DAY


async def find_token_account(rpc: SolanaRpcClient, owner: str, mint: str) -> str:
    """Address of *owner*'s token account for *mint*.

    Raises ``NotFoundError`` when the wallet has none.
    """
    accounts = await rpc.get_token_accounts_by_owner(owner, mint=mint)
    for account in accounts:
        pubkey = account.get("pubkey") if isinstance(account, dict) else None
        if pubkey:
            return pubkey
    raise NotFoundError(f"{owner} has no token account for {mint}")


async def find_first_transaction(
    rpc: SolanaRpcClient, address: str, *, max_pages: int = _MAX_ATA_PAGES
) -> Optional[dict]:
    """Oldest signature of *address*, walking ``before`` cursors backwards."""
    before: Optional[str] = None
    oldest: Optional[dict] = None
    for _ in range(max_pages):
        page = await rpc.get_signatures_for_address(address, limit=MAX_PAGE_SIZE, before=before)
        if not page:
            break
        oldest = page[-1]
        before = oldest["signature"]
        if len(page) < MAX_PAGE_SIZE:
            break
    else:
        logger.debug("[inactivity] %s: history exceeds %d pages", address[:8], max_pages)
    return oldest


async def find_last_swap_before(
    rpc: SolanaRpcClient,
    owner: str,
    before_signature: str,
    *,
    page_size: int = _SWAP_PAGE_SIZE,
    max_pages: int = _MAX_SWAP_PAGES,
) -> Optional[dict]:
    """Most recent swap signature of *owner* strictly older than *before_signature*."""
    before = before_signature
    for _ in range(max_pages):
        page = await rpc.get_signatures_for_address(owner, limit=page_size, before=before)
        if not page:
            return None
        for sig_info in page:
            if sig_info.get("err"):
                continue
            tx = await rpc.get_transaction(sig_info["signature"])
            if tx and is_swap_transaction(tx):
                return sig_info
        if len(page) < page_size:
            return None
        before = page[-1]["signature"]
    return None


async def check_inactivity(rpc: SolanaRpcClient, owner: str, mint: str) -> InactivityResult:
    """Locate the token account, its first transaction and the last prior swap.

    Raises ``NotFoundError`` when *owner* has no token account for *mint*.
    """
    ata = await find_token_account(rpc, owner, mint)
    first = await find_first_transaction(rpc, ata)
    if first is None:
        return InactivityResult(ata_address=ata, ata_signature=None, ata_time=None)
    result = InactivityResult(
        ata_address=ata,
        ata_signature=first["signature"],
        ata_time=first.get("blockTime"),
    )
    swap = await find_last_swap_before(rpc, owner, first["signature"])
    if swap is None:
        return result
    return InactivityResult(
        ata_address=ata,
        ata_signature=result.ata_signature,
        ata_time=result.ata_time,
        swap_signature=swap["signature"],
        swap_time=swap.get("blockTime"),
    )


def is_swap_transaction(tx: dict) -> bool:
    """Heuristic: known swap program, an inner ``transfer`` or a token balance change."""
    if SWAP_PROGRAMS.intersection(account_keys(tx)):
        return True
    meta = tx.get("meta") or {}
    for group in meta.get("innerInstructions") or []:
        for ix in (group or {}).get("instructions") or []:
            parsed = ix.get("parsed") if isinstance(ix, dict) else None
            if isinstance(parsed, dict) and parsed.get("type") == "transfer":
                return True
    return any(delta != 0 for delta in token_balance_deltas(tx).values())


def touches_only_mint(tx: dict, mint: str) -> bool:
    """True when the only non-SOL token moved by *tx* is *mint*."""
    mints = token_balance_mints(tx) - TEAMBOT_ALLOWED_MINTS
    return mints == {mint}
