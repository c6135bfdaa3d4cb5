"""
Helpers for reading ``jsonParsed`` transactions.

Pure functions, no I/O.  Every accessor tolerates missing keys and
returns an empty value instead of raising, since RPC nodes omit fields
freely (e.g. ``innerInstructions`` on old transactions).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterator, Optional


def account_keys(tx: dict) -> list[str]:
    """Account keys of *tx* as plain strings.

    accountKeys can be list[str] (legacy) or list[{pubkey, ...}] (jsonParsed).
    """
    message = (tx.get("transaction") or {}).get("message") or {}
    keys: list[str] = []
    for k in message.get("accountKeys") or []:
        if isinstance(k, str):
            keys.append(k)
        elif isinstance(k, dict):
            keys.append(k.get("pubkey", ""))
    return keys


def iter_instructions(tx: dict) -> Iterator[dict]:
    """Yield top-level instructions, then every inner instruction."""
    message = (tx.get("transaction") or {}).get("message") or {}
    for ix in message.get("instructions") or []:
        if isinstance(ix, dict):
            yield ix
    meta = tx.get("meta") or {}
    for group in meta.get("innerInstructions") or []:
        for ix in (group or {}).get("instructions") or []:
            if isinstance(ix, dict):
                yield ix


def is_system_transfer(ix: dict) -> bool:
    parsed = ix.get("parsed")
    return (
        ix.get("program") == "system"
        and isinstance(parsed, dict)
        and parsed.get("type") in ("transfer", "transferWithSeed")
    )


def block_time(tx: dict) -> Optional[int]:
    value = tx.get("blockTime")
    return int(value) if isinstance(value, (int, float)) else None


def to_datetime(ts: Optional[int]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def token_balance_mints(tx: dict, owner: Optional[str] = None) -> set[str]:
    """Mints appearing in pre/post token balances, optionally for one owner."""
    meta = tx.get("meta") or {}
    mints: set[str] = set()
    for entry in (meta.get("preTokenBalances") or []) + (meta.get("postTokenBalances") or []):
        if not isinstance(entry, dict):
            continue
        if owner is not None and entry.get("owner") != owner:
            continue
        mint = entry.get("mint")
        if mint:
            mints.add(mint)
    return mints


def _raw_amount(entry: dict) -> int:
    try:
        return int((entry.get("uiTokenAmount") or {}).get("amount", 0))
    except (TypeError, ValueError):
        return 0


def token_balance_deltas(tx: dict) -> dict[tuple[int, str], int]:
    """``(accountIndex, mint) -> post - pre`` raw amount for every token balance."""
    meta = tx.get("meta") or {}
    pre: dict[tuple[int, str], int] = {}
    post: dict[tuple[int, str], int] = {}
    for source, target in (
        (meta.get("preTokenBalances") or [], pre),
        (meta.get("postTokenBalances") or [], post),
    ):
        for entry in source:
            if isinstance(entry, dict) and "accountIndex" in entry:
                target[(entry["accountIndex"], entry.get("mint", ""))] = _raw_amount(entry)
    return {key: post.get(key, 0) - pre.get(key, 0) for key in set(pre) | set(post)}


def get_field(obj: Any, *path: str) -> Any:
    """``obj[p0][p1]...`` or ``None`` when any step is missing."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj
