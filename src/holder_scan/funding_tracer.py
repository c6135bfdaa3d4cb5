"""
Funding provenance tracing.

Answers "who sent this wallet its first SOL?".  The wallet's oldest
transactions are scanned oldest first and the first one that credits the
wallet wins, either through a parsed system transfer or, failing that,
through a matching pair of balance changes.

Wallets with a full page of signatures (``max_signatures``) are skipped:
their oldest history is out of reach of a single page and attributing
them would cost far more calls than the signal is worth.

An *as-of* variant restricts both the freshness count and the funding
scan to history strictly older than an anchor signature, so early buyers
can be judged on what the chain looked like at the moment they bought.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

import config

from . import wallet_labels
from .data_sources.solana_rpc import SolanaRpcClient
from .errors import MalformedResponseError
from .models import AnalysisConfig, FunderGroup, FundingRecord
from .transactions import account_keys, block_time, is_system_transfer, iter_instructions, to_datetime

logger = logging.getLogger(__name__)


class FundingTracer:
    """Finds the funder of a wallet from its oldest transactions."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        max_signatures: Optional[int] = None,
        max_transactions: Optional[int] = None,
        lamport_tolerance: Optional[int] = None,
    ) -> None:
        self._rpc = rpc
        self.max_signatures = (
            config.MAX_SIGNATURES_FOR_FUNDING_SCAN if max_signatures is None else max_signatures
        )
        self.max_transactions = (
            config.MAX_FUNDING_TRANSACTIONS if max_transactions is None else max_transactions
        )
        self.lamport_tolerance = (
            config.FUNDING_LAMPORT_TOLERANCE if lamport_tolerance is None else lamport_tolerance
        )
        # a full page means the history is too long to attribute; one page must be able to fill
        if not 1 <= self.max_signatures <= config.SIGNATURE_PAGE_LIMIT:
            raise ValueError(
                f"max_signatures must be within 1..{config.SIGNATURE_PAGE_LIMIT}, got {self.max_signatures}"
            )

    @classmethod
    def from_config(cls, rpc: SolanaRpcClient, cfg: AnalysisConfig) -> "FundingTracer":
        return cls(
            rpc,
            max_signatures=cfg.max_signatures_for_funding_scan,
            max_transactions=cfg.max_funding_transactions_to_check,
            lamport_tolerance=cfg.funding_lamport_tolerance,
        )

    async def trace(self, address: str, *, before: Optional[str] = None) -> Optional[FundingRecord]:
        """Return the funding record of *address*, or ``None`` when undetermined.

        With *before*, only transactions older than that signature are
        considered.
        """
        try:
            sigs = await self._rpc.get_signatures_for_address(
                address, limit=self.max_signatures, before=before
            )
        except MalformedResponseError as exc:
            logger.warning("[funding] %s: bad signature page (%s)", address[:8], exc)
            return None

        if len(sigs) >= self.max_signatures:
            logger.debug(
                "[funding] %s: %d+ signatures, skipping funding analysis",
                address[:8], self.max_signatures,
            )
            return None

        # Signatures come newest first; the window is the oldest N, scanned oldest first.
        window = sigs[-self.max_transactions:]
        for sig_info in reversed(window):
            if sig_info.get("err"):
                continue
            signature = sig_info["signature"]
            try:
                tx = await self._rpc.get_transaction(signature)
            except MalformedResponseError as exc:
                logger.debug("[funding] %s: skipping %s (%s)", address[:8], signature[:8], exc)
                continue
            if not tx:
                continue
            match = find_funder_in_transaction(tx, address, self.lamport_tolerance)
            if match is None:
                continue
            funder, lamports = match
            ts = sig_info.get("blockTime") or block_time(tx)
            known = wallet_labels.lookup(funder)
            logger.debug("[funding] %s funded by %s (%d lamports)", address[:8], funder[:8], lamports)
            return FundingRecord(
                funder_address=funder,
                amount_lamports=lamports,
                timestamp=to_datetime(ts),
                signature=signature,
                source_name=known.name if known else None,
                source_category=known.category if known else None,
            )
        return None

    async def was_fresh_at(self, address: str, anchor_signature: str, threshold: int) -> bool:
        """True when *address* had at most *threshold* transactions before the anchor."""
        if not 1 <= threshold < config.SIGNATURE_PAGE_LIMIT:
            raise ValueError(
                f"freshness threshold must be within 1..{config.SIGNATURE_PAGE_LIMIT - 1}, got {threshold}"
            )
        sigs = await self._rpc.get_signatures_for_address(
            address, limit=threshold + 1, before=anchor_signature
        )
        return len(sigs) <= threshold


def find_funder_in_transaction(
    tx: dict, recipient: str, tolerance: Optional[int] = None
) -> Optional[tuple[str, int]]:
    """Return ``(funder, lamports)`` if *tx* credits *recipient* with SOL.

    A parsed system transfer to *recipient* (top-level or inner) is
    authoritative.  Otherwise the funder is the account whose balance fell
    by the amount *recipient* gained, within *tolerance* lamports.
    """
    if tolerance is None:
        tolerance = config.FUNDING_LAMPORT_TOLERANCE
    for ix in iter_instructions(tx):
        if not is_system_transfer(ix):
            continue
        info = ix["parsed"].get("info") or {}
        if info.get("destination") != recipient:
            continue
        source = info.get("source")
        if source and source != recipient:
            try:
                return source, int(info.get("lamports", 0))
            except (TypeError, ValueError):
                return source, 0

    keys = account_keys(tx)
    meta = tx.get("meta") or {}
    pre = meta.get("preBalances") or []
    post = meta.get("postBalances") or []
    if recipient not in keys or len(pre) != len(keys) or len(post) != len(keys):
        return None
    idx = keys.index(recipient)
    gained = post[idx] - pre[idx]
    if gained <= 0:
        return None
    best: Optional[tuple[str, int]] = None
    best_gap = tolerance + 1
    for i, key in enumerate(keys):
        if i == idx:
            continue
        lost = pre[i] - post[i]
        if lost <= 0:
            continue
        gap = abs(lost - gained)
        if gap <= tolerance and gap < best_gap:
            best, best_gap = (key, gained), gap
    return best


def group_by_funder(
    funders: Mapping[str, Optional[FundingRecord]],
    threshold: int,
    *,
    exclude_exchanges: bool = True,
) -> list[FunderGroup]:
    """Group wallets by funder, keeping groups of at least *threshold* wallets.

    Exchange hot wallets fund thousands of unrelated users, so groups keyed
    on them are dropped unless *exclude_exchanges* is False.
    """
    members: dict[str, list[str]] = {}
    records: dict[str, FundingRecord] = {}
    for wallet, record in funders.items():
        if record is None:
            continue
        if exclude_exchanges and record.source_category == wallet_labels.EXCHANGE:
            continue
        members.setdefault(record.funder_address, []).append(wallet)
        records.setdefault(record.funder_address, record)

    groups = [
        FunderGroup(
            funder_address=funder,
            members=sorted(wallets),
            source_name=records[funder].source_name,
            source_category=records[funder].source_category,
        )
        for funder, wallets in members.items()
        if len(wallets) >= threshold
    ]
    groups.sort(key=lambda g: (-g.size, g.funder_address))
    return groups
