"""
Known-address registry.

Maps well-known Solana addresses (exchange hot wallets, DEX programs and
authorities, bridges, launchpads) to a display name and a category.  The
funding tracer uses it to annotate funders: a wallet funded straight from
an exchange tells a different story than one funded by an unknown wallet.

Categories (``category`` field):
  "exchange"    – Centralised exchange hot-wallet or deposit router
  "dex"         – DEX / AMM program, pool or authority
  "bridge"      – Cross-chain bridge program or custody authority
  "launchpad"   – Token launchpad (PumpFun, Moonshot, …)
  "system"      – Solana system / runtime program
"""

from __future__ import annotations

from typing import Optional

EXCHANGE = "exchange"
DEX = "dex"
BRIDGE = "bridge"
LAUNCHPAD = "launchpad"
SYSTEM = "system"


# ---------------------------------------------------------------------------
# Registry
# Format: address → (display_name, category)
# ---------------------------------------------------------------------------

KNOWN_ADDRESSES: dict[str, tuple[str, str]] = {
    # ── Solana System Programs ────────────────────────────────────────────
    "11111111111111111111111111111111":            ("System Program",      SYSTEM),
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA": ("SPL Token Program",   SYSTEM),
    "So11111111111111111111111111111111111111112":  ("Wrapped SOL Mint",    SYSTEM),

    # ── Exchanges ─────────────────────────────────────────────────────────
    "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM":  ("Binance",             EXCHANGE),
    "5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9":  ("Binance 2",           EXCHANGE),
    "GJRs4FwHtemZ5ZE9x3FNvJ8TMwitKTh21yxdRPqn7npE":  ("Coinbase Hot Wallet", EXCHANGE),
    "H8sMJSCQxfKiFTCfDR3DUMLPwcRbM61LGFJ8N4dK3WjS":  ("Coinbase",            EXCHANGE),
    "2AQdpHJ2JpcEgPiATUXjQxA8QmafFegfQwSLWSprPicm":  ("Coinbase 2",          EXCHANGE),
    "FpwQQhQQoEaVu3WU2qZMfF1hx48YyfwsLoRgXG83E99Q":  ("Coinbase Hot Wallet 2", EXCHANGE),
    "AC5RDfQFmDS1deWZos921JfqscXdByf8BKHs5ACWjtW2":  ("Bybit",               EXCHANGE),
    "FWznbcNXWQuHTawe9RxvQ2LdCENssh12dsznf4RiouN5":  ("Kraken",              EXCHANGE),
    "BmFdpraQhkiDQE6SnfG5omcA1VwzqfXrwtNYBwWTymy6":  ("Kucoin",              EXCHANGE),
    "HVh6wHNBAsG3pq1Bj5oCzRjoWKVogEDHwUHkRz3ekFgt":  ("Kucoin 2",            EXCHANGE),
    "5VCwKtCXgCJ6kit5FybXjvriW3xELsFDhYrPSqtJNmcD":  ("OKX",                 EXCHANGE),
    "u6PJ8DtQuPFnfmwHbGFULQ4u4EgjDiyYKjVEsynXq2w":   ("Gate.io",             EXCHANGE),
    "Biw4eeaiYYYq6xSqEd7GzdwsrrndxA8mqdxfAtG3PTUU":  ("Revolut",             EXCHANGE),
    "5sTQ5ih7xtctBhMXHr3f1aWdaXazWrWfoehqWdqWnTFP":  ("Wintermute 3",        EXCHANGE),

    # ── DEX / AMM ─────────────────────────────────────────────────────────
    "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1":  ("Raydium Authority",   DEX),
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8":  ("Raydium AMM V4",      DEX),
    "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C":  ("Raydium CPMM",        DEX),
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo":   ("Meteora",             DEX),
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc":   ("Orca Whirlpool",      DEX),
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4":   ("Jupiter V6",          DEX),
    "G2YxRa6wt1qePMwfJzdXZG62ej4qaTC7YURzuh2Lwd3t":  ("Jupiter",             DEX),

    # ── Launchpads ────────────────────────────────────────────────────────
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P":   ("Pump.fun",            LAUNCHPAD),
    "MoonCVVNZFSYkqNXP6bxHLPL6QQJiMagDL3qcqUQTrG":   ("Moonshot",            LAUNCHPAD),

    # ── Bridges ───────────────────────────────────────────────────────────
    "GugU1tP7doLeTw9hQP51xRJyS8Da1fWxuiy2rVrnMD2m":  ("Wormhole Custody Authority", BRIDGE),
    "GpMZbSM2GgvTKHJirzeGfMFoaZ8UR2X7F4v8vHTvxFbL":  ("Wormhole Custody Authority 2", BRIDGE),
    "worm2ZoG2kUd4vFXhvjh93UUH596ayRfgQ2MgjNMTth":   ("Wormhole Core",       BRIDGE),
}


class KnownAddress:
    """Resolved identity for a known Solana address."""

    __slots__ = ("address", "name", "category")

    def __init__(self, address: str, name: str, category: str) -> None:
        self.address = address
        self.name = name
        self.category = category

    def __repr__(self) -> str:
        return f"KnownAddress({self.address!r}, {self.name!r}, {self.category!r})"

    def to_dict(self) -> dict:
        return {"name": self.name, "category": self.category}


def lookup(address: str) -> Optional[KnownAddress]:
    """Return the registry entry for *address*, or ``None`` when unknown."""
    entry = KNOWN_ADDRESSES.get(address)
    if entry is None:
        return None
    return KnownAddress(address, entry[0], entry[1])


def is_exchange(address: str) -> bool:
    entry = KNOWN_ADDRESSES.get(address)
    return entry is not None and entry[1] == EXCHANGE


def label_or_short(address: str) -> str:
    """Return the display name if known, else first4…last4."""
    known = lookup(address)
    if known:
        return known.name
    return f"{address[:4]}…{address[-4:]}"
