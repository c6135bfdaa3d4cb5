"""
Centralized constants for the Holder Scan agent.

This file contains:
- Solana program addresses (immutable protocol constants)
- Swap programs and liquidity-pool owners used by the classifiers
- Addresses excluded from holder analysis

Import from this module rather than duplicating values across modules.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Solana Program Addresses (immutable, part of the Solana protocol)
# ---------------------------------------------------------------------------

SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# Wrapped SOL mint
WSOL_MINT = "So11111111111111111111111111111111111111112"

# ---------------------------------------------------------------------------
# Swap programs  (a transaction touching one of these is a swap)
# ---------------------------------------------------------------------------
RAYDIUM_AMM_V4 = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"

SWAP_PROGRAMS: frozenset[str] = frozenset({
    "DjVE6JNiYqPL2QXyCUUh8rNjHrbz9hXHNYt99MQ59qw1",   # Orca V1
    "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",   # Orca V2
    "SwaPpA9LAaLfeLi3a68M4DjnLqgtticKg6CnyNwgAC8",    # SPL Token Swap
    RAYDIUM_AMM_V4,                                    # Raydium AMM V4
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",    # Jupiter V6
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",    # Orca Whirlpool
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBymtzbm",   # PumpFun program
})

# ---------------------------------------------------------------------------
# Liquidity pools
# ---------------------------------------------------------------------------

# Programs that own pool accounts → display name
POOL_OWNER_PROGRAMS: dict[str, str] = {
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P": "Pump.fun",
    "MoonCVVNZFSYkqNXP6bxHLPL6QQJiMagDL3qcqUQTrG": "Moonshot",
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo": "Meteora",
}

RAYDIUM_AUTHORITY = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"

# Pool vaults / authorities that hold supply on behalf of the market, never
# analysed as holders.
KNOWN_LP_POOLS: frozenset[str] = frozenset({
    RAYDIUM_AUTHORITY,
    RAYDIUM_AMM_V4,
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
    "MoonCVVNZFSYkqNXP6bxHLPL6QQJiMagDL3qcqUQTrG",
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo",
    "5quBtoiQqxF9Jv6KYKctB59NT3gtJD2Y65kdnB1Uev3h",
    "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C",
    "GpMZbSM2GgvTKHJirzeGfMFoaZ8UR2X7F4v8vHTvxFbL",
})

# Referral vaults and bot/exchange sinks excluded from early-buyer analysis
EXCLUDED_ADDRESSES: frozenset[str] = KNOWN_LP_POOLS | frozenset({
    "45ruCyfdRkWpRNGEqWzjCiXRHkZs8WXCLQ67Pnpye7Hp",   # Jupiter Partner Referral Fee Vault
    "ZG98FUCjb8mJ824Gbs6RsgVmr1FhXb2oNiJHa2dwmPd",    # bot / exchange
    "AfQ1oaudsGjvznX4JNEw671hi57JfWo4CWqhtkdgoVHU",   # bot / exchange
    "2rbMgYvzAb3xDk6vXrzKkY3VwsmyDZsJTkvB3JJYsRzA",   # bot
})

# ---------------------------------------------------------------------------
# Token-only transactions  (team-bot check)
# ---------------------------------------------------------------------------

# Mints a team bot may touch besides the analysed token
TEAMBOT_ALLOWED_MINTS: frozenset[str] = frozenset({WSOL_MINT})
