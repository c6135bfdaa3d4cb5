"""
Project configuration file for the Holder Scan agent.

This module centralises all user-modifiable settings such as RPC
endpoints, rate-limit budgets, classification thresholds and other
options.  You can edit these values directly or set environment
variables to override them.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_float(name: str, default: str, *, low: float = 0.0, high: float = 1.0) -> float:
    """Parse an env var as a float and validate it within [low, high]."""
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        value = float(default)
    if not (low <= value <= high):
        logger.warning("%s=%.4f is outside [%.1f, %.1f] – clamped", name, value, low, high)
        value = max(low, min(value, high))
    return value


def _parse_int(name: str, default: str, *, minimum: int = 1, maximum: int | None = None) -> int:
    """Parse an env var as an int and enforce a minimum (and optional maximum)."""
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        value = int(default)
    if value < minimum:
        logger.warning("%s=%d is below minimum %d – clamped", name, value, minimum)
        value = minimum
    if maximum is not None and value > maximum:
        logger.warning("%s=%d is above maximum %d – clamped", name, value, maximum)
        value = maximum
    return value


# ---------------------------------------------------------------------------
# Solana RPC  (a Helius endpoint is needed for the DAS methods)
# ---------------------------------------------------------------------------
SOLANA_RPC_ENDPOINT: str = os.getenv(
    "SOLANA_RPC_ENDPOINT",
    "https://mainnet.helius-rpc.com/?api-key=<your-helius-api-key>",
)

# ---------------------------------------------------------------------------
# PumpFun trade history
# ---------------------------------------------------------------------------
PUMPFUN_BASE_URL: str = os.getenv(
    "PUMPFUN_BASE_URL",
    "https://frontend-api.pump.fun",
)

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT: int = _parse_int("REQUEST_TIMEOUT", "15", minimum=1)

# ---------------------------------------------------------------------------
# Rate limiting  (token buckets: burst capacity + refill per second)
# ---------------------------------------------------------------------------
RPC_BUCKET_CAPACITY: int = _parse_int("RPC_BUCKET_CAPACITY", "50", minimum=1)
RPC_BUCKET_RATE: float = _parse_float("RPC_BUCKET_RATE", "50", low=0.1, high=10_000.0)
API_BUCKET_CAPACITY: int = _parse_int("API_BUCKET_CAPACITY", "10", minimum=1)
API_BUCKET_RATE: float = _parse_float("API_BUCKET_RATE", "10", low=0.1, high=10_000.0)

# Retry on transient errors only (timeouts, 429, gateway errors)
MAX_RETRIES: int = _parse_int("MAX_RETRIES", "3", minimum=1)
RETRY_BASE_DELAY: float = _parse_float("RETRY_BASE_DELAY", "1.0", low=0.0, high=60.0)

# ---------------------------------------------------------------------------
# Holder selection
# ---------------------------------------------------------------------------
MIN_HOLDER_BALANCE: float = _parse_float("MIN_HOLDER_BALANCE", "1000", low=0.0, high=1e18)
TEAM_SUPPLY_SHARE_THRESHOLD: float = _parse_float("TEAM_SUPPLY_SHARE_THRESHOLD", "0.001")
FRESH_SUPPLY_SHARE_THRESHOLD: float = _parse_float("FRESH_SUPPLY_SHARE_THRESHOLD", "0.0005")

# ---------------------------------------------------------------------------
# Classification thresholds
# ---------------------------------------------------------------------------
# getSignaturesForAddress returns at most this many entries per call; the
# signature-count thresholds below must fit in one page
SIGNATURE_PAGE_LIMIT = 1000

FRESH_WALLET_THRESHOLD: int = _parse_int(
    "FRESH_WALLET_THRESHOLD", "100", minimum=1, maximum=SIGNATURE_PAGE_LIMIT - 1
)
EARLY_BUYER_FRESH_THRESHOLD: int = _parse_int(
    "EARLY_BUYER_FRESH_THRESHOLD", "50", minimum=1, maximum=SIGNATURE_PAGE_LIMIT - 1
)
MAX_ASSETS_THRESHOLD: int = _parse_int("MAX_ASSETS_THRESHOLD", "2", minimum=0)
INACTIVITY_THRESHOLD_DAYS: float = _parse_float(
    "INACTIVITY_THRESHOLD_DAYS", "5", low=0.0, high=3650.0
)
TEAMBOT_TX_CHECK_LIMIT: int = _parse_int(
    "TEAMBOT_TX_CHECK_LIMIT", "20", minimum=1, maximum=SIGNATURE_PAGE_LIMIT
)
CLUSTER_SIZE_THRESHOLD: int = _parse_int("CLUSTER_SIZE_THRESHOLD", "3", minimum=2)

# ---------------------------------------------------------------------------
# Funding trace
# ---------------------------------------------------------------------------
MAX_SIGNATURES_FOR_FUNDING_SCAN: int = _parse_int(
    "MAX_SIGNATURES_FOR_FUNDING_SCAN", "1000", minimum=1, maximum=SIGNATURE_PAGE_LIMIT
)
MAX_FUNDING_TRANSACTIONS: int = _parse_int("MAX_FUNDING_TRANSACTIONS", "10", minimum=1)
FUNDING_LAMPORT_TOLERANCE: int = _parse_int("FUNDING_LAMPORT_TOLERANCE", "10000", minimum=0)

# ---------------------------------------------------------------------------
# Bot detection
# ---------------------------------------------------------------------------
BOT_MIN_TOTAL_TRADES: int = _parse_int("BOT_MIN_TOTAL_TRADES", "10000", minimum=1)
BOT_BUY_SELL_RATIO: float = _parse_float("BOT_BUY_SELL_RATIO", "0.05")
BOT_UNREALIZED_PROFIT_USD: float = _parse_float(
    "BOT_UNREALIZED_PROFIT_USD", "2000000", low=0.0, high=1e15
)

# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------
BUNDLE_WINDOW_SECONDS: int = _parse_int("BUNDLE_WINDOW_SECONDS", "10", minimum=1)
BUNDLE_TRADE_PAGE_SIZE: int = _parse_int("BUNDLE_TRADE_PAGE_SIZE", "200", minimum=1)
BUNDLE_MAX_TRADES: int = _parse_int("BUNDLE_MAX_TRADES", "50000", minimum=1)

# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------
BATCH_SIZE: int = _parse_int("BATCH_SIZE", "10", minimum=1)
INTER_BATCH_DELAY: float = _parse_float("INTER_BATCH_DELAY", "0.1", low=0.0, high=60.0)
WALLET_TIMEOUT_SECONDS: float = _parse_float(
    "WALLET_TIMEOUT_SECONDS", "10", low=0.1, high=3600.0
)

# ---------------------------------------------------------------------------
# Sentry (error tracking)
# ---------------------------------------------------------------------------
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT: str = os.getenv("SENTRY_ENVIRONMENT", "production")
SENTRY_TRACES_SAMPLE_RATE: float = _parse_float(
    "SENTRY_TRACES_SAMPLE_RATE", "0.1", low=0.0, high=1.0
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
