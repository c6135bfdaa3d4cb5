"""
Pydantic models used throughout the Holder Scan agent.

Token amounts are always carried twice: the raw integer base-unit amount
as reported on chain and a ``Decimal`` scaled by the mint's decimals.
Floats are never used for balances or supply percentages.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

import config


def scale_amount(raw: int, decimals: int) -> Decimal:
    """Convert a base-unit integer amount to its decimal value."""
    return Decimal(int(raw)).scaleb(-int(decimals))


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """``part / whole * 100``; zero when *whole* is zero."""
    if not whole:
        return Decimal(0)
    return part / whole * 100


# ---------------------------------------------------------------------------
# Token
# ---------------------------------------------------------------------------
class TokenInfo(BaseModel):
    """Supply and metadata of the analysed token, captured once per run."""

    model_config = ConfigDict(frozen=True)

    mint: str = Field(..., description="Solana mint address")
    symbol: str = Field("", description="Ticker / symbol")
    name: str = Field("", description="Human-readable token name")
    decimals: int = Field(..., ge=0)
    raw_supply: int = Field(..., gt=0, description="Total supply in base units")
    total_supply: Decimal = Field(..., gt=0, description="Total supply scaled by decimals")


# ---------------------------------------------------------------------------
# Holders
# ---------------------------------------------------------------------------
class Holder(BaseModel):
    """A wallet owning a non-zero balance of the analysed token."""

    model_config = ConfigDict(frozen=True)

    address: str
    raw_balance: int = Field(..., ge=0)
    decimal_balance: Decimal = Field(..., ge=0)

    @classmethod
    def from_raw(cls, address: str, raw_balance: int, decimals: int) -> "Holder":
        return cls(
            address=address,
            raw_balance=raw_balance,
            decimal_balance=scale_amount(raw_balance, decimals),
        )


class TokenAccount(BaseModel):
    """One entry of a DAS ``getTokenAccounts`` page."""

    address: str = ""
    owner: str
    amount: int = Field(..., ge=0)


class TokenAccountsPage(BaseModel):
    accounts: list[TokenAccount] = Field(default_factory=list)
    cursor: Optional[str] = None


# ---------------------------------------------------------------------------
# Funding
# ---------------------------------------------------------------------------
class FundingRecord(BaseModel):
    """The first observed inbound SOL transfer that funded a wallet."""

    model_config = ConfigDict(frozen=True)

    funder_address: str
    amount_lamports: int = Field(..., ge=0)
    timestamp: Optional[datetime] = None
    signature: str
    source_name: Optional[str] = Field(None, description="Known-address label of the funder")
    source_category: Optional[str] = Field(None, description="Known-address category of the funder")


class FunderGroup(BaseModel):
    """Wallets that share a common funder."""

    funder_address: str
    members: list[str]
    source_name: Optional[str] = None
    source_category: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.members)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------
class WalletCategory(str, Enum):
    FRESH = "fresh"
    FEW_ASSETS = "few_assets"
    NO_TOKEN = "no_token"
    NO_ATA_TRANSACTION = "no_ata_transaction"
    INACTIVE = "inactive"
    TEAMBOT = "teambot"
    SUSPICIOUS_FUNDING = "suspicious_funding"
    NORMAL = "normal"
    ERROR = "error"


# Every category except normal and error counts towards the team share of supply
FLAGGED_CATEGORIES: frozenset[WalletCategory] = frozenset({
    WalletCategory.FRESH,
    WalletCategory.FEW_ASSETS,
    WalletCategory.NO_TOKEN,
    WalletCategory.NO_ATA_TRANSACTION,
    WalletCategory.INACTIVE,
    WalletCategory.TEAMBOT,
    WalletCategory.SUSPICIOUS_FUNDING,
})


class ClassifiedWallet(Holder):
    """A holder with exactly one category attached."""

    category: WalletCategory
    days_since_last_activity: Optional[float] = None
    asset_count: Optional[int] = None
    transaction_count: Optional[int] = None
    funder_address: Optional[str] = None
    funding: Optional[FundingRecord] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _error_iff_error_category(self) -> "ClassifiedWallet":
        if (self.category is WalletCategory.ERROR) != (self.error is not None):
            raise ValueError("error message must be set exactly when category is 'error'")
        return self


class CategoryBucket(BaseModel):
    wallet_count: int = 0
    balance: Decimal = Decimal(0)
    supply_percentage: Decimal = Decimal(0)


class AnalysisConfig(BaseModel):
    """Thresholds and step switches for one classification run.

    The team-supply and fresh-wallet analyses are the same state machine
    with different steps enabled; see :meth:`team_supply` and
    :meth:`fresh_wallets`.  The bare defaults run every step.
    """

    model_config = ConfigDict(frozen=True)

    fresh_wallet_threshold: int = Field(
        default_factory=lambda: config.FRESH_WALLET_THRESHOLD,
        ge=1,
        le=config.SIGNATURE_PAGE_LIMIT - 1,
        description="A wallet with fewer lifetime signatures than this is fresh",
    )
    max_assets_threshold: int = Field(
        default_factory=lambda: config.MAX_ASSETS_THRESHOLD,
        ge=0,
        description="A wallet holding at most this many fungible assets is flagged",
    )
    inactivity_threshold_days: float = Field(
        default_factory=lambda: config.INACTIVITY_THRESHOLD_DAYS,
        ge=0,
        description="Gap between the last swap and the token-account creation",
    )
    teambot_tx_check_limit: int = Field(
        default_factory=lambda: config.TEAMBOT_TX_CHECK_LIMIT,
        ge=1,
        le=config.SIGNATURE_PAGE_LIMIT,
        description="Recent transactions inspected by the team-bot check",
    )
    cluster_size_threshold: int = Field(
        default_factory=lambda: config.CLUSTER_SIZE_THRESHOLD,
        ge=2,
        description="Minimum wallets sharing a funder to flag them",
    )
    max_signatures_for_funding_scan: int = Field(
        default_factory=lambda: config.MAX_SIGNATURES_FOR_FUNDING_SCAN,
        ge=1,
        le=config.SIGNATURE_PAGE_LIMIT,
    )
    max_funding_transactions_to_check: int = Field(
        default_factory=lambda: config.MAX_FUNDING_TRANSACTIONS, ge=1
    )
    funding_lamport_tolerance: int = Field(
        default_factory=lambda: config.FUNDING_LAMPORT_TOLERANCE, ge=0
    )
    min_holder_balance: Decimal = Field(
        default_factory=lambda: Decimal(str(config.MIN_HOLDER_BALANCE)), ge=0
    )
    min_supply_share: Optional[Decimal] = Field(
        None, ge=0, le=1, description="Fraction of total supply a holder must own"
    )

    check_fresh: bool = True
    check_asset_count: bool = True
    check_inactivity: bool = True
    check_team_bot: bool = True
    trace_funding: bool = True
    trace_fresh_funding: bool = False

    @classmethod
    def team_supply(cls, **overrides) -> "AnalysisConfig":
        """Fresh, inactivity, team-bot and funding checks.

        The asset-count step is off so low-asset wallets reach the team-bot
        check.
        """
        values = {
            "min_supply_share": Decimal(str(config.TEAM_SUPPLY_SHARE_THRESHOLD)),
            "check_asset_count": False,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def fresh_wallets(cls, **overrides) -> "AnalysisConfig":
        values = {
            "min_supply_share": Decimal(str(config.FRESH_SUPPLY_SHARE_THRESHOLD)),
            "check_asset_count": False,
            "check_inactivity": False,
            "check_team_bot": False,
            "trace_funding": False,
            "trace_fresh_funding": True,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def bundle_team(cls, **overrides) -> "AnalysisConfig":
        """Bundle wallets are already coordinated; two sharing a funder is enough."""
        values = {"cluster_size_threshold": 2}
        values.update(overrides)
        return cls(**values)


# ---------------------------------------------------------------------------
# Trades and bundles
# ---------------------------------------------------------------------------
class Trade(BaseModel):
    """A single buy or sell of the analysed token."""

    model_config = ConfigDict(frozen=True)

    wallet: str
    is_buy: bool
    token_amount: Decimal = Field(..., ge=0)
    sol_amount: Decimal = Field(..., ge=0)
    timestamp: int = Field(..., description="Unix seconds")
    slot: Optional[int] = None
    signature: str = ""


class Bundle(BaseModel):
    """Buys by at least two distinct wallets sharing a slot or time window."""

    time_key: int
    key_kind: Literal["slot", "window"]
    unique_wallets: set[str]
    tokens_bought: Decimal = Decimal(0)
    sol_spent: Decimal = Decimal(0)
    trades: list[Trade] = Field(default_factory=list)

    @field_validator("unique_wallets")
    @classmethod
    def _at_least_two_wallets(cls, v: set[str]) -> set[str]:
        if len(v) < 2:
            raise ValueError("a bundle needs at least two distinct wallets")
        return v


class TeamBundleAnalysis(BaseModel):
    team_wallets: list[str] = Field(default_factory=list)
    recurring_wallets: list[str] = Field(default_factory=list)
    funder_linked_wallets: list[str] = Field(default_factory=list)
    funder_groups: list[FunderGroup] = Field(default_factory=list)
    team_bundles: list[Bundle] = Field(default_factory=list)
    tokens_bought: Decimal = Decimal(0)
    sol_spent: Decimal = Decimal(0)
    supply_percentage: Decimal = Decimal(0)
    liquidity_percentage: Decimal = Field(
        Decimal(0), description="Team SOL spent as a share of all bundled SOL"
    )
    held_amount: Optional[Decimal] = None
    held_percentage: Optional[Decimal] = None


class WalletTradeStats(BaseModel):
    """Trade counters for one wallet, as reported by a trading-stats source."""

    buy_count: int = Field(0, ge=0)
    sell_count: int = Field(0, ge=0)
    unrealized_profit_usd: float = 0.0

    @property
    def total_trades(self) -> int:
        return self.buy_count + self.sell_count


class HolderActivity(str, Enum):
    POOL = "pool"
    BOT = "bot"
    NORMAL = "normal"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
class TeamSupplyReport(BaseModel):
    token: TokenInfo
    holders_analyzed: int
    wallets: list[ClassifiedWallet]
    buckets: dict[WalletCategory, CategoryBucket]
    funder_groups: list[FunderGroup] = Field(default_factory=list)
    team_wallet_count: int = 0
    team_balance: Decimal = Decimal(0)
    team_supply_percentage: Decimal = Decimal(0)
    call_report: dict = Field(default_factory=dict)


class FreshWalletsReport(BaseModel):
    token: TokenInfo
    holders_analyzed: int
    fresh_wallets: list[ClassifiedWallet]
    fresh_balance: Decimal = Decimal(0)
    fresh_supply_percentage: Decimal = Decimal(0)
    funder_groups: list[FunderGroup] = Field(default_factory=list)
    errors: int = 0
    call_report: dict = Field(default_factory=dict)


class BundleReport(BaseModel):
    token: TokenInfo
    trades_analyzed: int
    bundles: list[Bundle]
    total_tokens_bundled: Decimal = Decimal(0)
    total_sol_spent: Decimal = Decimal(0)
    bundled_supply_percentage: Decimal = Decimal(0)
    team: Optional[TeamBundleAnalysis] = None
    call_report: dict = Field(default_factory=dict)


class EarlyBuyer(BaseModel):
    wallet: str
    first_buy: Trade
    tokens_bought: Decimal
    sol_spent: Decimal
    was_fresh: Optional[bool] = None
    funding: Optional[FundingRecord] = None
    error: Optional[str] = None


class EarlyBuyersReport(BaseModel):
    token: TokenInfo
    buyers: list[EarlyBuyer]
    fresh_count: int = 0
    funder_groups: list[FunderGroup] = Field(default_factory=list)
    call_report: dict = Field(default_factory=dict)


class TopHolder(BaseModel):
    holder: Holder
    supply_percentage: Decimal
    sol_balance: Optional[Decimal] = None
    activity: HolderActivity = HolderActivity.UNKNOWN
    label: Optional[str] = None


class TopHoldersReport(BaseModel):
    token: TokenInfo
    holders: list[TopHolder]
    call_report: dict = Field(default_factory=dict)
