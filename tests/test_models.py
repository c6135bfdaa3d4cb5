"""Unit tests for Pydantic models."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from holder_scan.models import (
    AnalysisConfig,
    Bundle,
    ClassifiedWallet,
    FLAGGED_CATEGORIES,
    Holder,
    TokenInfo,
    WalletCategory,
    percentage,
    scale_amount,
)


class TestAmounts:
    def test_scale_amount_is_exact(self):
        assert scale_amount(123_456_789, 6) == Decimal("123.456789")
        assert scale_amount(1, 9) == Decimal("0.000000001")

    def test_percentage(self):
        assert percentage(Decimal(25), Decimal(1000)) == Decimal("2.5")
        assert percentage(Decimal(5), Decimal(0)) == 0

    def test_holder_from_raw(self):
        h = Holder.from_raw("w", 2_500_000, 6)
        assert h.raw_balance == 2_500_000
        assert h.decimal_balance == Decimal("2.5")


class TestTokenInfo:
    def test_zero_supply_rejected(self):
        with pytest.raises(ValidationError):
            TokenInfo(mint="m", decimals=6, raw_supply=0, total_supply=Decimal(0))

    def test_frozen(self):
        t = TokenInfo(mint="m", decimals=0, raw_supply=10, total_supply=Decimal(10))
        with pytest.raises(ValidationError):
            t.symbol = "X"


class TestClassifiedWallet:
    def _kwargs(self, **extra):
        return dict(address="w", raw_balance=1, decimal_balance=Decimal(1), **extra)

    def test_error_requires_message(self):
        with pytest.raises(ValidationError):
            ClassifiedWallet(**self._kwargs(category=WalletCategory.ERROR))

    def test_message_requires_error_category(self):
        with pytest.raises(ValidationError):
            ClassifiedWallet(**self._kwargs(category=WalletCategory.NORMAL, error="boom"))

    def test_serialises_category_value(self):
        w = ClassifiedWallet(**self._kwargs(category=WalletCategory.FEW_ASSETS))
        assert w.model_dump(mode="json")["category"] == "few_assets"

    def test_everything_but_normal_and_error_is_flagged(self):
        assert FLAGGED_CATEGORIES == set(WalletCategory) - {WalletCategory.NORMAL, WalletCategory.ERROR}


class TestBundle:
    def test_needs_two_wallets(self):
        with pytest.raises(ValidationError):
            Bundle(time_key=1, key_kind="slot", unique_wallets={"a"})

    def test_key_kind_restricted(self):
        with pytest.raises(ValidationError):
            Bundle(time_key=1, key_kind="block", unique_wallets={"a", "b"})


class TestAnalysisConfig:
    def test_defaults_come_from_config(self):
        cfg = AnalysisConfig()
        assert cfg.fresh_wallet_threshold == 100
        assert cfg.max_assets_threshold == 2
        assert cfg.inactivity_threshold_days == 5
        assert cfg.cluster_size_threshold == 3
        assert cfg.min_supply_share is None

    def test_presets(self):
        team = AnalysisConfig.team_supply()
        fresh = AnalysisConfig.fresh_wallets()
        assert team.min_supply_share == Decimal("0.001")
        assert not team.check_asset_count
        assert team.check_team_bot and team.check_inactivity and team.trace_funding
        assert fresh.min_supply_share == Decimal("0.0005")
        assert fresh.trace_fresh_funding and not fresh.trace_funding
        assert not (fresh.check_asset_count or fresh.check_inactivity or fresh.check_team_bot)
        assert AnalysisConfig.bundle_team().cluster_size_threshold == 2

    def test_overrides(self):
        assert AnalysisConfig.team_supply(cluster_size_threshold=5).cluster_size_threshold == 5

    def test_cluster_threshold_minimum(self):
        with pytest.raises(ValidationError):
            AnalysisConfig(cluster_size_threshold=1)

    def test_signature_thresholds_fit_one_page(self):
        assert AnalysisConfig(fresh_wallet_threshold=999).fresh_wallet_threshold == 999
        with pytest.raises(ValidationError):
            AnalysisConfig(fresh_wallet_threshold=1000)
        with pytest.raises(ValidationError):
            AnalysisConfig(max_signatures_for_funding_scan=1001)
        with pytest.raises(ValidationError):
            AnalysisConfig(teambot_tx_check_limit=1001)
