"""Tests for config.py validation helpers and defaults."""

from __future__ import annotations

import os
from unittest.mock import patch


class TestParseFloat:
    """Tests for _parse_float env var parser."""

    def test_default_value(self):
        from config import _parse_float

        result = _parse_float("__HOLDER_SCAN_UNSET__", "0.5", low=0.0, high=1.0)
        assert result == 0.5

    def test_env_value(self):
        from config import _parse_float

        with patch.dict(os.environ, {"__HOLDER_SCAN_FLOAT__": "7.5"}):
            assert _parse_float("__HOLDER_SCAN_FLOAT__", "1", low=0.0, high=10.0) == 7.5

    def test_clamped(self):
        from config import _parse_float

        with patch.dict(os.environ, {"__HOLDER_SCAN_FLOAT__": "-3"}):
            assert _parse_float("__HOLDER_SCAN_FLOAT__", "1", low=0.0, high=10.0) == 0.0

    def test_garbage_falls_back(self):
        from config import _parse_float

        with patch.dict(os.environ, {"__HOLDER_SCAN_FLOAT__": "lots"}):
            assert _parse_float("__HOLDER_SCAN_FLOAT__", "0.25") == 0.25


class TestParseInt:
    """Tests for _parse_int env var parser."""

    def test_env_value(self):
        from config import _parse_int

        with patch.dict(os.environ, {"__HOLDER_SCAN_INT__": "42"}):
            assert _parse_int("__HOLDER_SCAN_INT__", "10") == 42

    def test_minimum_enforced(self):
        from config import _parse_int

        with patch.dict(os.environ, {"__HOLDER_SCAN_INT__": "1"}):
            assert _parse_int("__HOLDER_SCAN_INT__", "3", minimum=2) == 2

    def test_maximum_enforced(self):
        from config import _parse_int

        with patch.dict(os.environ, {"__HOLDER_SCAN_INT__": "1500"}):
            assert _parse_int("__HOLDER_SCAN_INT__", "100", maximum=999) == 999

    def test_zero_allowed_when_minimum_is_zero(self):
        from config import _parse_int

        with patch.dict(os.environ, {"__HOLDER_SCAN_INT__": "0"}):
            assert _parse_int("__HOLDER_SCAN_INT__", "2", minimum=0) == 0

    def test_garbage_falls_back(self):
        from config import _parse_int

        with patch.dict(os.environ, {"__HOLDER_SCAN_INT__": "ten"}):
            assert _parse_int("__HOLDER_SCAN_INT__", "10") == 10


class TestDefaults:

    def test_classification_defaults(self):
        import config

        assert config.FRESH_WALLET_THRESHOLD == 100
        assert config.EARLY_BUYER_FRESH_THRESHOLD == 50
        assert config.MAX_ASSETS_THRESHOLD == 2
        assert config.INACTIVITY_THRESHOLD_DAYS == 5
        assert config.CLUSTER_SIZE_THRESHOLD == 3

    def test_signature_thresholds_fit_one_page(self):
        import config

        assert config.FRESH_WALLET_THRESHOLD < config.SIGNATURE_PAGE_LIMIT
        assert config.EARLY_BUYER_FRESH_THRESHOLD < config.SIGNATURE_PAGE_LIMIT
        assert config.MAX_SIGNATURES_FOR_FUNDING_SCAN <= config.SIGNATURE_PAGE_LIMIT

    def test_rate_limit_defaults(self):
        import config

        assert config.RPC_BUCKET_CAPACITY == 50
        assert config.API_BUCKET_CAPACITY == 10
        assert config.MAX_RETRIES == 3
        assert config.BATCH_SIZE == 10
