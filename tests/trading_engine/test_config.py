"""
Tests for configuration and the error registry.
"""

from decimal import Decimal

import pytest

from core.exceptions import ErrorCode, InvalidConfigError
from trading_engine.config import PriceFeedConfig, TradingEngineConfig
from trading_engine.container import create_price_feed
from trading_engine.errors import (
    ERROR_CODES,
    RETRYABLE_ERROR_CODES,
    get_error_info,
    is_retryable,
)
from market_data.finnhub import FinnhubPriceFeed
from market_data.static import StaticPriceFeed


ENV_KEYS = [
    "DATABASE_URL",
    "STARTING_BALANCE",
    "PRICE_FEED_PROVIDER",
    "FINNHUB_BASE_URL",
    "FINNHUB_API_KEY",
    "PRICE_FEED_TIMEOUT_SECONDS",
    "LEDGER_LOCK_TIMEOUT_SECONDS",
    "ORDER_MAX_RETRIES",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No ledger variables set and no .env file in reach."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestFromEnv:
    """Environment parsing."""

    def test_defaults(self, clean_env):
        config = TradingEngineConfig.from_env()
        assert config.retry.max_retries == 2
        assert config.ledger.starting_balance == Decimal("10000.00")
        assert config.ledger.lock_timeout_seconds == 10.0
        assert config.price_feed.provider == "finnhub"
        assert config.price_feed.timeout_seconds == 5.0
        assert config.database_url is None
        assert config.log_level == "INFO"

    def test_overrides(self, clean_env):
        clean_env.setenv("STARTING_BALANCE", "2500.50")
        clean_env.setenv("PRICE_FEED_PROVIDER", "Static")
        clean_env.setenv("ORDER_MAX_RETRIES", "0")
        clean_env.setenv("LEDGER_LOCK_TIMEOUT_SECONDS", "2.5")
        clean_env.setenv("DATABASE_URL", "sqlite:///./other.db")
        clean_env.setenv("LOG_LEVEL", "debug")

        config = TradingEngineConfig.from_env()

        assert config.ledger.starting_balance == Decimal("2500.50")
        assert config.price_feed.provider == "static"
        assert config.retry.max_retries == 0
        assert config.ledger.lock_timeout_seconds == 2.5
        assert config.database_url == "sqlite:///./other.db"
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("key,value", [
        ("STARTING_BALANCE", "lots"),
        ("STARTING_BALANCE", "-1"),
        ("ORDER_MAX_RETRIES", "two"),
        ("ORDER_MAX_RETRIES", "-1"),
        ("PRICE_FEED_TIMEOUT_SECONDS", "0"),
        ("LEDGER_LOCK_TIMEOUT_SECONDS", "soon"),
        ("PRICE_FEED_PROVIDER", "bloomberg"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, clean_env, key, value):
        clean_env.setenv(key, value)
        with pytest.raises(InvalidConfigError) as exc_info:
            TradingEngineConfig.from_env()
        assert exc_info.value.key == key


class TestPriceFeedFactory:
    """Provider selection."""

    def test_static(self):
        config = TradingEngineConfig.for_testing()
        assert isinstance(create_price_feed(config), StaticPriceFeed)

    def test_finnhub_requires_key(self, clean_env):
        config = TradingEngineConfig(price_feed=PriceFeedConfig(provider="finnhub"))
        with pytest.raises(InvalidConfigError):
            create_price_feed(config)

    def test_finnhub_with_key(self):
        config = TradingEngineConfig(price_feed=PriceFeedConfig(provider="finnhub", api_key="k"))
        feed = create_price_feed(config)
        try:
            assert isinstance(feed, FinnhubPriceFeed)
        finally:
            feed.close()


class TestErrorRegistry:
    """Every error code is registered."""

    def test_all_codes_registered(self):
        assert {code.value for code in ErrorCode} == set(ERROR_CODES)

    def test_only_store_conflict_is_retryable(self):
        assert RETRYABLE_ERROR_CODES == {"STORE_CONFLICT"}
        assert is_retryable("STORE_CONFLICT")
        assert not is_retryable("INSUFFICIENT_FUNDS")

    def test_http_statuses(self):
        assert get_error_info("INVALID_AMOUNT").http_status == 400
        assert get_error_info("ACCOUNT_NOT_FOUND").http_status == 404
        assert get_error_info("STORE_CONFLICT").http_status == 409
        assert get_error_info("STORE_UNAVAILABLE").http_status == 503

    def test_unknown_code(self):
        info = get_error_info("NOPE")
        assert not info.is_retryable
        assert info.http_status == 500
