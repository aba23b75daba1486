"""
Trading Engine - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the trading ledger.

CRITICAL CONSTRAINTS:
- Bounded retries (only for store conflicts)
- Bounded lock waits
- Money is Decimal with a fixed scale

============================================================
"""

import os
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from dotenv import load_dotenv

from core.exceptions import InvalidConfigError


logger = logging.getLogger(__name__)


# ============================================================
# RETRY CONFIGURATION
# ============================================================

@dataclass
class RetryConfig:
    """
    Retry configuration for order placement.

    SAFETY: Only StoreConflict is retried; the whole order is
    re-run from the price lookup.
    """

    max_retries: int = 2
    """Extra attempts after the first one."""


# ============================================================
# LEDGER CONFIGURATION
# ============================================================

@dataclass
class LedgerConfig:
    """
    Ledger configuration.
    """

    starting_balance: Decimal = Decimal("10000.00")
    """Cash credited when an account is opened."""

    money_scale: int = 2
    """Fractional digits of every money amount."""

    lock_timeout_seconds: float = 10.0
    """Maximum wait for a user's ledger lock."""


# ============================================================
# PRICE FEED CONFIGURATION
# ============================================================

@dataclass
class PriceFeedConfig:
    """
    Price feed configuration.
    """

    provider: str = "finnhub"
    """Feed implementation: finnhub or static."""

    base_url: str = "https://finnhub.io/api/v1"
    """Provider REST base URL."""

    api_key_env: str = "FINNHUB_API_KEY"
    """Environment variable holding the API key."""

    api_key: Optional[str] = None
    """API key (resolved from api_key_env when not given)."""

    timeout_seconds: float = 5.0
    """HTTP timeout for one quote request."""

    static_prices: Dict[str, Decimal] = field(default_factory=dict)
    """Prices served by the static provider."""

    def resolve_api_key(self) -> str:
        key = self.api_key or os.getenv(self.api_key_env, "")
        if not key:
            raise InvalidConfigError(self.api_key_env, "", "API key is required for the finnhub provider")
        return key


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class TradingEngineConfig:
    """
    Master configuration for the trading ledger.
    """

    # Sub-configs
    retry: RetryConfig = field(default_factory=RetryConfig)
    """Retry configuration."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    """Ledger configuration."""

    price_feed: PriceFeedConfig = field(default_factory=PriceFeedConfig)
    """Price feed configuration."""

    # Global settings
    database_url: Optional[str] = None
    """Database URL; None falls back to the environment / local SQLite."""

    log_level: str = "INFO"
    """Root log level used by the runner."""

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            InvalidConfigError: First invalid value found
        """
        if self.retry.max_retries < 0:
            raise InvalidConfigError("ORDER_MAX_RETRIES", self.retry.max_retries, "must be >= 0")
        if self.ledger.starting_balance < 0:
            raise InvalidConfigError("STARTING_BALANCE", self.ledger.starting_balance, "must be >= 0")
        if self.ledger.lock_timeout_seconds <= 0:
            raise InvalidConfigError(
                "LEDGER_LOCK_TIMEOUT_SECONDS", self.ledger.lock_timeout_seconds, "must be > 0"
            )
        if self.price_feed.timeout_seconds <= 0:
            raise InvalidConfigError(
                "PRICE_FEED_TIMEOUT_SECONDS", self.price_feed.timeout_seconds, "must be > 0"
            )
        if self.price_feed.provider not in ("finnhub", "static"):
            raise InvalidConfigError(
                "PRICE_FEED_PROVIDER", self.price_feed.provider, "must be finnhub or static"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise InvalidConfigError("LOG_LEVEL", self.log_level, "unknown log level")

    @classmethod
    def for_testing(cls) -> "TradingEngineConfig":
        """Get configuration for testing."""
        return cls(
            retry=RetryConfig(max_retries=2),
            ledger=LedgerConfig(lock_timeout_seconds=5.0),
            price_feed=PriceFeedConfig(provider="static"),
            database_url="sqlite://",
            log_level="DEBUG",
        )

    @classmethod
    def for_production(cls) -> "TradingEngineConfig":
        """Get configuration for production."""
        return cls(
            retry=RetryConfig(max_retries=3),
            price_feed=PriceFeedConfig(provider="finnhub"),
        )

    @classmethod
    def from_env(cls) -> "TradingEngineConfig":
        """
        Build configuration from environment variables (.env loaded).

        Raises:
            InvalidConfigError: Unparseable or out-of-range value
        """
        load_dotenv()

        config = cls(
            retry=RetryConfig(
                max_retries=_env_int("ORDER_MAX_RETRIES", RetryConfig.max_retries),
            ),
            ledger=LedgerConfig(
                starting_balance=_env_decimal("STARTING_BALANCE", LedgerConfig.starting_balance),
                lock_timeout_seconds=_env_float(
                    "LEDGER_LOCK_TIMEOUT_SECONDS", LedgerConfig.lock_timeout_seconds
                ),
            ),
            price_feed=PriceFeedConfig(
                provider=os.getenv("PRICE_FEED_PROVIDER", PriceFeedConfig.provider).strip().lower(),
                base_url=os.getenv("FINNHUB_BASE_URL", PriceFeedConfig.base_url),
                api_key=os.getenv("FINNHUB_API_KEY") or None,
                timeout_seconds=_env_float(
                    "PRICE_FEED_TIMEOUT_SECONDS", PriceFeedConfig.timeout_seconds
                ),
            ),
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )
        config.validate()
        return config


# ============================================================
# ENVIRONMENT PARSING
# ============================================================

def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "not an integer")


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "not a number")


def _env_decimal(key: str, default: Decimal) -> Decimal:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise InvalidConfigError(key, raw, "not a decimal amount")
    if not value.is_finite():
        raise InvalidConfigError(key, raw, "not a decimal amount")
    return value
