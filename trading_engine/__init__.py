"""
Trading Engine Package.

============================================================
PURPOSE
============================================================
Trade execution and position accounting for a paper stock
trading ledger.

Components:
- accountant: pure fill arithmetic
- account_service: cash balance lifecycle
- trade_engine: atomic buy / sell
- portfolio_service: valuation and history
- watchlist_service: followed symbols
- container: wiring

============================================================
"""

from .accountant import PositionAccountant, PositionState
from .account_service import AccountService
from .config import LedgerConfig, PriceFeedConfig, RetryConfig, TradingEngineConfig
from .container import TradingServices, build_services, create_price_feed
from .errors import (
    ERROR_CODES,
    RETRYABLE_ERROR_CODES,
    ErrorCategory,
    ErrorCodeInfo,
    get_error_info,
    is_retryable,
)
from .portfolio_service import PortfolioService
from .trade_engine import TradeEngine
from .types import (
    AccountSnapshot,
    OrderSide,
    PortfolioSummary,
    PortfolioValuation,
    PositionView,
    TradeOrder,
    TradeResult,
    TransactionRecord,
    WatchlistItem,
)
from .watchlist_service import WatchlistService

__all__ = [
    "PositionAccountant",
    "PositionState",
    "AccountService",
    "LedgerConfig",
    "PriceFeedConfig",
    "RetryConfig",
    "TradingEngineConfig",
    "TradingServices",
    "build_services",
    "create_price_feed",
    "ERROR_CODES",
    "RETRYABLE_ERROR_CODES",
    "ErrorCategory",
    "ErrorCodeInfo",
    "get_error_info",
    "is_retryable",
    "PortfolioService",
    "TradeEngine",
    "AccountSnapshot",
    "OrderSide",
    "PortfolioSummary",
    "PortfolioValuation",
    "PositionView",
    "TradeOrder",
    "TradeResult",
    "TransactionRecord",
    "WatchlistItem",
    "WatchlistService",
]
