"""
Trading Engine - Service Container.

Wires config, database, price feed and services together.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from core.clock import ClockFactory, ClockProtocol
from database.engine import create_database_engine, create_session_factory, initialize_database
from market_data.base import PriceFeed
from market_data.finnhub import FinnhubPriceFeed
from market_data.static import StaticPriceFeed
from storage.ledger_store import LedgerStore

from .account_service import AccountService
from .config import TradingEngineConfig
from .portfolio_service import PortfolioService
from .trade_engine import TradeEngine
from .watchlist_service import WatchlistService


logger = logging.getLogger(__name__)


@dataclass
class TradingServices:
    """Everything a transport needs."""

    config: TradingEngineConfig
    engine: Engine
    store: LedgerStore
    price_feed: PriceFeed
    accounts: AccountService
    trades: TradeEngine
    portfolio: PortfolioService
    watchlist: WatchlistService

    def close(self) -> None:
        self.price_feed.close()
        self.engine.dispose()


def create_price_feed(config: TradingEngineConfig) -> PriceFeed:
    """Build the configured price feed."""
    feed_config = config.price_feed
    if feed_config.provider == "static":
        return StaticPriceFeed(feed_config.static_prices)

    return FinnhubPriceFeed(
        api_key=feed_config.resolve_api_key(),
        base_url=feed_config.base_url,
        timeout=feed_config.timeout_seconds,
    )


def build_services(
    config: Optional[TradingEngineConfig] = None,
    price_feed: Optional[PriceFeed] = None,
    engine: Optional[Engine] = None,
    clock: Optional[ClockProtocol] = None,
) -> TradingServices:
    """
    Create tables and wire all services.

    Args:
        config: Defaults to TradingEngineConfig.from_env()
        price_feed: Overrides the configured feed
        engine: Overrides the configured database
        clock: Overrides the process clock
    """
    config = config or TradingEngineConfig.from_env()
    config.validate()
    engine = engine or create_database_engine(config.database_url)
    initialize_database(engine)

    clock = clock or ClockFactory.get_clock()
    store = LedgerStore(
        create_session_factory(engine),
        lock_timeout_seconds=config.ledger.lock_timeout_seconds,
    )
    price_feed = price_feed or create_price_feed(config)
    accounts = AccountService(store, config.ledger, clock)

    logger.info(f"Trading services ready (price feed: {price_feed.name})")

    return TradingServices(
        config=config,
        engine=engine,
        store=store,
        price_feed=price_feed,
        accounts=accounts,
        trades=TradeEngine(store, price_feed, accounts, config, clock),
        portfolio=PortfolioService(store, price_feed, config.ledger),
        watchlist=WatchlistService(store, price_feed, clock),
    )
