"""
Shared fixtures for the trading ledger tests.

Every test gets its own SQLite file database under tmp_path,
a static price feed and a frozen mock clock.
"""

from datetime import datetime, timezone

import pytest

from core.clock import MockClock
from database.engine import create_database_engine, initialize_database
from market_data.static import StaticPriceFeed
from trading_engine.config import TradingEngineConfig
from trading_engine.container import build_services


START_TIME = datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Mock clock frozen at START_TIME."""
    return MockClock(START_TIME)


@pytest.fixture
def price_feed():
    """Static feed with a few symbols."""
    return StaticPriceFeed({
        "AAPL": "100.00",
        "MSFT": "300.00",
        "TSLA": "250.00",
    })


@pytest.fixture
def db_engine(tmp_path):
    """Initialized SQLite file database."""
    engine = create_database_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def config():
    return TradingEngineConfig.for_testing()


@pytest.fixture
def services(config, price_feed, db_engine, clock):
    """Fully wired services over the test database."""
    return build_services(config, price_feed=price_feed, engine=db_engine, clock=clock)


@pytest.fixture
def store(services):
    """Ledger store shared by all services."""
    return services.store


@pytest.fixture
def user_id(services):
    """User with a freshly opened account ($10000.00)."""
    services.accounts.open_account("alice")
    return "alice"
