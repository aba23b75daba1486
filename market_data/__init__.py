"""
Market Data Package.

Price feeds the trading engine and the portfolio service
read quotes from.

Feeds:
- FinnhubPriceFeed: Finnhub REST quote endpoint (httpx)
- StaticPriceFeed: in-memory prices
"""

from .base import PriceFeed
from .exceptions import PriceFeedError, QuoteNotFound, QuoteUnavailable
from .finnhub import FinnhubPriceFeed
from .models import Quote
from .static import StaticPriceFeed

__all__ = [
    "PriceFeed",
    "PriceFeedError",
    "QuoteNotFound",
    "QuoteUnavailable",
    "FinnhubPriceFeed",
    "Quote",
    "StaticPriceFeed",
]
