"""
Base Price Feed - Abstract interface for all market data providers.

All feeds MUST:
- Compare symbols case-insensitively (normalize to upper case)
- Raise QuoteNotFound for unknown symbols or unusable prices
- Raise QuoteUnavailable when the provider cannot be queried
- Never return a zero or negative current price
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Iterable, Tuple

from market_data.exceptions import PriceFeedError
from market_data.models import Quote


logger = logging.getLogger(__name__)


class PriceFeed(ABC):
    """
    Abstract base class for all price feeds.

    Each feed must:
    1. Implement name - unique identifier
    2. Implement quote() - fetch and normalize one quote
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this feed."""
        pass

    @abstractmethod
    def quote(self, symbol: str) -> Quote:
        """
        Fetch the current quote of a symbol.

        Args:
            symbol: Ticker, any case

        Returns:
            Normalized quote

        Raises:
            QuoteNotFound: Unknown symbol or no usable price
            QuoteUnavailable: Provider failure
        """
        pass

    def get_current_price(self, symbol: str) -> Decimal:
        """Current price of a symbol (same failures as quote)."""
        return self.quote(symbol).current_price

    def is_valid_symbol(self, symbol: str) -> bool:
        """True if the feed returns a usable quote for the symbol."""
        try:
            self.quote(symbol)
            return True
        except PriceFeedError as e:
            logger.debug(f"[{self.name}] symbol check failed for {symbol}: {e}")
            return False

    def quote_many(self, symbols: Iterable[str]) -> Tuple[Dict[str, Quote], Dict[str, PriceFeedError]]:
        """
        Quote several symbols; a failing symbol does not fail the rest.

        Returns:
            (quotes, errors), both keyed by normalized symbol
        """
        quotes: Dict[str, Quote] = {}
        errors: Dict[str, PriceFeedError] = {}
        for symbol in symbols:
            symbol = self.normalize_symbol(symbol)
            if symbol in quotes or symbol in errors:
                continue
            try:
                quotes[symbol] = self.quote(symbol)
            except PriceFeedError as e:
                errors[symbol] = e
        return quotes, errors

    def close(self) -> None:
        """Release provider resources."""

    @staticmethod
    def normalize_symbol(symbol: str) -> str:
        return symbol.strip().upper()
