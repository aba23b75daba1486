"""
Static Price Feed - In-memory quotes for development and tests.
"""

import threading
from decimal import Decimal
from typing import Dict, List, Optional, Union

from market_data.base import PriceFeed
from market_data.exceptions import QuoteNotFound, QuoteUnavailable
from market_data.models import Quote


class StaticPriceFeed(PriceFeed):
    """
    Serves prices from a dict.

    Symbols can be marked as failing to simulate an outage.
    Every quote() call is recorded in `calls`.
    """

    def __init__(self, prices: Optional[Dict[str, Union[Decimal, str, int]]] = None) -> None:
        self._lock = threading.Lock()
        self._quotes: Dict[str, Quote] = {}
        self._failing: set = set()
        self.calls: List[str] = []

        for symbol, price in (prices or {}).items():
            self.set_price(symbol, price)

    @property
    def name(self) -> str:
        return "static"

    def set_price(
        self,
        symbol: str,
        price: Union[Decimal, str, int],
        previous_close: Optional[Union[Decimal, str, int]] = None,
    ) -> None:
        """Set the current price (and optionally previous close) of a symbol."""
        symbol = self.normalize_symbol(symbol)
        quote = Quote(
            symbol=symbol,
            current_price=Decimal(str(price)),
            previous_close=Decimal(str(previous_close)) if previous_close is not None else None,
            source_name=self.name,
        )
        with self._lock:
            self._quotes[symbol] = quote

    def remove(self, symbol: str) -> None:
        with self._lock:
            self._quotes.pop(self.normalize_symbol(symbol), None)

    def fail(self, symbol: str) -> None:
        """Make quote() raise QuoteUnavailable for the symbol."""
        with self._lock:
            self._failing.add(self.normalize_symbol(symbol))

    def recover(self, symbol: str) -> None:
        with self._lock:
            self._failing.discard(self.normalize_symbol(symbol))

    def quote(self, symbol: str) -> Quote:
        symbol = self.normalize_symbol(symbol)
        with self._lock:
            self.calls.append(symbol)
            failing = symbol in self._failing
            quote = self._quotes.get(symbol)

        if failing:
            raise QuoteUnavailable("Simulated outage", symbol=symbol, feed_name=self.name)
        if quote is None or quote.current_price <= 0:
            raise QuoteNotFound("Unknown symbol", symbol=symbol, feed_name=self.name)
        return quote
