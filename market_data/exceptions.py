"""
Market Data Exceptions - Price feed failure hierarchy.

PriceFeedError
├── QuoteNotFound      (symbol unknown, or no usable current price)
└── QuoteUnavailable   (provider unreachable, HTTP error, malformed body)

The trading engine turns either kind into PriceUnavailable.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class PriceFeedError(Exception):
    """Base exception for all price feed errors."""

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        feed_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.symbol = symbol
        self.feed_name = feed_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "symbol": self.symbol,
            "feed_name": self.feed_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.feed_name:
            parts.append(f"[feed={self.feed_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class QuoteNotFound(PriceFeedError):
    """The feed does not know the symbol or returned no usable price."""


class QuoteUnavailable(PriceFeedError):
    """The feed could not be queried."""

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        feed_name: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, symbol, feed_name, original_error, context)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data
