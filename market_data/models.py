"""
Market Data Models - Normalized quote.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True)
class Quote:
    """
    Normalized quote of one symbol.

    current_price is always positive; the other fields are
    whatever the provider reported.
    """
    symbol: str
    current_price: Decimal
    previous_close: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    open: Optional[Decimal] = None
    as_of: Optional[datetime] = None

    # Source info
    source_name: str = ""

    @property
    def change(self) -> Optional[Decimal]:
        """Current price minus previous close."""
        if self.previous_close is None:
            return None
        return self.current_price - self.previous_close

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "current_price": str(self.current_price),
            "previous_close": str(self.previous_close) if self.previous_close is not None else None,
            "high": str(self.high) if self.high is not None else None,
            "low": str(self.low) if self.low is not None else None,
            "open": str(self.open) if self.open is not None else None,
            "as_of": self.as_of.isoformat() if self.as_of else None,
            "source_name": self.source_name,
        }
