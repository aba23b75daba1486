"""
Trading Engine - Types.

============================================================
PURPOSE
============================================================
All value types handed across the trading engine boundary.

Every type here is an immutable snapshot: ORM rows never
leave a ledger session.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from core.exceptions import InvalidAmount
from database.models import MAX_QUANTITY, SYMBOL_LENGTH, USER_ID_LENGTH


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_user_id(user_id: Any) -> str:
    """
    Strip a user id and check it fits the ledger columns.

    Raises:
        InvalidAmount: Empty, not a string, or too long
    """
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidAmount("User id must be a non-empty string", field="user_id", value=user_id)
    user_id = user_id.strip()
    if len(user_id) > USER_ID_LENGTH:
        raise InvalidAmount(
            f"User id must be at most {USER_ID_LENGTH} characters", field="user_id", value=user_id
        )
    return user_id


def normalize_symbol(symbol: Any) -> str:
    """Strip and upper-case a ticker symbol; InvalidAmount if malformed."""
    if not isinstance(symbol, str) or not symbol.strip():
        raise InvalidAmount("Symbol must be a non-empty string", field="symbol", value=symbol)
    symbol = symbol.strip().upper()
    if len(symbol) > SYMBOL_LENGTH:
        raise InvalidAmount(
            f"Symbol must be at most {SYMBOL_LENGTH} characters", field="symbol", value=symbol
        )
    return symbol


# ============================================================
# ORDER TYPES
# ============================================================

class OrderSide(Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: Union["OrderSide", str]) -> "OrderSide":
        """
        Accept an OrderSide or a case-insensitive name.

        Raises:
            InvalidAmount: Unknown side
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidAmount(f"Invalid order side: {value!r}", field="side", value=value)


@dataclass(frozen=True)
class TradeOrder:
    """
    Validated market order.

    Build with TradeOrder.create(); the symbol is stripped and
    upper-cased.
    """

    user_id: str
    symbol: str
    side: OrderSide
    quantity: int

    @classmethod
    def create(
        cls,
        user_id: str,
        symbol: str,
        side: Union[OrderSide, str],
        quantity: int,
    ) -> "TradeOrder":
        """
        Validate and normalize order fields.

        Raises:
            InvalidAmount: Any field is malformed
        """
        user_id = validate_user_id(user_id)
        symbol = normalize_symbol(symbol)
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidAmount("Quantity must be an integer", field="quantity", value=quantity)
        if quantity <= 0:
            raise InvalidAmount("Quantity must be positive", field="quantity", value=quantity)
        if quantity > MAX_QUANTITY:
            raise InvalidAmount(
                f"Quantity must be at most {MAX_QUANTITY}", field="quantity", value=quantity
            )

        return cls(
            user_id=user_id,
            symbol=symbol,
            side=OrderSide.parse(side),
            quantity=quantity,
        )


# ============================================================
# TRANSACTION RECORD
# ============================================================

@dataclass(frozen=True)
class TransactionRecord:
    """
    Immutable record of one executed order.
    """

    transaction_id: str
    """Unique identifier (uuid4)."""

    user_id: str
    symbol: str
    side: OrderSide
    quantity: int

    fill_price: Decimal
    """Price the order executed at."""

    total_amount: Decimal
    """fill_price * quantity at the money scale."""

    executed_at: datetime
    """Commit timestamp."""

    @classmethod
    def from_model(cls, model: Any) -> "TransactionRecord":
        return cls(
            transaction_id=model.transaction_id,
            user_id=model.user_id,
            symbol=model.symbol,
            side=OrderSide(model.side),
            quantity=model.quantity,
            fill_price=model.fill_price,
            total_amount=model.total_amount,
            executed_at=as_utc(model.executed_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": self.quantity,
            "fill_price": str(self.fill_price),
            "total_amount": str(self.total_amount),
            "executed_at": self.executed_at.isoformat(),
        }


# ============================================================
# TRADE RESULT
# ============================================================

@dataclass(frozen=True)
class TradeResult:
    """
    Outcome of place_order.

    Exactly one of transaction / error_code is set.
    """

    success: bool
    transaction: Optional[TransactionRecord] = None

    error_code: Optional[str] = None
    """ErrorCode value of the failure."""

    error_message: Optional[str] = None

    attempts: int = 1
    """Executions tried, retries included."""

    @classmethod
    def ok(cls, transaction: TransactionRecord, attempts: int = 1) -> "TradeResult":
        return cls(success=True, transaction=transaction, attempts=attempts)

    @classmethod
    def failed(cls, error_code: str, error_message: str, attempts: int = 1) -> "TradeResult":
        return cls(success=False, error_code=error_code, error_message=error_message, attempts=attempts)


# ============================================================
# ACCOUNT / PORTFOLIO VIEWS
# ============================================================

@dataclass(frozen=True)
class AccountSnapshot:
    """Cash account state at read time."""

    user_id: str
    cash_balance: Decimal
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, model: Any) -> "AccountSnapshot":
        return cls(
            user_id=model.user_id,
            cash_balance=model.cash_balance,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )


@dataclass(frozen=True)
class PositionView:
    """
    Open position priced at read time.

    priced is False when the feed failed and average_cost
    stood in for the current price.
    """

    symbol: str
    quantity: int
    average_cost: Decimal
    current_price: Decimal
    total_value: Decimal
    profit_loss: Decimal
    priced: bool = True


@dataclass(frozen=True)
class PortfolioValuation:
    """Market value and unrealized P/L of all positions."""

    market_value: Decimal
    unrealized_pnl: Decimal

    unpriced_symbols: Tuple[str, ...] = ()
    """Symbols valued at average cost."""

    @property
    def degraded(self) -> bool:
        return bool(self.unpriced_symbols)


@dataclass(frozen=True)
class PortfolioSummary:
    """Cash plus valued positions."""

    user_id: str
    cash_balance: Decimal
    market_value: Decimal
    total_value: Decimal
    unrealized_pnl: Decimal
    holdings: List[PositionView] = field(default_factory=list)


@dataclass(frozen=True)
class WatchlistItem:
    """
    Watchlist entry with its latest quote.

    Quote fields are None when the feed failed.
    """

    symbol: str
    added_at: datetime
    current_price: Optional[Decimal] = None
    change: Optional[Decimal] = None
    change_percent: Optional[Decimal] = None
