"""
Pydantic Schemas for the Trading Ledger API.

Money fields are Decimal and serialize as strings.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from market_data.models import Quote
from trading_engine.types import (
    AccountSnapshot,
    PortfolioSummary,
    PortfolioValuation,
    PositionView,
    TransactionRecord,
    WatchlistItem,
)


# =============================================================
# ENUMS
# =============================================================

class OrderSideEnum(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


# =============================================================
# REQUEST SCHEMAS
# =============================================================

class OpenAccountRequest(BaseModel):
    """Account opening; omit starting_balance for the default."""
    starting_balance: Optional[Decimal] = None


class AmountRequest(BaseModel):
    """Deposit / withdrawal."""
    amount: Decimal


class OrderRequest(BaseModel):
    """Market order for whole shares."""
    symbol: str = Field(..., min_length=1, max_length=16)
    quantity: int


class WatchlistAddRequest(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=16)


class BatchQuoteRequest(BaseModel):
    """Symbols to quote in one call."""
    symbols: List[str] = Field(..., min_length=1, max_length=50)


# =============================================================
# ACCOUNT SCHEMAS
# =============================================================

class AccountResponse(BaseModel):
    user_id: str
    cash_balance: Decimal
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: AccountSnapshot) -> "AccountResponse":
        return cls(
            user_id=snapshot.user_id,
            cash_balance=snapshot.cash_balance,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
        )


class BalanceResponse(BaseModel):
    user_id: str
    cash_balance: Decimal


class CloseAccountResponse(BaseModel):
    user_id: str
    deleted: Dict[str, int]


# =============================================================
# TRANSACTION SCHEMAS
# =============================================================

class TransactionResponse(BaseModel):
    transaction_id: str
    user_id: str
    symbol: str
    side: OrderSideEnum
    quantity: int
    fill_price: Decimal
    total_amount: Decimal
    executed_at: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "TransactionResponse":
        return cls(
            transaction_id=record.transaction_id,
            user_id=record.user_id,
            symbol=record.symbol,
            side=OrderSideEnum(record.side.value),
            quantity=record.quantity,
            fill_price=record.fill_price,
            total_amount=record.total_amount,
            executed_at=record.executed_at,
        )


class OrderResponse(BaseModel):
    """Executed order."""
    transaction: TransactionResponse
    attempts: int


# =============================================================
# PORTFOLIO SCHEMAS
# =============================================================

class PositionResponse(BaseModel):
    symbol: str
    quantity: int
    average_cost: Decimal
    current_price: Decimal
    total_value: Decimal
    profit_loss: Decimal
    priced: bool

    @classmethod
    def from_view(cls, view: PositionView) -> "PositionResponse":
        return cls(
            symbol=view.symbol,
            quantity=view.quantity,
            average_cost=view.average_cost,
            current_price=view.current_price,
            total_value=view.total_value,
            profit_loss=view.profit_loss,
            priced=view.priced,
        )


class ValuationResponse(BaseModel):
    market_value: Decimal
    unrealized_pnl: Decimal
    unpriced_symbols: List[str] = []

    @classmethod
    def from_valuation(cls, valuation: PortfolioValuation) -> "ValuationResponse":
        return cls(
            market_value=valuation.market_value,
            unrealized_pnl=valuation.unrealized_pnl,
            unpriced_symbols=list(valuation.unpriced_symbols),
        )


class PortfolioSummaryResponse(BaseModel):
    user_id: str
    cash_balance: Decimal
    market_value: Decimal
    total_value: Decimal
    unrealized_pnl: Decimal
    holdings: List[PositionResponse]

    @classmethod
    def from_summary(cls, summary: PortfolioSummary) -> "PortfolioSummaryResponse":
        return cls(
            user_id=summary.user_id,
            cash_balance=summary.cash_balance,
            market_value=summary.market_value,
            total_value=summary.total_value,
            unrealized_pnl=summary.unrealized_pnl,
            holdings=[PositionResponse.from_view(v) for v in summary.holdings],
        )


# =============================================================
# WATCHLIST / QUOTE SCHEMAS
# =============================================================

class WatchlistItemResponse(BaseModel):
    symbol: str
    added_at: datetime
    current_price: Optional[Decimal] = None
    change: Optional[Decimal] = None
    change_percent: Optional[Decimal] = None

    @classmethod
    def from_item(cls, item: WatchlistItem) -> "WatchlistItemResponse":
        return cls(
            symbol=item.symbol,
            added_at=item.added_at,
            current_price=item.current_price,
            change=item.change,
            change_percent=item.change_percent,
        )


class ClearWatchlistResponse(BaseModel):
    removed: int


class WatchlistCheckResponse(BaseModel):
    symbol: str
    in_watchlist: bool


class QuoteResponse(BaseModel):
    symbol: str
    current_price: Decimal
    previous_close: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    open: Optional[Decimal] = None
    as_of: Optional[datetime] = None

    @classmethod
    def from_quote(cls, quote: Quote) -> "QuoteResponse":
        return cls(
            symbol=quote.symbol,
            current_price=quote.current_price,
            previous_close=quote.previous_close,
            high=quote.high,
            low=quote.low,
            open=quote.open,
            as_of=quote.as_of,
        )


class PriceResponse(BaseModel):
    symbol: str
    current_price: Decimal


class SymbolValidationResponse(BaseModel):
    """current_price is set only for a valid symbol."""
    symbol: str
    valid: bool
    current_price: Optional[Decimal] = None


class BatchQuoteResponse(BaseModel):
    """Quotes by symbol; symbols the feed could not quote are in errors."""
    quotes: Dict[str, QuoteResponse]
    errors: Dict[str, str] = {}


# =============================================================
# ERROR SCHEMA
# =============================================================

class ErrorResponse(BaseModel):
    """Body of every typed failure."""
    error: str
    code: str
    message: str
