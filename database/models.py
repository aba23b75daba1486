"""
Database ORM Models - Ledger Tables.

============================================================
LEDGER SCHEMA
============================================================

- accounts: one row per user, cash balance
- positions: one row per (user, symbol) holding
- transaction_records: append-only order history
- watchlist_entries: symbols a user follows

All timestamps are assigned explicitly by the writer from the
injected clock. There are no server defaults, onupdate hooks or
ORM cascades; deletions are issued explicitly by the ledger store.

Money columns are NUMERIC(18, 2). SQLite has no exact decimal
type, so there they are stored as integer cents. Accounts and positions carry a
version column used for optimistic concurrency detection.

============================================================
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .engine import Base


MONEY_PRECISION = 18
MONEY_SCALE = 2

# Column widths; values past them are rejected before any write
USER_ID_LENGTH = 64
SYMBOL_LENGTH = 16
MAX_QUANTITY = 2_147_483_647


class Money(TypeDecorator):
    """
    Fixed-point money column.

    NUMERIC on backends with an exact decimal type; integer cents
    on SQLite, whose driver would otherwise round through float.
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(BigInteger())
        return super().load_dialect_impl(dialect)

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        cents = Decimal(value).scaleb(MONEY_SCALE).to_integral_value(rounding=ROUND_HALF_UP)
        return int(cents)

    def process_result_value(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return Decimal(value).scaleb(-MONEY_SCALE)


MONEY = Money(MONEY_PRECISION, MONEY_SCALE)


# =============================================================
# 1. ACCOUNTS
# =============================================================

class AccountModel(Base):
    """
    Cash account of a user.

    cash_balance is written only by the account service's
    balance adjustment primitive.
    """
    __tablename__ = "accounts"

    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), primary_key=True)
    cash_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("cash_balance >= 0", name="ck_accounts_cash_non_negative"),
    )

    def __repr__(self) -> str:
        return f"AccountModel(user_id={self.user_id!r}, cash_balance={self.cash_balance})"


# =============================================================
# 2. POSITIONS
# =============================================================

class PositionModel(Base):
    """
    Open holding of one symbol.

    A row never holds quantity 0: a sell that closes the position
    deletes the row.
    """
    __tablename__ = "positions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(USER_ID_LENGTH), ForeignKey("accounts.user_id"), nullable=False, index=True
    )
    symbol: Mapped[str] = mapped_column(String(SYMBOL_LENGTH), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    average_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_positions_user_symbol"),
        CheckConstraint("quantity > 0", name="ck_positions_quantity_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"PositionModel(user_id={self.user_id!r}, symbol={self.symbol!r}, "
            f"quantity={self.quantity}, average_cost={self.average_cost})"
        )


# =============================================================
# 3. TRANSACTION RECORDS
# =============================================================

class TransactionRecordModel(Base):
    """
    Immutable record of one executed order.

    user_id is deliberately not a foreign key: records outlive a
    closed account.
    """
    __tablename__ = "transaction_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)

    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    symbol: Mapped[str] = mapped_column(String(SYMBOL_LENGTH), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    fill_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("side IN ('BUY', 'SELL')", name="ck_transaction_records_side"),
        CheckConstraint("quantity > 0", name="ck_transaction_records_quantity_positive"),
        Index("idx_transaction_records_user_time", "user_id", "executed_at"),
        Index("idx_transaction_records_user_symbol", "user_id", "symbol"),
    )


# =============================================================
# 4. WATCHLIST ENTRIES
# =============================================================

class WatchlistEntryModel(Base):
    """Symbol followed by a user."""
    __tablename__ = "watchlist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(USER_ID_LENGTH), ForeignKey("accounts.user_id"), nullable=False, index=True
    )
    symbol: Mapped[str] = mapped_column(String(SYMBOL_LENGTH), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_watchlist_user_symbol"),
    )


__all__ = [
    "MONEY",
    "MONEY_PRECISION",
    "MONEY_SCALE",
    "USER_ID_LENGTH",
    "SYMBOL_LENGTH",
    "MAX_QUANTITY",
    "Money",
    "AccountModel",
    "PositionModel",
    "TransactionRecordModel",
    "WatchlistEntryModel",
]
