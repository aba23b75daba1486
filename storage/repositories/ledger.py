"""
Ledger Repositories.

============================================================
PURPOSE
============================================================
Data access for the four ledger tables:
- AccountRepository: cash accounts
- PositionRepository: open holdings per (user, symbol)
- TransactionRepository: append-only order history
- WatchlistRepository: followed symbols

============================================================
LOCKING
============================================================
Reads that precede a write inside a unit of work go through
the *_for_update methods, which issue SELECT ... FOR UPDATE.
On SQLite the clause is dropped by the dialect; the per-user
lock in the ledger store and the version column cover it.

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.models import (
    AccountModel,
    PositionModel,
    TransactionRecordModel,
    WatchlistEntryModel,
)

from .base import BaseRepository


# =============================================================
# ACCOUNT REPOSITORY
# =============================================================


class AccountRepository(BaseRepository[AccountModel]):
    """Repository for cash accounts."""

    def __init__(self, session: Session):
        super().__init__(session, AccountModel, "AccountRepository")

    def create(self, user_id: str, cash_balance: Decimal, created_at: datetime) -> AccountModel:
        """Insert a new account row."""
        entity = AccountModel(
            user_id=user_id,
            cash_balance=cash_balance,
            created_at=created_at,
            updated_at=created_at,
        )
        return self._add(entity)

    def get(self, user_id: str) -> Optional[AccountModel]:
        """Get an account without locking."""
        stmt = select(AccountModel).where(AccountModel.user_id == user_id)
        return self._execute_scalar(stmt)

    def get_for_update(self, user_id: str) -> Optional[AccountModel]:
        """Get an account and lock its row until the transaction ends."""
        stmt = (
            select(AccountModel)
            .where(AccountModel.user_id == user_id)
            .with_for_update()
        )
        return self._execute_scalar(stmt)

    def exists(self, user_id: str) -> bool:
        """Check whether an account exists."""
        try:
            stmt = select(func.count()).select_from(AccountModel).where(AccountModel.user_id == user_id)
            return self._session.execute(stmt).scalar_one() > 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "exists")
            raise

    def set_balance(self, account: AccountModel, cash_balance: Decimal, updated_at: datetime) -> AccountModel:
        """Write a new balance and flush so the version check runs now."""
        account.cash_balance = cash_balance
        account.updated_at = updated_at
        self._flush()
        return account

    def delete(self, account: AccountModel) -> None:
        """Delete an account row."""
        self._delete(account)


# =============================================================
# POSITION REPOSITORY
# =============================================================


class PositionRepository(BaseRepository[PositionModel]):
    """Repository for open positions."""

    def __init__(self, session: Session):
        super().__init__(session, PositionModel, "PositionRepository")

    def get_for_update(self, user_id: str, symbol: str) -> Optional[PositionModel]:
        """Get the position for (user, symbol) and lock its row."""
        stmt = (
            select(PositionModel)
            .where(PositionModel.user_id == user_id)
            .where(PositionModel.symbol == symbol)
            .with_for_update()
        )
        return self._execute_scalar(stmt)

    def list_for_user(self, user_id: str) -> List[PositionModel]:
        """All open positions of a user, ordered by symbol."""
        stmt = (
            select(PositionModel)
            .where(PositionModel.user_id == user_id)
            .order_by(PositionModel.symbol)
        )
        return self._execute_query(stmt)

    def create(
        self,
        user_id: str,
        symbol: str,
        quantity: int,
        average_cost: Decimal,
        created_at: datetime,
    ) -> PositionModel:
        """Insert a new position row."""
        entity = PositionModel(
            user_id=user_id,
            symbol=symbol,
            quantity=quantity,
            average_cost=average_cost,
            created_at=created_at,
            updated_at=created_at,
        )
        return self._add(entity)

    def update(
        self,
        position: PositionModel,
        quantity: int,
        average_cost: Decimal,
        updated_at: datetime,
    ) -> PositionModel:
        """Write new quantity / average cost and flush."""
        position.quantity = quantity
        position.average_cost = average_cost
        position.updated_at = updated_at
        self._flush()
        return position

    def delete(self, position: PositionModel) -> None:
        """Delete a position row (quantity reached zero)."""
        self._delete(position)

    def delete_all_for_user(self, user_id: str) -> int:
        """Delete every position of a user. Returns rows deleted."""
        try:
            result = self._session.execute(
                delete(PositionModel).where(PositionModel.user_id == user_id)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "delete_all_for_user")
            raise


# =============================================================
# TRANSACTION RECORD REPOSITORY
# =============================================================


class TransactionRepository(BaseRepository[TransactionRecordModel]):
    """
    Repository for transaction records.

    Append-only: there is no update or delete method.
    """

    def __init__(self, session: Session):
        super().__init__(session, TransactionRecordModel, "TransactionRepository")

    def append(
        self,
        transaction_id: str,
        user_id: str,
        symbol: str,
        side: str,
        quantity: int,
        fill_price: Decimal,
        total_amount: Decimal,
        executed_at: datetime,
    ) -> TransactionRecordModel:
        """Append one executed order."""
        entity = TransactionRecordModel(
            transaction_id=transaction_id,
            user_id=user_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            fill_price=fill_price,
            total_amount=total_amount,
            executed_at=executed_at,
        )
        return self._add(entity)

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[TransactionRecordModel]:
        """Records of a user, newest first."""
        stmt = (
            select(TransactionRecordModel)
            .where(TransactionRecordModel.user_id == user_id)
            .order_by(desc(TransactionRecordModel.executed_at), desc(TransactionRecordModel.id))
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._execute_query(stmt)

    def list_for_user_symbol(self, user_id: str, symbol: str) -> List[TransactionRecordModel]:
        """Records of a user for one symbol, newest first."""
        stmt = (
            select(TransactionRecordModel)
            .where(TransactionRecordModel.user_id == user_id)
            .where(TransactionRecordModel.symbol == symbol)
            .order_by(desc(TransactionRecordModel.executed_at), desc(TransactionRecordModel.id))
        )
        return self._execute_query(stmt)


# =============================================================
# WATCHLIST REPOSITORY
# =============================================================


class WatchlistRepository(BaseRepository[WatchlistEntryModel]):
    """Repository for watchlist entries."""

    def __init__(self, session: Session):
        super().__init__(session, WatchlistEntryModel, "WatchlistRepository")

    def add(self, user_id: str, symbol: str, added_at: datetime) -> WatchlistEntryModel:
        entity = WatchlistEntryModel(user_id=user_id, symbol=symbol, added_at=added_at)
        return self._add(entity)

    def get(self, user_id: str, symbol: str) -> Optional[WatchlistEntryModel]:
        stmt = (
            select(WatchlistEntryModel)
            .where(WatchlistEntryModel.user_id == user_id)
            .where(WatchlistEntryModel.symbol == symbol)
        )
        return self._execute_scalar(stmt)

    def list_for_user(self, user_id: str) -> List[WatchlistEntryModel]:
        """Entries of a user in the order they were added."""
        stmt = (
            select(WatchlistEntryModel)
            .where(WatchlistEntryModel.user_id == user_id)
            .order_by(WatchlistEntryModel.added_at, WatchlistEntryModel.id)
        )
        return self._execute_query(stmt)

    def delete(self, entry: WatchlistEntryModel) -> None:
        self._delete(entry)

    def delete_all_for_user(self, user_id: str) -> int:
        """Delete every entry of a user. Returns rows deleted."""
        try:
            result = self._session.execute(
                delete(WatchlistEntryModel).where(WatchlistEntryModel.user_id == user_id)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "delete_all_for_user")
            raise


__all__ = [
    "AccountRepository",
    "PositionRepository",
    "TransactionRepository",
    "WatchlistRepository",
]
