"""
Ledger Store - Transactional Wrapper.

============================================================
PURPOSE
============================================================
Gives the trade engine and the account service one atomic
read-modify-write unit across Account, Position and
TransactionRecord rows of a single user.

============================================================
SERIALIZATION
============================================================
1. Per-user in-process lock (bounded wait, timeout is a
   StoreConflict)
2. Row locks: SELECT ... FOR UPDATE on Account / Position
3. Version columns on Account / Position: a lost update
   across processes surfaces as StoreConflict at flush
   or commit

Orders of different users never share a lock.

============================================================
FAILURE MAPPING
============================================================
- Domain errors raised inside the block: rollback, re-raise
- Stale version / unique race / lock contention: StoreConflict
- Any other database failure: StoreUnavailable

============================================================
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator

from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import AccountNotFound, StoreConflict
from database.engine import read_session, transaction_scope

from .repositories.ledger import (
    AccountRepository,
    PositionRepository,
    TransactionRepository,
    WatchlistRepository,
)


logger = logging.getLogger(__name__)


# =============================================================
# PER-USER LOCKS
# =============================================================


class UserLockRegistry:
    """
    One re-usable lock per user id.

    Locks are reference counted and dropped once no thread
    holds or waits on them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def acquire(self, user_id: str, timeout: float) -> bool:
        """
        Acquire the lock of a user.

        Returns:
            True if acquired, False on timeout
        """
        with self._guard:
            lock = self._locks.setdefault(user_id, threading.Lock())
            self._waiters[user_id] = self._waiters.get(user_id, 0) + 1

        acquired = lock.acquire(timeout=timeout)
        if not acquired:
            self._forget(user_id)
        return acquired

    def release(self, user_id: str) -> None:
        with self._guard:
            lock = self._locks[user_id]
        lock.release()
        self._forget(user_id)

    def _forget(self, user_id: str) -> None:
        with self._guard:
            remaining = self._waiters[user_id] - 1
            if remaining:
                self._waiters[user_id] = remaining
            else:
                del self._waiters[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# =============================================================
# LEDGER SESSION
# =============================================================


class LedgerSession:
    """
    Repositories bound to one open session.

    Yielded by LedgerStore.unit_of_work / read_scope. Never
    commits on its own.
    """

    def __init__(self, session: Session):
        self.session = session
        self.accounts = AccountRepository(session)
        self.positions = PositionRepository(session)
        self.transactions = TransactionRepository(session)
        self.watchlist = WatchlistRepository(session)

    def delete_account_cascade(self, user_id: str) -> Dict[str, int]:
        """
        Delete a user's positions, watchlist entries and account.

        Transaction records are kept.

        Returns:
            Rows deleted per table

        Raises:
            AccountNotFound: No account for the user
        """
        account = self.accounts.get_for_update(user_id)
        if account is None:
            raise AccountNotFound(user_id)

        deleted = {
            "positions": self.positions.delete_all_for_user(user_id),
            "watchlist_entries": self.watchlist.delete_all_for_user(user_id),
        }
        self.accounts.delete(account)
        deleted["accounts"] = 1

        logger.info(f"Cascade delete for {user_id}: {deleted}")
        return deleted


# =============================================================
# LEDGER STORE
# =============================================================


class LedgerStore:
    """
    Unit-of-work provider for the ledger.

    Usage:
        with store.unit_of_work(user_id, "buy") as ledger:
            account = ledger.accounts.get_for_update(user_id)
            ...
            # Commits automatically at end
    """

    def __init__(self, session_factory: sessionmaker, lock_timeout_seconds: float = 10.0):
        self._session_factory = session_factory
        self._lock_timeout_seconds = lock_timeout_seconds
        self._user_locks = UserLockRegistry()

    @property
    def session_factory(self) -> sessionmaker:
        return self._session_factory

    @contextmanager
    def unit_of_work(self, user_id: str, operation: str = "unit_of_work") -> Generator[LedgerSession, None, None]:
        """
        Serialized, atomic write scope for one user.

        Raises:
            StoreConflict: Lock wait timed out or concurrent modification
            StoreUnavailable: Database failure
        """
        if not self._user_locks.acquire(user_id, self._lock_timeout_seconds):
            logger.warning(f"Lock wait timed out for {user_id} during {operation}")
            raise StoreConflict(
                f"Timed out waiting for ledger lock during {operation}",
                context={"user_id": user_id, "operation": operation},
            )

        try:
            with transaction_scope(self._session_factory, operation) as session:
                yield LedgerSession(session)
        finally:
            self._user_locks.release(user_id)

    @contextmanager
    def read_scope(self) -> Generator[LedgerSession, None, None]:
        """Read-only scope; takes no user lock and never commits."""
        with read_session(self._session_factory) as session:
            yield LedgerSession(session)


__all__ = [
    "UserLockRegistry",
    "LedgerSession",
    "LedgerStore",
]
