"""
Storage Package.

This package manages ledger persistence on top of the
database package.

Modules:
- repositories/: Data access layer
- ledger_store: Per-user unit of work
"""

from .ledger_store import LedgerSession, LedgerStore, UserLockRegistry
from .repositories import (
    AccountRepository,
    PositionRepository,
    TransactionRepository,
    WatchlistRepository,
)

__all__ = [
    "LedgerSession",
    "LedgerStore",
    "UserLockRegistry",
    "AccountRepository",
    "PositionRepository",
    "TransactionRepository",
    "WatchlistRepository",
]
