"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to the ledger tables.
All database access MUST go through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. DAO Pattern: One repository per table
2. Session Injection: Sessions are injected, not created internally
3. Explicit Methods: No generic 'execute', clear method names
4. Immutability: Transaction records are append-only
5. Exception Handling: All DB errors wrapped in store errors

============================================================
"""

from .base import BaseRepository
from .ledger import (
    AccountRepository,
    PositionRepository,
    TransactionRepository,
    WatchlistRepository,
)

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "PositionRepository",
    "TransactionRepository",
    "WatchlistRepository",
]
