"""
Database Package Initialization.

============================================================
LEDGER DATABASE PERSISTENCE LAYER
============================================================

This package provides the real database persistence for the
trading ledger. All writes go to actual tables with explicit
transaction management.

REQUIRED:
- Every write happens inside an explicit transaction
- Every failure raises a typed store error
- No ORM lifecycle hooks: timestamps and cascades are explicit

============================================================
"""

# Core engine and session management
from .engine import (
    # Declarative base
    Base,

    # Engine creation
    create_database_engine,
    get_engine,
    get_database_url,

    # Session management
    create_session_factory,
    get_session_factory,
    transaction_scope,
    read_session,
    classify_database_error,

    # Database initialization
    initialize_database,
    create_all_tables,
    verify_database_connection,
    get_table_row_counts,
    REQUIRED_TABLES,
)

# ORM Models - ledger tables
from .models import (
    AccountModel,
    PositionModel,
    TransactionRecordModel,
    WatchlistEntryModel,
)
