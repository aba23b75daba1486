"""
Database Persistence Layer - Core Engine.

============================================================
LEDGER DATABASE PERSISTENCE
============================================================

This module provides the durable storage the trading ledger
writes to.

Requirements:
- SQLAlchemy ORM (PostgreSQL in production, SQLite locally)
- Explicit transaction management
- Structured logging
- Hard failures on persistence errors, classified into
  StoreConflict (retryable) and StoreUnavailable (fatal)

============================================================
"""

import os
import logging
from typing import Optional, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import SQLAlchemyError, OperationalError, IntegrityError, DBAPIError
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

from core.exceptions import TradingException, StoreConflict, StoreUnavailable

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================


class Base(DeclarativeBase):
    """Declarative base for all ledger ORM models."""


# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_SQLITE_URL = "sqlite:///./trading_ledger.db"

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL_SYNC") or os.getenv("DATABASE_URL")
    if url and url.startswith("postgresql+asyncpg"):
        # Convert async URL to sync
        url = url.replace("postgresql+asyncpg", "postgresql")

    if not url:
        # Default fallback for development
        url = DEFAULT_SQLITE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    Args:
        database_url: Explicit URL (defaults to environment)
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = database_url or get_database_url()

    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
    else:
        engine = create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            echo=echo,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def get_engine() -> Engine:
    """Get the process-wide database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to the given engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker:
    """Get the process-wide session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = create_session_factory(get_engine())

    return _SessionFactory


# =============================================================
# ERROR CLASSIFICATION
# =============================================================

_CONFLICT_MARKERS = (
    "database is locked",
    "deadlock detected",
    "could not serialize",
    "lock not available",
    "could not obtain lock",
)


def classify_database_error(error: Exception, operation: str) -> TradingException:
    """
    Map a SQLAlchemy failure onto the ledger's store errors.

    StaleDataError (row version moved), unique-key races and lock
    contention are StoreConflict. Everything else is StoreUnavailable.
    """
    context = {"operation": operation}

    if isinstance(error, StaleDataError):
        return StoreConflict(f"Concurrent modification during {operation}", context=context, cause=error)

    if isinstance(error, IntegrityError):
        return StoreConflict(f"Constraint violated during {operation}", context=context, cause=error)

    if isinstance(error, (OperationalError, DBAPIError)):
        message = str(error).lower()
        if any(marker in message for marker in _CONFLICT_MARKERS):
            return StoreConflict(f"Lock contention during {operation}", context=context, cause=error)

    return StoreUnavailable(f"Database failure during {operation}", context=context, cause=error)


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def transaction_scope(
    session_factory: Optional[sessionmaker] = None,
    operation: str = "transaction",
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Ledger errors raised inside the block propagate unchanged;
    database errors are classified into StoreConflict / StoreUnavailable.

    Usage:
        with transaction_scope(factory, "buy") as session:
            ...
            # Commits automatically at end
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
        logger.debug(f"Database transaction committed: {operation}")
    except TradingException:
        session.rollback()
        raise
    except (SQLAlchemyError, StaleDataError) as e:
        session.rollback()
        classified = classify_database_error(e, operation)
        logger.error(f"Database transaction failed, rolled back: {classified.message} ({e})")
        raise classified from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def read_session(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Read-only session; always rolled back and closed.
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
    except SQLAlchemyError as e:
        raise classify_database_error(e, "read") from e
    finally:
        session.rollback()
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


REQUIRED_TABLES = [
    "accounts",
    "positions",
    "transaction_records",
    "watchlist_entries",
]


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify database connection is working.

    Raises:
        StoreUnavailable if connection fails
    """
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise StoreUnavailable(f"Cannot connect to database: {e}", cause=e) from e


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        StoreUnavailable if table creation fails
    """
    engine = engine or get_engine()

    # Import models to register with Base
    from . import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise StoreUnavailable(f"Table creation failed: {e}", cause=e) from e


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    3. Abort on any failure

    This MUST be called at application startup.
    """
    engine = engine or get_engine()

    logger.info("=" * 60)
    logger.info("INITIALIZING LEDGER DATABASE")
    logger.info("=" * 60)

    try:
        verify_database_connection(engine)
        create_all_tables(engine)
        logger.info("LEDGER DATABASE READY")
    except Exception as e:
        logger.critical(f"DATABASE INITIALIZATION FAILED: {e}")
        raise


def get_table_row_counts(engine: Optional[Engine] = None) -> dict:
    """
    Get row counts for all ledger tables.

    Returns:
        Dict mapping table name to row count (-1 if missing)
    """
    engine = engine or get_engine()
    counts = {}

    with engine.connect() as conn:
        for table in REQUIRED_TABLES:
            try:
                counts[table] = conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
            except SQLAlchemyError:
                counts[table] = -1

    return counts


# =============================================================
# EXPORTS
# =============================================================

__all__ = [
    "Base",
    "DEFAULT_SQLITE_URL",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "classify_database_error",
    "transaction_scope",
    "read_session",
    "REQUIRED_TABLES",
    "verify_database_connection",
    "create_all_tables",
    "initialize_database",
    "get_table_row_counts",
]
