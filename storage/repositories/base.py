"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all ledger repositories:
- Session injection
- Error handling wrappers (database errors become typed
  store errors)
- Common query operations
- Logging setup

============================================================
USAGE
============================================================
All ledger repositories inherit from BaseRepository.
The session is owned by the ledger store's unit of work;
repositories never commit or roll back.

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.engine import Base, classify_database_error


# Type variable for ORM model
T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Provides common add / delete / query patterns
    - Wraps database errors in StoreConflict / StoreUnavailable
    - Manages logging for all operations

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: Session):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy session (injected)
            model_class: The ORM model class this repository manages
            repository_name: Name for logging and error messages
        """
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        """Get the current session."""
        return self._session

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(self, error: SQLAlchemyError, operation: str) -> None:
        """
        Wrap a database error into a typed store error and raise it.

        Raises:
            StoreConflict / StoreUnavailable: Always
        """
        classified = classify_database_error(error, f"{self._repository_name}.{operation}")
        self._logger.error(f"Database error in {operation}: {error}")
        raise classified from error

    def _add(self, entity: T) -> T:
        """Add an entity and flush so constraint violations surface here."""
        try:
            self._session.add(entity)
            self._session.flush()
            self._logger.debug(f"Added entity: {entity}")
            return entity
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add")
            raise  # Never reached, but satisfies type checker

    def _delete(self, entity: T) -> None:
        """Delete an entity and flush."""
        try:
            self._session.delete(entity)
            self._session.flush()
            self._logger.debug(f"Deleted entity: {entity}")
        except SQLAlchemyError as e:
            self._handle_db_error(e, "delete")

    def _flush(self) -> None:
        """Flush pending changes (runs the version check on updates)."""
        try:
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "flush")

    def _execute_query(self, stmt: Any) -> List[T]:
        """Execute a select statement and return all entities."""
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_scalar(self, stmt: Any) -> Optional[T]:
        """Execute a select statement and return a single entity or None."""
        try:
            result = self._session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")
            raise
