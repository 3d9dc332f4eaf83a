"""Session and transaction scoping shared by the repositories."""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lychee_notes.exceptions import (
    ConstraintViolationError,
    ErrorCode,
    StorageError,
)
from lychee_notes.models.db_models import SQLITE_BEGIN_OPTION, get_session_factory

logger = logging.getLogger(__name__)


class Repository:
    """Base class for repositories working against one shared engine.

    Every public repository method is one logical operation and runs in
    exactly one session and one transaction: committed when the method
    returns, rolled back when anything inside it raises.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = get_session_factory(engine)

    @contextmanager
    def write_session(
        self,
        operation: str,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
    ) -> Iterator[Session]:
        """Open a write transaction.

        The transaction starts with BEGIN IMMEDIATE, so a second writer waits
        for SQLite's write lock (up to the busy timeout) rather than failing
        when it tries to upgrade a read lock half way through.

        Raises:
            ConstraintViolationError: A unique or foreign-key constraint failed.
            StorageError: Any other database failure.
        """
        with self.session_factory() as session:
            try:
                with session.begin():
                    session.connection(
                        execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"}
                    )
                    yield session
            except IntegrityError as e:
                logger.warning(f"{operation}: constraint violation: {e.orig}")
                raise ConstraintViolationError(
                    f"Constraint violated during {operation}",
                    operation=operation,
                    original_error=e,
                ) from e
            except SQLAlchemyError as e:
                logger.error(f"{operation}: storage failure: {e}")
                raise StorageError(
                    f"Storage failure during {operation}",
                    operation=operation,
                    code=code,
                    original_error=e,
                ) from e

    @contextmanager
    def read_session(self, operation: str) -> Iterator[Session]:
        """Open a read transaction.

        All statements of the block see the same WAL snapshot.

        Raises:
            StorageError: The database could not be read.
        """
        with self.session_factory() as session:
            try:
                with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(f"{operation}: storage failure: {e}")
                raise StorageError(
                    f"Storage failure during {operation}",
                    operation=operation,
                    code=ErrorCode.STORAGE_READ_FAILED,
                    original_error=e,
                ) from e
