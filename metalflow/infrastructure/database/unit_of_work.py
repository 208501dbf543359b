"""
Unit of Work implementation for managing transactions across repositories.

Repositories commit after every write when used on their own. Inside a unit
of work they only flush, and the unit of work commits once on a clean exit,
so that e.g. a line and its routes are created together or not at all.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from metalflow.core.db import create_session_factory
from metalflow.domain.shared.exceptions import DatabaseError
from metalflow.infrastructure.database.repositories import (
    LineRepository,
    OperationRepository,
    OperationTypeRepository,
    ProductionOrderRepository,
    ProductRepository,
    WorkCenterRepository,
)
from metalflow.infrastructure.database.repositories.base import FAILED_WRITE_KEY

logger = logging.getLogger(__name__)


class SqlModelUnitOfWork:
    """
    SQLModel-based Unit of Work.

    Opens one session on enter, exposes every repository bound to it, commits
    on clean exit and rolls back when the block raises.
    """

    lines: LineRepository
    work_centers: WorkCenterRepository
    operations: OperationRepository
    operation_types: OperationTypeRepository
    products: ProductRepository
    production_orders: ProductionOrderRepository

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Initialize the unit of work.

        Args:
            session_factory: Callable returning a new session
        """
        self._session_factory = session_factory
        self._session: Session | None = None

    def __enter__(self) -> "SqlModelUnitOfWork":
        self._session = self._session_factory()
        self._init_repositories(self._session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is not None:
                logger.info("Rolling back unit of work after %s", exc_type.__name__)
                self.rollback()
            else:
                self.commit()
        finally:
            if self._session is not None:
                self._session.close()
                self._session = None

    @property
    def session(self) -> Session:
        """
        Get the current database session.

        Raises:
            DatabaseError: If no active session
        """
        if self._session is None:
            raise DatabaseError("No active database session")
        return self._session

    def commit(self) -> None:
        """
        Commit the current transaction.

        A write that failed inside the unit of work rolled back the writes
        before it, so the transaction is refused rather than committing only
        what came after.

        Raises:
            DatabaseError: If there is no active session, or an earlier write failed
            sqlalchemy.exc.SQLAlchemyError: If the commit fails, after rollback
        """
        session = self.session
        failed = session.info.pop(FAILED_WRITE_KEY, None)
        if failed is not None:
            logger.warning("Unit of work not committed, %s failed earlier", failed)
            session.rollback()
            raise DatabaseError(
                f"Unit of work not committed: '{failed}' failed earlier",
                {"operation": failed},
            )
        try:
            session.commit()
        except SQLAlchemyError:
            logger.warning("Unit of work commit failed, rolling back")
            session.rollback()
            raise

    def rollback(self) -> None:
        self.session.info.pop(FAILED_WRITE_KEY, None)
        self.session.rollback()

    def flush(self) -> None:
        """Flush pending changes without committing, e.g. to obtain generated ids."""
        self.session.flush()

    def _init_repositories(self, session: Session) -> None:
        self.lines = LineRepository(session, auto_commit=False)
        self.work_centers = WorkCenterRepository(session, auto_commit=False)
        self.operations = OperationRepository(session, auto_commit=False)
        self.operation_types = OperationTypeRepository(session, auto_commit=False)
        self.products = ProductRepository(session, auto_commit=False)
        self.production_orders = ProductionOrderRepository(session, auto_commit=False)


class UnitOfWorkManager:
    """Factory for unit of work instances sharing one session factory."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create_unit_of_work(self) -> SqlModelUnitOfWork:
        return SqlModelUnitOfWork(self._session_factory)

    @contextmanager
    def transaction(self) -> Iterator[SqlModelUnitOfWork]:
        """
        Context manager for executing code within a transaction.

        Usage:
            with manager.transaction() as uow:
                line = uow.lines.add(Line(name="L1"))
                uow.work_centers.add(WorkCenter(name="WC1", line_id=line.id, ...))

        Yields:
            Unit of Work instance
        """
        with self.create_unit_of_work() as uow:
            yield uow


def build_unit_of_work_manager(engine: Engine) -> UnitOfWorkManager:
    """Create a manager whose units of work open sessions on ``engine``."""
    return UnitOfWorkManager(create_session_factory(engine))
