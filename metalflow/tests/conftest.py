"""
Test Configuration and Fixtures

Each test gets its own file-backed SQLite database with foreign keys turned
on, so several sessions can hold separate connections to the same store.
"""

from collections.abc import Generator

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel

from metalflow.core.db import create_db_engine, create_session_factory, init_db
from metalflow.infrastructure.database.repositories import (
    LineRepository,
    OperationRepository,
    OperationTypeRepository,
    ProductionOrderRepository,
    ProductRepository,
    WorkCenterRepository,
)


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """Create a fresh schema in a throwaway SQLite file."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'metalflow_test.db'}")
    init_db(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session for the test, closed afterwards."""
    with session_factory() as session:
        yield session


@pytest.fixture
def statement_log(engine) -> Generator[list[str], None, None]:
    """
    Record every SQL statement sent to the database.

    Usage:
        statement_log.clear()
        repository.get_by_id_with_details(some_id)
        assert len(statement_log) == 1
    """
    statements: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    yield statements
    event.remove(engine, "before_cursor_execute", _record)


@pytest.fixture
def line_repository(db_session: Session) -> LineRepository:
    return LineRepository(db_session)


@pytest.fixture
def work_center_repository(db_session: Session) -> WorkCenterRepository:
    return WorkCenterRepository(db_session)


@pytest.fixture
def operation_repository(db_session: Session) -> OperationRepository:
    return OperationRepository(db_session)


@pytest.fixture
def operation_type_repository(db_session: Session) -> OperationTypeRepository:
    return OperationTypeRepository(db_session)


@pytest.fixture
def product_repository(db_session: Session) -> ProductRepository:
    return ProductRepository(db_session)


@pytest.fixture
def production_order_repository(db_session: Session) -> ProductionOrderRepository:
    return ProductionOrderRepository(db_session)
