import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel, create_engine

from metalflow.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ships with foreign key enforcement off, per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(
    url: str,
    *,
    enforce_foreign_keys: bool = True,
    settings: Settings | None = None,
    **engine_kwargs: Any,
) -> Engine:
    """
    Build an engine for the given URL.

    PostgreSQL engines get the pool settings from ``settings``; SQLite engines
    get per-connection foreign key enforcement so the declared RESTRICT rules
    hold there as well.

    Args:
        url: SQLAlchemy database URL
        enforce_foreign_keys: Turn on SQLite foreign key checks
        settings: Settings to read pool options from, defaults to get_settings()
        **engine_kwargs: Extra keyword arguments passed to create_engine

    Returns:
        Configured engine
    """
    is_sqlite = url.startswith("sqlite")

    if is_sqlite:
        connect_args = engine_kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        if enforce_foreign_keys:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    settings = settings or get_settings()
    kwargs: dict[str, Any] = {
        "pool_pre_ping": settings.DATABASE_POOL_PRE_PING,
        "pool_recycle": settings.DATABASE_POOL_RECYCLE,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    }
    if settings.ENVIRONMENT != "local" or settings.USE_SSL:
        kwargs["connect_args"] = {
            "sslmode": "require",
            "connect_timeout": settings.DATABASE_CONNECT_TIMEOUT,
            "application_name": settings.PROJECT_NAME,
        }
    kwargs.update(engine_kwargs)
    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a factory producing SQLModel sessions bound to ``engine``."""
    return sessionmaker(bind=engine, class_=Session)


def init_db(engine: Engine) -> None:
    """Create every table declared in the models module."""
    # Importing the models registers the tables on SQLModel.metadata
    from metalflow.infrastructure.database import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database schema created on %s", engine.url.render_as_string())
