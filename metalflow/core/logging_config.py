"""
Logging setup for the persistence layer.

Modules log through ``logging.getLogger(__name__)``; this module only decides
levels and output format at process start.
"""

import logging

from metalflow.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """
    Configure root and SQLAlchemy loggers from settings.

    Args:
        settings: Application settings providing LOG_LEVEL and LOG_SQL
    """
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown LOG_LEVEL: {settings.LOG_LEVEL}")

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("metalflow").setLevel(level)

    # SQL echo goes through logging rather than engine(echo=True)
    sql_level = logging.INFO if settings.LOG_SQL else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)
