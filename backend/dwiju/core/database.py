"""SQLite engine and request-scoped sessions for the ledger, accounts and catalog."""

import logging

from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from dwiju.core.config import settings

logger = logging.getLogger(__name__)


def create_db_engine(url: str, **kwargs):
    """Engine with the SQLite connection settings every ledger connection relies on.

    ``busy_timeout`` lets concurrent appends wait for the write lock instead of
    failing with "database is locked"; foreign keys are off by default in SQLite.
    """
    connect_args = {"check_same_thread": False, "timeout": settings.db_busy_timeout}
    connect_args.update(kwargs.pop("connect_args", {}))
    engine = create_engine(url, echo=settings.debug, connect_args=connect_args, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = create_db_engine(settings.database_url or f"sqlite:///{settings.db_path}")


def init_db() -> None:
    import dwiju.models  # noqa: F401 - ensure models are registered
    SQLModel.metadata.create_all(engine)
    logger.info(f"Database ready at {engine.url}")


def get_session():
    with Session(engine) as session:
        yield session
