import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import SQLModel, create_engine, Session

from .config import load_settings
from .errors import PersistenceUnavailable

logger = logging.getLogger(__name__)

# Errors meaning the store is unreachable, not that a statement was wrong.
OUTAGE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


def build_engine(db_url: str) -> Engine:
    connect_args = {}
    if db_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(
        db_url,
        echo=False,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine = build_engine(load_settings().database_url)


def create_db_and_tables(bind: Engine | None = None) -> None:
    SQLModel.metadata.create_all(bind or engine)


def verify_connection(bind: Engine | None = None) -> None:
    """Fail fast if the database cannot be reached."""
    try:
        with (bind or engine).connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except OUTAGE_ERRORS as exc:
        logger.exception("Database connectivity check failed")
        raise PersistenceUnavailable(str(exc)) from exc


def get_session():
    with Session(engine) as session:
        yield session


def session_factory(bind: Engine | None = None):
    """Return a zero-arg callable opening a fresh Session, for background jobs."""
    target = bind or engine

    def _open() -> Session:
        return Session(target)

    return _open


@contextmanager
def store_errors() -> Iterator[None]:
    """Translate driver connectivity errors into PersistenceUnavailable."""
    try:
        yield
    except OUTAGE_ERRORS as exc:
        raise PersistenceUnavailable(str(getattr(exc, "orig", None) or exc)) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise PersistenceUnavailable(str(exc.orig or exc)) from exc
        raise
