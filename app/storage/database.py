import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import load_config
from app.core.errors import TransientStoreError

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, timeout_seconds: int = 10) -> Engine:
    """
    Create an engine with bounded waits on connections and locks.

    In-memory SQLite URLs share a single connection so every session sees the
    same database.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": timeout_seconds}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, future=True, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )


def get_engine() -> Engine:
    """Get the global engine, creating it (and the schema) on first use."""
    global _engine, _session_factory
    if _engine is None:
        cfg = load_config()
        _engine = build_engine(cfg.database_url, cfg.db_timeout_seconds)
        _session_factory = sessionmaker(bind=_engine, expire_on_commit=False, future=True)
        init_db(_engine)
    return _engine


def reset_engine() -> None:
    """Dispose of the global engine so the next call rebuilds it from config."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def init_db(engine: Engine) -> None:
    # Models must be imported so their tables register on Base.metadata.
    from app.storage import models  # noqa: F401

    Base.metadata.create_all(engine)


def get_session_factory() -> sessionmaker:
    get_engine()
    return _session_factory


# Dependency for FastAPI
def get_session() -> Iterator[Session]:
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver-level failures into TransientStoreError."""
    try:
        yield
    except (OperationalError, DBAPIError) as exc:
        logger.error(f"Store failure during {operation}: {exc}")
        raise TransientStoreError(f"Event store unavailable during {operation}") from exc


def ping() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.warning(f"Database ping failed: {exc}")
        return False
