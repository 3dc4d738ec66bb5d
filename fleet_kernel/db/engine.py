"""
Module: fleet_kernel.db.engine
Responsibility: Engine initialisation, session factory, and the
    transactional scope every caller wraps kernel operations in.
Architecture position: Kernel > DB.  May import db/base.py; create_tables
    imports fleet_kernel.models so that Base.metadata is populated.

Invariants enforced:
    - Services never commit.  session_scope() is the only place a kernel
      transaction is committed or rolled back.
    - PostgreSQL runs at READ COMMITTED behind a QueuePool; compare-and-set
      UPDATEs re-evaluate their WHERE clause after a concurrent commit, so
      the losing writer matches zero rows.
    - SQLite runs with foreign keys on and a generous busy timeout so that
      concurrent writers serialise instead of failing with "database is
      locked".

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from fleet_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALISED = "Engine not initialized. Call init_engine_from_url() first."


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Initialise the module-level engine and session factory.

    Accepts ``postgresql://`` and ``sqlite:///`` URLs.  Calling it again
    replaces the previous engine (call reset_engine() first in tests).

    Args:
        database_url: SQLAlchemy URL.
        echo: Log every SQL statement.
        pool_size: PostgreSQL pool size.
        max_overflow: PostgreSQL connections allowed beyond pool_size.
        pool_pre_ping: Test pooled PostgreSQL connections before use.
        sqlite_busy_timeout: Seconds a SQLite writer waits for the lock.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        _engine = create_engine(
            url,
            echo=echo,
            connect_args={"timeout": sqlite_busy_timeout, "check_same_thread": False},
        )
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALISED)
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALISED)
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """Session factory, for callers that need one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALISED)
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Transactional scope: commit on normal exit, roll back and re-raise on
    any exception, always close.

        with session_scope() as session:
            RideLifecycleService(session, policy).transition(ride_id, action, scope)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table registered on Base.metadata."""
    from fleet_kernel.db.base import Base
    import fleet_kernel.models  # noqa: F401  (registers the mappers)

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every table. Tests only."""
    from fleet_kernel.db.base import Base
    import fleet_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


def _atexit_dispose() -> None:
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


def is_sqlite() -> bool:
    return _engine is not None and _engine.dialect.name == "sqlite"
