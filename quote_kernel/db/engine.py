"""
Module: quote_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factories, and
    transactional scope utilities.  This is the single point of database
    connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, domain/, or outer layers (except for
    create_tables, which imports models so their tables are registered).

Invariants enforced:
    - No module-level engine.  Callers build an engine and a session factory
      and pass them down explicitly; nothing here holds process-wide state.
    - PostgreSQL is the production backend: READ COMMITTED isolation with
      explicit row-level locking (SELECT ... FOR UPDATE) where stronger
      guarantees are needed.
    - SQLite is supported for tests.  Every transaction is opened with
      ``BEGIN IMMEDIATE`` so concurrent writers serialize on the database
      lock instead of failing on upgrade, and foreign keys are enforced.

Failure modes:
    - OperationalError when the database is unreachable or a lock cannot be
      acquired within the busy timeout.  The store adapter maps this to
      StoreUnavailableError.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from quote_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _install_sqlite_hooks(engine: Engine, busy_timeout_ms: int) -> None:
    """
    Take over transaction control from pysqlite.

    pysqlite defers BEGIN until the first write, which lets two readers
    both decide to write and then deadlock on upgrade.  Emitting BEGIN
    IMMEDIATE ourselves takes the write lock up front.
    """

    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    event.listen(engine, "connect", _on_connect)
    event.listen(engine, "begin", _on_begin)


def create_kernel_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    busy_timeout_ms: int = 30000,
) -> Engine:
    """
    Build an engine for ``database_url``.

    Args:
        database_url: PostgreSQL URL in production, ``sqlite:///path`` in tests.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool.
        max_overflow: Max connections beyond pool_size.
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        busy_timeout_ms: SQLite only.  How long a writer waits for the lock.

    Returns:
        SQLAlchemy Engine instance.
    """
    if database_url.startswith("sqlite"):
        pool_args: dict = {}
        if ":memory:" not in database_url:
            pool_args = {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_timeout": pool_timeout,
            }
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": busy_timeout_ms / 1000,
            },
            **pool_args,
        )
        _install_sqlite_hooks(engine, busy_timeout_ms)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Session factory bound to ``engine``.

    One session per unit of work; in multi-threaded code each thread
    must create its own session from the factory.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    On normal exit the session is committed and closed.  On exception it
    is rolled back and closed, and the exception is re-raised.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
    """
    session = session_factory()
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


def create_tables(engine: Engine) -> None:
    """
    Create all kernel tables.

    Importing ``quote_kernel.models`` registers every model on
    Base.metadata before create_all runs.
    """
    import quote_kernel.models  # noqa: F401
    from quote_kernel.db.base import Base

    Base.metadata.create_all(engine)
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables(engine: Engine) -> None:
    """Drop all kernel tables. Use with caution - primarily for testing."""
    import quote_kernel.models  # noqa: F401
    from quote_kernel.db.base import Base

    Base.metadata.drop_all(engine)


def is_postgres(engine: Engine) -> bool:
    return engine.dialect.name == "postgresql"


def is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name == "sqlite"
