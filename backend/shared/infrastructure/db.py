"""
Database configuration and session management.
SQLAlchemy 2.0 engine, session factory and FastAPI dependencies.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from shared.config.settings import DATABASE_URL, settings


def _calculate_pool_size() -> int:
    """(2 * CPU cores) + 1, capped at 20."""
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Make pysqlite honour SAVEPOINT and foreign keys, and use WAL so readers
    never block a committing writer.

    pysqlite opens transactions lazily on its own, which breaks nested
    transactions; SQLAlchemy is told to emit BEGIN itself instead.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    PostgreSQL gets a sized pool with timeouts; SQLite (local terminals,
    tests) gets cross-thread access plus the savepoint fix above.
    """
    if make_url(url).get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=echo,
        )
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=_calculate_pool_size(),
        max_overflow=15,
        pool_timeout=30,  # Wait max 30s for connection from pool
        pool_recycle=1800,  # Recycle connections after 30 minutes
        connect_args={"connect_timeout": 10},
        echo=echo,
    )


def create_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


engine = create_db_engine(DATABASE_URL, echo=settings.database_echo)

# Session factory
SessionLocal = create_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.post("/push")
        def push(db: Session = Depends(get_db)):
            ...

    The session is closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker[Session]:
    """
    FastAPI dependency for code that opens its own sessions.

    Pull queries run on worker threads and the sync ledger writes outside
    the request transaction; both need fresh sessions, not the request one.
    """
    return SessionLocal


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI.

    Usage:
        with get_db_context() as db:
            db.execute(select(SyncLog)).scalars().all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit, rolling back before re-raising on failure.

    Usage:
        from shared.infrastructure.db import safe_commit
        safe_commit(db)
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
