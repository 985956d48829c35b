"""
Database base configuration for SQLAlchemy models.

This module uses SQLAlchemy 2.0 style with DeclarativeBase. Requests run on
the sync engine: each request gets its own Session from SessionLocal, and all
coordination between concurrent requests happens through database
transactions and constraints.
"""

from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from cbt.core.config import settings


def enable_sqlite_savepoints(sqlite_engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs nest correctly.

    pysqlite defers BEGIN until the first DML statement, so a SAVEPOINT issued
    earlier becomes the outermost transaction and releasing it commits.
    Batch operations and code-collision retries depend on savepoints.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _connect_args(database_url: str) -> Dict[str, Any]:
    """Driver-level connect timeout so an unreachable store fails fast."""
    if database_url.startswith("sqlite"):
        # sqlite3 waits this many seconds on a locked database
        return {"check_same_thread": False, "timeout": settings.DB_CONNECT_TIMEOUT}
    return {"connect_timeout": settings.DB_CONNECT_TIMEOUT}


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_POOL_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,  # Seconds to wait for a connection
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,  # Verify connections are alive before using them
    connect_args=_connect_args(settings.DATABASE_URL),
)

if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class with type annotation support.
    """

    pass


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get a database session.

    Yields a session and ensures it is rolled back on error and closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
