"""
Database engine and session management.
Uses SQLAlchemy 2.0 patterns.

The record store executes Core statements through an ORM Session, so any
session bound to an engine from here (or from the host application) can
back a RecordModel. Nested units of work run as SAVEPOINTs.
"""

from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from shared.config.settings import settings


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself on pysqlite connections.

    The driver otherwise delays BEGIN until the first DML statement, so a
    SAVEPOINT can open the transaction and its RELEASE commits it.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str | None = None, **kwargs: Any) -> Engine:
    """
    Create an engine for the given URL (default: settings.database_url).

    SQLite connections may be shared across threads; an in-memory SQLite
    database keeps a single connection so every session sees the same data.
    """
    url = url or settings.database_url
    options: dict[str, Any] = {"echo": settings.sql_echo}

    sqlite = url.startswith("sqlite")
    if sqlite:
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True  # Verify connections before using

    options.update(kwargs)
    engine = create_engine(url, **options)
    if sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def safe_commit(db: Session) -> None:
    """
    Commit, rolling back on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
