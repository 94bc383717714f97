"""Database engine setup for SQLite with WAL mode.

Every transaction opens with ``BEGIN IMMEDIATE`` so concurrent
settlements take the write lock up front and serialize, instead of
failing late when a read transaction tries to upgrade.  pysqlite's own
transaction handling is switched off so SQLAlchemy's ``begin`` event
controls the BEGIN statement.

SQLAlchemy Core (not ORM) is used: settlement is a handful of explicit
statements inside one transaction, with no need for an identity map.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine

from checkout.infrastructure.persistence.schema import metadata

DEFAULT_BUSY_TIMEOUT = 5.0


def create_db_engine(db_path: Path, busy_timeout: float = DEFAULT_BUSY_TIMEOUT) -> Engine:
    """Create a SQLite engine with WAL mode, foreign keys, and immediate transactions."""
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_database(db_path: Path, busy_timeout: float = DEFAULT_BUSY_TIMEOUT) -> Engine:
    """Create the database file and all tables.

    Idempotent — safe to call on an existing database.
    Returns the engine ready for use.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path, busy_timeout)
    metadata.create_all(engine)
    return engine
