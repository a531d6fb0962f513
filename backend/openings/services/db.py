"""
Database configuration and session management for the openings backend.

This module defines a SQLModel engine targeting a SQLite database stored
in the project's ``storage`` directory.  It exposes helper functions to
initialise the schema and to obtain session objects for interacting
with the database.  The database location can be redirected with the
``OPENINGS_DATABASE_URL`` environment variable (tests use an in-memory
SQLite URL).
"""

from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

# Determine the base directory for storage.  We walk up two parent
# directories from this file to locate the backend root, then append
# ``storage``.
STORAGE_DIR = Path(__file__).resolve().parents[2] / "storage"


def make_engine(url: str | None = None) -> Engine:
    """Create an engine for ``url`` (default: the SQLite file in storage).

    In-memory SQLite URLs share one connection so that every session
    sees the same database.
    """
    if url is None:
        url = os.getenv("OPENINGS_DATABASE_URL")
    if url is None:
        STORAGE_DIR.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{(STORAGE_DIR / 'openings.db').as_posix()}"
    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    else:
        return create_engine(url, echo=False)
    _enable_sqlite_savepoints(engine)
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on pysqlite.

    The driver otherwise opens transactions lazily and a released
    outermost savepoint commits the whole transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = make_engine()
    return _engine


def create_db_and_tables(engine: Engine | None = None) -> None:
    """Create all tables in the database.

    This should be called once on application startup.  If the
    database file does not exist it will be created automatically.
    """
    SQLModel.metadata.create_all(engine or get_engine())


def get_session(engine: Engine | None = None) -> Session:
    """Return a new SQLModel session bound to the engine.

    Sessions returned by this function should be managed with a
    context manager (``with get_session() as session: ...``) to
    ensure that connections are properly closed.
    """
    return Session(engine or get_engine())
