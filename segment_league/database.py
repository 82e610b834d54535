"""SQLAlchemy engine and session management."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_ECHO, DATABASE_URL, SQLITE_BUSY_TIMEOUT_MS
from .schema import Base

LOGGER = logging.getLogger(__name__)

SessionFactory = sessionmaker[Session]


def _sqlite_connect_listener(busy_timeout_ms: int):
    def _configure_sqlite_connection(dbapi_conn, connection_record) -> None:
        # Let SQLAlchemy emit BEGIN itself (see _begin_immediate).
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.close()

    return _configure_sqlite_connection


def _begin_immediate(conn) -> None:
    # Write lock taken at BEGIN; concurrent writers wait on busy_timeout.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(
    url: str | None = None,
    *,
    echo: bool | None = None,
    busy_timeout_ms: int | None = None,
) -> Engine:
    """Create an engine.

    SQLite connections enforce foreign keys and start every transaction with
    ``BEGIN IMMEDIATE``, so writes to the same file are serialised. A writer
    waits up to ``busy_timeout_ms`` for the lock before SQLite reports the
    database as locked.
    """

    url = url or DATABASE_URL
    kwargs: dict = {
        "echo": DATABASE_ECHO if echo is None else echo,
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each checkout sees an empty database.
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        timeout = SQLITE_BUSY_TIMEOUT_MS if busy_timeout_ms is None else busy_timeout_ms
        event.listen(engine, "connect", _sqlite_connect_listener(timeout))
        event.listen(engine, "begin", _begin_immediate)
    LOGGER.debug("Created database engine dialect=%s", engine.dialect.name)
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing tables."""

    Base.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> SessionFactory:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope(factory: SessionFactory) -> Iterator[Session]:
    """Yield a session wrapped in a transaction (commit or roll back)."""

    session = factory()
    try:
        with session.begin():
            yield session
    finally:
        session.close()


__all__ = [
    "SessionFactory",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
]
