"""Helpers for configuring SQLAlchemy engine and session factories."""

from __future__ import annotations

import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from . import Base


def get_engine(database_url: str | None = None, **kwargs: object) -> Engine:
    """Build an engine for ``database_url`` or ``DATABASE_URL``.

    SQLite engines get foreign keys switched on and explicit ``BEGIN`` so that
    nested transactions (SAVEPOINTs) work for the upsert fallback and event
    replay detection.
    """

    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not configured.")

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):  # pragma: no cover - dialect hook
            # Let SQLAlchemy own BEGIN so SAVEPOINTs behave.
            dbapi_connection.isolation_level = None
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

        @event.listens_for(engine, "begin")
        def _begin_sqlite(connection):  # pragma: no cover - dialect hook
            connection.exec_driver_sql("BEGIN")

    return engine


def get_sessionmaker(database_url: str | None = None, **kwargs: object) -> sessionmaker[Session]:
    """Return a session factory bound to the configured engine."""

    engine = get_engine(database_url=database_url, **kwargs)
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    """Process-wide session factory used by the API, scheduler and worker."""

    return get_sessionmaker(pool_pre_ping=True)


def reset_session_factory() -> None:
    """Dispose the cached engine; useful in tests when DATABASE_URL changes."""

    if get_session_factory.cache_info().currsize:
        factory = get_session_factory()
        bind = factory.kw.get("bind")
        if bind is not None:
            bind.dispose()
    get_session_factory.cache_clear()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "get_engine",
    "get_session_factory",
    "get_sessionmaker",
    "reset_session_factory",
    "session_scope",
]
