"""Engine and session plumbing for the SQL-backed stores.

Operator configs and transcripts share one database. ``DATABASE_URL`` may be a
plain ``postgres://`` URL as handed out by most hosting providers; it is
rewritten to use the psycopg 3 driver. SQLite URLs are accepted for local runs
and tests.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from . import Base

logger = logging.getLogger(__name__)

_POSTGRES_SCHEMES = ("postgres://", "postgresql://")


def _driver_url(url: str) -> str:
    for scheme in _POSTGRES_SCHEMES:
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme):]
    return url


def get_engine(database_url: str, **kwargs: object) -> Engine:
    """Build an engine for ``database_url``.

    In-memory SQLite databases are pinned to a single connection so every
    session sees the same tables.
    """

    if not database_url:
        raise RuntimeError("DATABASE_URL is not configured.")
    url = _driver_url(database_url)
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.pop("pool_pre_ping", None)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if ":memory:" in url or url.endswith(":///") or url.endswith("://"):
            kwargs.setdefault("poolclass", StaticPool)

    engine = create_engine(url, **kwargs)
    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _foreign_keys(dbapi_connection, _record):  # pragma: no cover - dialect hook
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    # Rows are handed to callers after commit; keep their loaded state.
    return sessionmaker(bind=engine, expire_on_commit=False)


def ensure_schema(engine: Engine) -> None:
    """Create the operator and conversation tables if missing."""

    Base.metadata.create_all(engine)
    logger.info("Chat schema ready on %s", engine.url.render_as_string(hide_password=True))


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """One unit of work: commit on success, roll back on any error."""

    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


__all__ = ["Base", "ensure_schema", "get_engine", "get_sessionmaker", "session_scope"]
