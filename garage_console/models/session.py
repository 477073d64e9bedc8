"""Helpers for configuring SQLAlchemy engine and session factories."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from garage_console.config import get_settings

from . import Base

logger = logging.getLogger(__name__)


def get_engine(database_url: str | None = None, **kwargs: object) -> Engine:
    """Create a SQLAlchemy engine.

    Args:
        database_url: Optional database URL. When ``None`` the configured
            ``DATABASE_URL`` is used.
        **kwargs: Additional keyword arguments forwarded to
            :func:`sqlalchemy.create_engine`.

    Returns:
        Configured SQLAlchemy :class:`~sqlalchemy.engine.Engine` instance.
    """

    url = database_url or get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL is not configured.")

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":

        # Cascading deletes of garages rely on enforced foreign keys.
        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):  # pragma: no cover - dialect hook
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    return engine


def init_schema(engine: Engine) -> None:
    """Create any missing tables for the declared models."""

    logger.info("Creating missing tables on %s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(engine)


def get_sessionmaker(
    database_url: str | None = None, *, engine: Engine | None = None, **kwargs: object
) -> sessionmaker[Session]:
    """Return a session factory bound to ``engine`` or the configured database."""

    bind = engine or get_engine(database_url=database_url, **kwargs)
    return sessionmaker(bind=bind, expire_on_commit=False, future=True)


@contextmanager
def session_scope(database_url: str | None = None, **kwargs: object) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    factory = get_sessionmaker(database_url=database_url, **kwargs)
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["Base", "get_engine", "get_sessionmaker", "init_schema", "session_scope"]
