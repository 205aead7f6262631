"""
Async SQLAlchemy database setup for the structured snapshot store.

Supports SQLite (default, local use) and PostgreSQL.
"""
from __future__ import annotations

import contextlib
import logging
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from rememmo.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


def _connect_args(database_url: str) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def _redact(database_url: str) -> str:
    return database_url.split("@")[-1] if "@" in database_url else database_url


@contextlib.asynccontextmanager
async def open_session(url: str | None = None) -> AsyncGenerator[AsyncSession, None]:
    """Open a standalone async DB session suitable for CLI commands.

    Creates missing tables, commits on clean exit, rolls back on exception,
    and disposes the engine on exit so the process does not linger with open
    connections.  The memo store is a single-user local database, so the
    schema is created in place with ``create_all`` rather than through a
    migration tool.

    ``url`` defaults to ``settings.database_url`` (``REMEMMO_DATABASE_URL``).
    Pass an explicit URL in tests.
    """
    db_url = url or settings.database_url
    logger.debug("Opening database: %s", _redact(db_url))
    engine = create_async_engine(
        db_url,
        echo=settings.debug,
        connect_args=_connect_args(db_url),
    )

    # Import models so their tables are registered on Base.metadata.
    from rememmo.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    finally:
        await engine.dispose()
