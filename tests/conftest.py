"""Pytest configuration and fixtures."""
from __future__ import annotations

import logging
import pathlib
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rememmo.db.database import Base
from rememmo.mirror.backend import DisabledMirror, LocalMirror
from rememmo.services.commit import CommitService
from rememmo.services.notes import NoteService
from rememmo.services.registry import RepositoryRegistry
from rememmo.services.snapshot_store import SnapshotStore

# Register Note / Snapshot with Base.metadata before create_all is called.
import rememmo.db.models  # noqa: F401, E402


def pytest_configure(config):
    """Ensure asyncio_mode is auto so async fixtures work when pyproject is not in cwd."""
    if hasattr(config.option, "asyncio_mode") and config.option.asyncio_mode is None:
        config.option.asyncio_mode = "auto"
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """In-memory SQLite session with the notes and note_snapshots tables.

    Isolated per test: tables are created fresh and dropped on teardown.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def notes_root(tmp_path: pathlib.Path) -> pathlib.Path:
    root = tmp_path / "memos"
    root.mkdir()
    return root


@pytest.fixture
def local_mirror() -> LocalMirror:
    return LocalMirror(author_name="Test Writer", author_email="writer@example.com")


@pytest.fixture
def registry(local_mirror: LocalMirror, notes_root: pathlib.Path) -> RepositoryRegistry:
    return RepositoryRegistry(local_mirror, notes_root)


@pytest.fixture
def commit_service(registry: RepositoryRegistry) -> CommitService:
    return CommitService(registry, SnapshotStore())


@pytest.fixture
def note_service(commit_service: CommitService) -> NoteService:
    return NoteService(commit_service)


@pytest.fixture
def store_only_service(notes_root: pathlib.Path) -> NoteService:
    """Note service whose mirror is disabled."""
    registry = RepositoryRegistry(DisabledMirror(), notes_root)
    return NoteService(CommitService(registry, SnapshotStore()))
