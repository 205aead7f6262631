"""Mirror backends — the capability the commit and restore services write through.

Two interchangeable variants:

- :class:`LocalMirror`: a :class:`~rememmo.mirror.repository.LocalRepository`
  per note at ``<notes_root>/<note_id>``.
- :class:`DisabledMirror`: never touches the filesystem; every commit is
  reported as ``disabled`` rather than ``degraded``.  Used for tests and when
  ``REMEMMO_MIRROR_ENABLED=false``.

Backend methods are synchronous and may block on disk I/O.  Callers run them
through ``asyncio.to_thread``.
"""
from __future__ import annotations

import abc
import logging
import pathlib
from dataclasses import dataclass

from rememmo.config import Settings
from rememmo.mirror.repository import LocalRepository

logger = logging.getLogger(__name__)


@dataclass
class RepositoryHandle:
    """An open handle on one note's mirror repository.

    Attributes:
        note_id:    The owning note.
        path:       Deterministic repository location ``<notes_root>/<note_id>``.
        repository: The opened repository, or ``None`` for a disabled backend.
    """

    note_id: str
    path: pathlib.Path
    repository: LocalRepository | None = None


class MirrorBackend(abc.ABC):
    """Capability interface for persisting rendered notes outside the SQL store."""

    enabled: bool = True

    @abc.abstractmethod
    def prepare(self, note_id: str, path: pathlib.Path) -> RepositoryHandle:
        """Create the repository at *path* if absent, open it, and return a handle.

        Errors propagate unchanged; the registry wraps them in
        :class:`~rememmo.errors.RepositoryInitError`.
        """

    @abc.abstractmethod
    def record(
        self,
        handle: RepositoryHandle,
        filename: str,
        content: str,
        message: str,
    ) -> str | None:
        """Write *content* to *filename*, stage it, and commit with *message*.

        Returns:
            The mirror's commit id, or ``None`` when the backend keeps no commits.
        """

    def release(self, handle: RepositoryHandle) -> None:
        """Close *handle*.  Called when the registry evicts it."""


class LocalMirror(MirrorBackend):
    """Mirror every commit into a per-note :class:`LocalRepository`."""

    enabled = True

    def __init__(self, *, author_name: str, author_email: str) -> None:
        self._author_name = author_name
        self._author_email = author_email

    def prepare(self, note_id: str, path: pathlib.Path) -> RepositoryHandle:
        repository = LocalRepository(
            path,
            author_name=self._author_name,
            author_email=self._author_email,
        )
        if not repository.has_repo:
            path.mkdir(parents=True, exist_ok=True)
            repository.create()
        repository.open()
        logger.debug("✅ Mirror repository ready for note %s at %s", note_id[:8], path)
        return RepositoryHandle(note_id=note_id, path=path, repository=repository)

    def record(
        self,
        handle: RepositoryHandle,
        filename: str,
        content: str,
        message: str,
    ) -> str | None:
        repository = handle.repository
        if repository is None:
            raise ValueError(f"Handle for note {handle.note_id} has no repository")
        repository.write_file(filename, content)
        repository.stage(filename)
        return repository.commit(message)

    def release(self, handle: RepositoryHandle) -> None:
        if handle.repository is not None:
            handle.repository.close()


class DisabledMirror(MirrorBackend):
    """No-op backend: no directories, no files, no commits."""

    enabled = False

    def prepare(self, note_id: str, path: pathlib.Path) -> RepositoryHandle:
        return RepositoryHandle(note_id=note_id, path=path, repository=None)

    def record(
        self,
        handle: RepositoryHandle,
        filename: str,
        content: str,
        message: str,
    ) -> str | None:
        return None


def build_mirror(settings: Settings) -> MirrorBackend:
    """Select the mirror backend described by *settings*."""
    if not settings.mirror_enabled:
        logger.info("Mirror disabled; snapshots are stored in the database only")
        return DisabledMirror()
    return LocalMirror(
        author_name=settings.author_name,
        author_email=settings.author_email,
    )
