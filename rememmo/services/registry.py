"""Repository Registry — note id → open mirror repository handle.

The registry exclusively owns the handle map.  Handles are created lazily on
first use, reused for the life of the process, and dropped explicitly with
:meth:`RepositoryRegistry.evict` (e.g. when a note is deleted).

Lookup-or-create runs under a single ``asyncio.Lock`` so two edit sessions
touching the same new note cannot both initialise its repository.  The
filesystem work itself runs in a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
import pathlib

from rememmo.errors import RepositoryInitError
from rememmo.mirror.backend import MirrorBackend, RepositoryHandle

logger = logging.getLogger(__name__)


class RepositoryRegistry:
    """Per-process cache of mirror repository handles, one per note."""

    def __init__(self, backend: MirrorBackend, notes_root: pathlib.Path) -> None:
        self._backend = backend
        self._notes_root = notes_root
        self._handles: dict[str, RepositoryHandle] = {}
        self._lock = asyncio.Lock()

    @property
    def backend(self) -> MirrorBackend:
        return self._backend

    @property
    def notes_root(self) -> pathlib.Path:
        return self._notes_root

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._handles

    def path_for(self, note_id: str) -> pathlib.Path:
        """Return the deterministic repository location for *note_id*."""
        return self._notes_root / note_id

    def get(self, note_id: str) -> RepositoryHandle | None:
        """Return the cached handle for *note_id* without creating one."""
        return self._handles.get(note_id)

    async def ensure_repository(self, note_id: str) -> RepositoryHandle:
        """Return the handle for *note_id*, creating and opening the repository if needed.

        Idempotent: once cached, the same handle is returned without touching
        the filesystem.

        Raises:
            RepositoryInitError: The location could not be created or the
                                 repository could not be initialised/opened.
        """
        async with self._lock:
            cached = self._handles.get(note_id)
            if cached is not None:
                return cached

            path = self.path_for(note_id)
            try:
                handle = await asyncio.to_thread(self._backend.prepare, note_id, path)
            except Exception as exc:
                logger.error(
                    "❌ Repository init failed for note %s at %s: %s",
                    note_id[:8],
                    path,
                    exc,
                )
                raise RepositoryInitError(note_id, path, str(exc)) from exc

            self._handles[note_id] = handle
            logger.info("✅ Repository handle cached for note %s (%s)", note_id[:8], path)
            return handle

    async def evict(self, note_id: str) -> bool:
        """Drop and release the handle for *note_id*.

        Returns:
            ``True`` if a handle was cached, ``False`` otherwise.
        """
        async with self._lock:
            handle = self._handles.pop(note_id, None)
        if handle is None:
            return False
        self._backend.release(handle)
        logger.debug("Evicted repository handle for note %s", note_id[:8])
        return True

    async def clear(self) -> None:
        """Release every cached handle."""
        async with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            self._backend.release(handle)
