"""Note Service — create, edit, look up and delete versioned notes.

Every write goes through the :class:`CommitService`, so each creation and
edit leaves a snapshot behind:

- creating a note commits it as ``"initial commit"``;
- editing a note commits it with a message synthesized from the old and new
  text (``"updated title"``, ``"no changes"``, ...);
- deleting a note drops the row and its cached repository handle but leaves
  its snapshots and mirror repository on disk.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.db.models import Note
from rememmo.errors import EmptyNoteError, NoteNotFoundError
from rememmo.mirror.backend import RepositoryHandle
from rememmo.services.commit import CommitResult, CommitService
from rememmo.services.history import HistoryService
from rememmo.services.message import INITIAL_COMMIT_MESSAGE
from rememmo.services.restore import RestoreResult, RestoreService

logger = logging.getLogger(__name__)


class NoteService:
    """Entry point for note editing; wires commits, restores and history together."""

    def __init__(
        self,
        commit_service: CommitService,
        *,
        history: HistoryService | None = None,
        restore: RestoreService | None = None,
    ) -> None:
        self._commits = commit_service
        self._history = history or HistoryService(commit_service.store)
        self._restore = restore or RestoreService(commit_service)

    @property
    def commits(self) -> CommitService:
        return self._commits

    @property
    def history(self) -> HistoryService:
        return self._history

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_note(self, session: AsyncSession, note_id: str) -> Note:
        """Return the note with *note_id*.

        Raises:
            NoteNotFoundError: No such note.
        """
        note = await session.get(Note, note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    async def list_notes(self, session: AsyncSession) -> list[Note]:
        """Return every note, most recently updated first."""
        result = await session.execute(select(Note).order_by(Note.updated_at.desc()))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_note(
        self,
        session: AsyncSession,
        title: str,
        content: str,
    ) -> tuple[Note, CommitResult]:
        """Insert a new note and record its initial snapshot.

        Raises:
            EmptyNoteError:       Both *title* and *content* are blank.
            SnapshotPersistError: The initial snapshot could not be stored.
        """
        if not title.strip() and not content.strip():
            raise EmptyNoteError("A note needs a title or some content.")

        now = datetime.now(timezone.utc)
        note = Note(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
            current_snapshot_id=None,
        )
        result = await self._commits.commit(session, note, INITIAL_COMMIT_MESSAGE)
        logger.info("✅ Created note %s (%r)", note.id[:8], title[:30])
        return note, result

    async def update_note(
        self,
        session: AsyncSession,
        note: Note,
        *,
        title: str,
        content: str,
    ) -> CommitResult:
        """Apply an edit to *note* and commit it.

        Title and content are trimmed of surrounding whitespace before they
        are compared and stored.  An unchanged note still gets a
        ``"no changes"`` snapshot.

        Raises:
            EmptyNoteError:       The trimmed title is empty.
            SnapshotPersistError: The snapshot could not be stored.
        """
        new_title = title.strip()
        new_content = content.strip()
        if not new_title:
            raise EmptyNoteError("A note's title cannot be empty.")

        old_title, old_content = note.title, note.content
        note.title = new_title
        note.content = new_content
        return await self._commits.commit_changes(session, note, old_title, old_content)

    async def restore(
        self,
        session: AsyncSession,
        note: Note,
        snapshot_id: str,
    ) -> RestoreResult:
        """Restore *note* to the snapshot with *snapshot_id*."""
        return await self._restore.restore_to_id(session, note, snapshot_id)

    async def delete_note(self, session: AsyncSession, note: Note) -> None:
        """Delete *note* and release its repository handle.

        Snapshots and the mirror repository are retained.
        """
        note_id = note.id
        await session.delete(note)
        await session.commit()
        await self._commits.registry.evict(note_id)
        self._commits.forget(note_id)
        logger.info("Deleted note %s (history retained)", note_id[:8])

    async def initialize_versioning(self, note_id: str) -> RepositoryHandle:
        """Create or open *note_id*'s mirror repository explicitly.

        Unlike the commit path, a failure here is not absorbed.

        Raises:
            RepositoryInitError: The repository could not be initialised.
        """
        return await self._commits.registry.ensure_repository(note_id)

    async def mirror_log(self, note_id: str) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(commit_id, commit)`` pairs from *note_id*'s mirror, newest first.

        Empty when the mirror is disabled.

        Raises:
            RepositoryInitError: The repository could not be initialised.
            MirrorError:         A commit object is missing or unreadable.
        """
        handle = await self._commits.registry.ensure_repository(note_id)
        if handle.repository is None:
            return []
        return await asyncio.to_thread(handle.repository.log)
