"""Commit Service — dual write of a note snapshot to the mirror and the SQL store.

Algorithm
---------
1. Serialize on the note's lock; attach the note to the session and re-read
   its ``current_snapshot_id`` so the new snapshot parents on the true head.
2. Obtain the note's repository handle via the
   :class:`~rememmo.services.registry.RepositoryRegistry`.
3. Render the working file and write → stage → commit it in the mirror
   (in a worker thread).
4. Regardless of step 2–3's outcome, build the :class:`Snapshot`
   (``parent_snapshot_id = note.current_snapshot_id``).
5. Append it, advance ``note.current_snapshot_id`` / ``note.updated_at`` and
   commit the transaction.

Failure policy
--------------
The SQL store is authoritative.  Any error on the mirror path (steps 2–3) is
logged and reported as ``MirrorStatus.DEGRADED`` on the returned
:class:`CommitResult`; the commit still lands.  An error in step 5 rolls the
transaction back and raises :class:`~rememmo.errors.SnapshotPersistError`:
neither the snapshot nor the pointer move is persisted.  After that error the
note instance is expired: read the id from ``exc.note_id`` rather than
``note.id``, and reload the note with ``await session.refresh(note)``.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.config import DEFAULT_BRANCH_LABEL
from rememmo.db.models import Note, Snapshot
from rememmo.errors import SnapshotPersistError
from rememmo.services.message import synthesize_message
from rememmo.services.registry import RepositoryRegistry
from rememmo.services.rendering import render_working_file
from rememmo.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_WORKING_FILENAME = "note.md"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Public types
# ---------------------------------------------------------------------------


class MirrorStatus(str, enum.Enum):
    """How the mirror write of a commit ended.

    Attributes:
        MIRRORED: The rendered note was committed in the note's repository.
        DEGRADED: The mirror path failed; the commit is store-only.
        DISABLED: The configured backend keeps no mirror.
    """

    MIRRORED = "mirrored"
    DEGRADED = "degraded"
    DISABLED = "disabled"


@dataclass(frozen=True)
class MirrorOutcome:
    """Result of the best-effort mirror write.

    Attributes:
        status:    See :class:`MirrorStatus`.
        commit_id: The mirror commit id when ``MIRRORED``.
        error:     Human-readable failure reason when ``DEGRADED``.
    """

    status: MirrorStatus
    commit_id: str | None = None
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status is MirrorStatus.DEGRADED


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a completed commit.

    Attributes:
        snapshot: The persisted snapshot (authoritative).
        mirror:   What happened on the mirror path.
    """

    snapshot: Snapshot
    mirror: MirrorOutcome

    @property
    def degraded(self) -> bool:
        return self.mirror.degraded


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CommitService:
    """Creates snapshots for notes and mirrors them into per-note repositories."""

    def __init__(
        self,
        registry: RepositoryRegistry,
        store: SnapshotStore | None = None,
        *,
        working_filename: str = DEFAULT_WORKING_FILENAME,
    ) -> None:
        self._registry = registry
        self._store = store or SnapshotStore()
        self._working_filename = working_filename
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def registry(self) -> RepositoryRegistry:
        return self._registry

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def working_filename(self) -> str:
        return self._working_filename

    def note_lock(self, note_id: str) -> asyncio.Lock:
        """Return the lock that serializes commits to *note_id*."""
        return self._locks.setdefault(note_id, asyncio.Lock())

    def forget(self, note_id: str) -> None:
        """Drop *note_id*'s lock (after the note is deleted)."""
        lock = self._locks.get(note_id)
        if lock is not None and not lock.locked():
            del self._locks[note_id]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def commit(
        self,
        session: AsyncSession,
        note: Note,
        message: str,
        *,
        branch_label: str = DEFAULT_BRANCH_LABEL,
    ) -> CommitResult:
        """Snapshot *note*'s current title and content with *message*.

        Args:
            session:      Open async DB session; committed by this call.
            note:         The live note.  A transient note is inserted first.
            message:      Commit message stored on the snapshot and the mirror commit.
            branch_label: Free-text label stamped on the snapshot.

        Returns:
            :class:`CommitResult` with the snapshot and the mirror outcome.

        Raises:
            SnapshotPersistError: The structured store write failed.
        """
        await self.attach(session, note)
        async with self.note_lock(note.id):
            return await self.commit_locked(
                session, note, message, branch_label=branch_label
            )

    async def commit_changes(
        self,
        session: AsyncSession,
        note: Note,
        old_title: str,
        old_content: str,
        *,
        branch_label: str = DEFAULT_BRANCH_LABEL,
    ) -> CommitResult:
        """Commit *note* with a message synthesized from its previous text."""
        message = synthesize_message(old_title, old_content, note.title, note.content)
        return await self.commit(session, note, message, branch_label=branch_label)

    # ------------------------------------------------------------------
    # Building blocks (shared with RestoreService)
    # ------------------------------------------------------------------

    async def commit_locked(
        self,
        session: AsyncSession,
        note: Note,
        message: str,
        *,
        branch_label: str = DEFAULT_BRANCH_LABEL,
    ) -> CommitResult:
        """Run the commit pipeline.  The caller must hold :meth:`note_lock`."""
        await self.refresh_pointer(session, note)
        now = _utc_now()
        mirror = await self.mirror_note(note, message, updated_at=now)
        snapshot = await self.persist_snapshot(
            session,
            note,
            message=message,
            parent_snapshot_id=note.current_snapshot_id,
            timestamp=now,
            branch_label=branch_label,
        )
        logger.info(
            "✅ Commit %s for note %s: %r (mirror=%s)",
            snapshot.id[:8],
            note.id[:8],
            message,
            mirror.status.value,
        )
        return CommitResult(snapshot=snapshot, mirror=mirror)

    async def mirror_note(
        self,
        note: Note,
        message: str,
        *,
        updated_at: datetime,
        title: str | None = None,
        content: str | None = None,
    ) -> MirrorOutcome:
        """Write, stage and commit *note*'s rendered text in its repository.

        *title* and *content* default to the note's current text.  Never
        raises: every failure becomes a ``DEGRADED`` outcome.
        """
        backend = self._registry.backend
        if not backend.enabled:
            return MirrorOutcome(status=MirrorStatus.DISABLED)

        note_id = note.id
        try:
            handle = await self._registry.ensure_repository(note_id)
            text = render_working_file(
                note.title if title is None else title,
                note.content if content is None else content,
                note.created_at or updated_at,
                updated_at,
            )
            commit_id = await asyncio.to_thread(
                backend.record, handle, self._working_filename, text, message
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "⚠️ Mirror commit failed for note %s, continuing store-only: %s",
                note_id[:8],
                exc,
            )
            return MirrorOutcome(status=MirrorStatus.DEGRADED, error=str(exc))

        return MirrorOutcome(status=MirrorStatus.MIRRORED, commit_id=commit_id)

    async def stage_snapshot(
        self,
        session: AsyncSession,
        note: Note,
        *,
        message: str,
        parent_snapshot_id: str | None,
        timestamp: datetime,
        branch_label: str = DEFAULT_BRANCH_LABEL,
    ) -> Snapshot:
        """Append a snapshot of *note* and advance its pointer, flushing only.

        Must run inside :meth:`transaction`; nothing is durable until it exits.
        """
        note_id = note.id
        sequence = await self._store.next_sequence(session, note_id)
        snapshot = Snapshot(
            id=str(uuid.uuid4()),
            note_id=note_id,
            sequence=sequence,
            title=note.title,
            content=note.content,
            message=message,
            timestamp=timestamp,
            parent_snapshot_id=parent_snapshot_id,
            branch_label=branch_label,
        )
        await self._store.append(session, snapshot)
        note.current_snapshot_id = snapshot.id
        note.updated_at = timestamp
        return snapshot

    @contextlib.asynccontextmanager
    async def transaction(self, session: AsyncSession, note_id: str) -> AsyncIterator[None]:
        """Commit everything staged in the block as one unit.

        Raises:
            SnapshotPersistError: A store operation or the commit failed; the
                                  whole block has been rolled back.
        """
        try:
            yield
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("❌ Snapshot append failed for note %s: %s", note_id[:8], exc)
            raise SnapshotPersistError(note_id, str(exc)) from exc

    async def persist_snapshot(
        self,
        session: AsyncSession,
        note: Note,
        *,
        message: str,
        parent_snapshot_id: str | None,
        timestamp: datetime,
        branch_label: str = DEFAULT_BRANCH_LABEL,
    ) -> Snapshot:
        """Append a snapshot of *note* and advance its pointer in one transaction.

        Raises:
            SnapshotPersistError: The append or the commit failed; the
                                  transaction has been rolled back.
        """
        async with self.transaction(session, note.id):
            snapshot = await self.stage_snapshot(
                session,
                note,
                message=message,
                parent_snapshot_id=parent_snapshot_id,
                timestamp=timestamp,
                branch_label=branch_label,
            )
        return snapshot

    async def attach(self, session: AsyncSession, note: Note) -> None:
        """Make sure *note* is persistent in *session* and has an id."""
        state = inspect(note)
        if state.persistent:
            return
        note_id = note.id or "<new>"
        try:
            session.add(note)
            if state.transient or state.pending:
                await session.flush()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise SnapshotPersistError(note_id, str(exc)) from exc

    async def refresh_pointer(self, session: AsyncSession, note: Note) -> None:
        """Re-read ``current_snapshot_id`` so a commit from another session is seen."""
        note_id = note.id
        try:
            await session.refresh(note, attribute_names=["current_snapshot_id"])
        except SQLAlchemyError as exc:
            await session.rollback()
            raise SnapshotPersistError(note_id, str(exc)) from exc
