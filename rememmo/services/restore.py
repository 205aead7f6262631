"""Restore Service — bring a note back to a prior snapshot without losing history.

A restore always produces two new snapshots:

1. a *safety* snapshot of the note's current state
   (message ``"saved state before restore"``), then
2. a *restore* snapshot holding the target's title and content
   (message ``"restored from: <target message>"``), parented on the safety
   snapshot.

Nothing is ever deleted: the safety snapshot and everything before it stay
reachable through ``parent_snapshot_id``.  Both snapshots are staged under
the note's commit lock and committed in a single transaction: either both
land or neither does, and the note's pointer only moves when they do.

The safety state and the restored text are mirrored afterwards, best-effort;
the restore is already durable in the structured store by then.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.db.models import Note, Snapshot
from rememmo.errors import CrossNoteRestoreError, SnapshotNotFoundError
from rememmo.services.commit import CommitResult, CommitService, MirrorOutcome
from rememmo.services.message import SAFETY_COMMIT_MESSAGE, restore_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of a completed restore.

    Attributes:
        safety:   Commit result for the pre-restore safety snapshot.
        snapshot: The restore snapshot (now the note's current snapshot).
        target:   The snapshot whose content was restored.
        mirror:   Mirror outcome for the restored content.
    """

    safety: CommitResult
    snapshot: Snapshot
    target: Snapshot
    mirror: MirrorOutcome

    @property
    def degraded(self) -> bool:
        return self.mirror.degraded


class RestoreService:
    """Restores notes to earlier snapshots via the :class:`CommitService`."""

    def __init__(self, commit_service: CommitService) -> None:
        self._commits = commit_service

    async def restore_to(
        self,
        session: AsyncSession,
        note: Note,
        target: Snapshot,
    ) -> RestoreResult:
        """Restore *note* to *target*'s title and content.

        Args:
            session: Open async DB session; committed by this call.
            note:    The live note to restore.
            target:  A snapshot belonging to *note*.

        Returns:
            :class:`RestoreResult` whose ``snapshot`` is the new current snapshot.

        Raises:
            CrossNoteRestoreError: *target* belongs to another note.  Raised
                                   before any mutation.
            SnapshotPersistError:  The structured store write failed.  Neither
                                   snapshot was kept; use ``exc.note_id`` and
                                   ``session.refresh(note)`` afterwards.
        """
        if target.note_id != note.id:
            raise CrossNoteRestoreError(note.id, target.id, target.note_id)

        note_id = note.id
        await self._commits.attach(session, note)
        async with self._commits.note_lock(note_id):
            await self._commits.refresh_pointer(session, note)
            message = restore_message(target.message)

            async with self._commits.transaction(session, note_id):
                safety_at = datetime.now(timezone.utc)
                safety_snapshot = await self._commits.stage_snapshot(
                    session,
                    note,
                    message=SAFETY_COMMIT_MESSAGE,
                    parent_snapshot_id=note.current_snapshot_id,
                    timestamp=safety_at,
                )

                restored_at = datetime.now(timezone.utc)
                note.title = target.title
                note.content = target.content
                snapshot = await self._commits.stage_snapshot(
                    session,
                    note,
                    message=message,
                    parent_snapshot_id=safety_snapshot.id,
                    timestamp=restored_at,
                )

            safety_mirror = await self._commits.mirror_note(
                note,
                SAFETY_COMMIT_MESSAGE,
                updated_at=safety_at,
                title=safety_snapshot.title,
                content=safety_snapshot.content,
            )
            mirror = await self._commits.mirror_note(note, message, updated_at=restored_at)

        safety = CommitResult(snapshot=safety_snapshot, mirror=safety_mirror)
        logger.info(
            "✅ Restored note %s to %s (safety=%s, restore=%s, mirror=%s)",
            note_id[:8],
            target.id[:8],
            safety_snapshot.id[:8],
            snapshot.id[:8],
            mirror.status.value,
        )
        return RestoreResult(safety=safety, snapshot=snapshot, target=target, mirror=mirror)

    async def restore_to_id(
        self,
        session: AsyncSession,
        note: Note,
        snapshot_id: str,
    ) -> RestoreResult:
        """Resolve *snapshot_id* and restore *note* to it.

        Raises:
            SnapshotNotFoundError: No snapshot has that id.
            CrossNoteRestoreError: The snapshot belongs to another note.
        """
        target = await self._commits.store.get(session, snapshot_id)
        if target is None:
            raise SnapshotNotFoundError(snapshot_id)
        return await self.restore_to(session, note, target)
