"""History Query — read-only views over a note's snapshot chain.

:meth:`HistoryService.history` is advisory: a store read error is logged and
yields an empty list, so a history panel never breaks note editing.  Callers
that need to tell "no history" from "could not read history" use
:meth:`HistoryService.history_strict`, which raises
:class:`~rememmo.errors.HistoryReadError` instead.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.db.models import Snapshot
from rememmo.errors import HistoryReadError
from rememmo.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class HistoryService:
    """Newest-first history, latest snapshot, and parent-chain traversal."""

    def __init__(self, store: SnapshotStore | None = None) -> None:
        self._store = store or SnapshotStore()

    async def history_strict(self, session: AsyncSession, note_id: str) -> list[Snapshot]:
        """Return *note_id*'s snapshots newest first.

        Raises:
            HistoryReadError: The store could not be read.
        """
        try:
            return await self._store.query(session, note_id)
        except SQLAlchemyError as exc:
            raise HistoryReadError(note_id, str(exc)) from exc

    async def history(self, session: AsyncSession, note_id: str) -> list[Snapshot]:
        """Return *note_id*'s snapshots newest first, or ``[]`` on a read error."""
        try:
            return await self.history_strict(session, note_id)
        except HistoryReadError as exc:
            logger.warning("⚠️ History unavailable for note %s: %s", note_id[:8], exc.reason)
            return []

    async def latest(self, session: AsyncSession, note_id: str) -> Snapshot | None:
        """Return the newest snapshot of *note_id*, or ``None`` when there is none."""
        snapshots = await self.history(session, note_id)
        return snapshots[0] if snapshots else None

    async def get_snapshot(self, session: AsyncSession, snapshot_id: str) -> Snapshot | None:
        return await self._store.get(session, snapshot_id)

    async def walk_chain(self, session: AsyncSession, start: Snapshot) -> list[Snapshot]:
        """Follow ``parent_snapshot_id`` links from *start* back to the first snapshot.

        Returns:
            ``[start, parent, grandparent, ...]`` ending with the snapshot whose
            parent is ``None``.

        Raises:
            HistoryReadError: A parent is missing, belongs to another note, or
                              the links form a cycle.
        """
        chain: list[Snapshot] = [start]
        seen: set[str] = {start.id}
        current = start
        while current.parent_snapshot_id is not None:
            parent_id = current.parent_snapshot_id
            if parent_id in seen:
                raise HistoryReadError(start.note_id, f"cycle at snapshot {parent_id}")
            try:
                parent = await self._store.get(session, parent_id)
            except SQLAlchemyError as exc:
                raise HistoryReadError(start.note_id, str(exc)) from exc
            if parent is None:
                raise HistoryReadError(start.note_id, f"dangling parent {parent_id}")
            if parent.note_id != start.note_id:
                raise HistoryReadError(
                    start.note_id,
                    f"parent {parent_id} belongs to note {parent.note_id}",
                )
            chain.append(parent)
            seen.add(parent_id)
            current = parent
        return chain
