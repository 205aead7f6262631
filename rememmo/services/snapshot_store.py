"""Structured snapshot store — async CRUD over ``note_snapshots``.

The store only stages rows on the session (``add`` + ``flush``); committing
the transaction is the caller's job so that a snapshot append and the note's
pointer update land together or not at all.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.db.models import Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Append-only access to snapshot records, keyed by note id."""

    async def next_sequence(self, session: AsyncSession, note_id: str) -> int:
        """Return the 1-based ordinal the next snapshot of *note_id* will take."""
        result = await session.execute(
            select(func.max(Snapshot.sequence)).where(Snapshot.note_id == note_id)
        )
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def append(self, session: AsyncSession, snapshot: Snapshot) -> Snapshot:
        """Stage *snapshot* for insertion and flush it.

        Does NOT ignore duplicates: a repeated ``(note_id, sequence)`` raises
        ``IntegrityError`` at flush time.
        """
        session.add(snapshot)
        await session.flush()
        logger.debug(
            "✅ New snapshot %s note=%s #%d",
            snapshot.id[:8],
            snapshot.note_id[:8],
            snapshot.sequence,
        )
        return snapshot

    async def get(self, session: AsyncSession, snapshot_id: str) -> Snapshot | None:
        """Return the snapshot with *snapshot_id*, or ``None``."""
        return await session.get(Snapshot, snapshot_id)

    async def query(self, session: AsyncSession, note_id: str) -> list[Snapshot]:
        """Return every snapshot of *note_id*, newest first.

        Ordered by ``timestamp`` descending; equal timestamps fall back to
        insertion order via ``sequence``.
        """
        result = await session.execute(
            select(Snapshot)
            .where(Snapshot.note_id == note_id)
            .order_by(Snapshot.timestamp.desc(), Snapshot.sequence.desc())
        )
        return list(result.scalars().all())

    async def count(self, session: AsyncSession, note_id: str) -> int:
        result = await session.execute(
            select(func.count()).select_from(Snapshot).where(Snapshot.note_id == note_id)
        )
        return int(result.scalar_one())
