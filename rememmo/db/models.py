"""SQLAlchemy ORM models for the structured snapshot store.

Tables:
- notes: live, mutable documents with a pointer to their newest snapshot
- note_snapshots: immutable, append-only full copies of a note's text

Snapshots carry no foreign key to ``notes``: deleting a note leaves its
history in place, and retention is decided outside this package.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rememmo.config import DEFAULT_BRANCH_LABEL
from rememmo.db.database import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Note(Base):
    """A live note.  Mutated in place by edits and restores.

    ``current_snapshot_id`` is ``None`` only before the first commit; once set
    it always references a :class:`Snapshot` whose ``note_id`` equals ``id``.
    """

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now, index=True
    )
    current_snapshot_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, default=None
    )

    def __repr__(self) -> str:
        return f"<Note {self.id[:8]} title={self.title[:30]!r}>"


class Snapshot(Base):
    """An immutable copy of a note's title and content at commit time.

    ``parent_snapshot_id`` links each snapshot to the one that was current
    when it was written, so a note's history is a singly-linked chain ending
    at the first snapshot (``parent_snapshot_id is None``).

    ``sequence`` is the 1-based insertion ordinal within the note.  It breaks
    ties between equal timestamps, and the ``(note_id, sequence)`` unique
    constraint rejects a second child of the same parent written concurrently.
    """

    __tablename__ = "note_snapshots"
    __table_args__ = (
        UniqueConstraint("note_id", "sequence", name="uq_note_snapshots_sequence"),
        # Primary query: a note's history, newest first
        Index("ix_note_snapshots_note_timestamp", "note_id", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    note_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now
    )
    parent_snapshot_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )
    branch_label: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_BRANCH_LABEL
    )

    def __repr__(self) -> str:
        return (
            f"<Snapshot {self.id[:8]} note={self.note_id[:8]} #{self.sequence}"
            f" msg={self.message[:30]!r}>"
        )
