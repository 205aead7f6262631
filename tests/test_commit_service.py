"""Tests for CommitService: snapshot chain, mirror outcomes, failure policy.

Exercises the service directly against an in-memory SQLite session and a
LocalMirror rooted in ``tmp_path``.
"""
from __future__ import annotations

import asyncio
import pathlib
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.db.models import Note, Snapshot
from rememmo.errors import SnapshotPersistError
from rememmo.mirror.backend import DisabledMirror, LocalMirror, RepositoryHandle
from rememmo.mirror.repository import LocalRepository
from rememmo.services.commit import CommitService, MirrorStatus
from rememmo.services.registry import RepositoryRegistry
from rememmo.services.snapshot_store import SnapshotStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _note(title: str = "Groceries", content: str = "milk") -> Note:
    now = datetime.now(timezone.utc)
    return Note(
        id=str(uuid.uuid4()),
        title=title,
        content=content,
        created_at=now,
        updated_at=now,
    )


class _BrokenMirror(LocalMirror):
    """Mirror whose commits always fail."""

    def __init__(self) -> None:
        super().__init__(author_name="A", author_email="a@example.com")
        self.calls = 0

    def record(
        self, handle: RepositoryHandle, filename: str, content: str, message: str
    ) -> str | None:
        self.calls += 1
        raise OSError("disk full")


class _FailingStore(SnapshotStore):
    """Snapshot store whose appends fail like a locked database."""

    async def append(self, session: AsyncSession, snapshot: Snapshot) -> Snapshot:
        raise OperationalError("INSERT INTO note_snapshots", {}, Exception("database is locked"))


# ---------------------------------------------------------------------------
# Snapshot chain
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_first_commit_has_no_parent(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    result = await commit_service.commit(db_session, note, "initial commit")

    snapshot = result.snapshot
    assert snapshot.parent_snapshot_id is None
    assert snapshot.sequence == 1
    assert snapshot.note_id == note.id
    assert snapshot.title == "Groceries"
    assert snapshot.content == "milk"
    assert snapshot.branch_label == "main"
    assert note.current_snapshot_id == snapshot.id


@pytest.mark.asyncio
async def test_commits_chain_through_parent_ids(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    first = await commit_service.commit(db_session, note, "initial commit")
    note.content = "milk, eggs"
    second = await commit_service.commit(db_session, note, "updated content")
    note.content = "milk, eggs, bread"
    third = await commit_service.commit(db_session, note, "updated content")

    assert second.snapshot.parent_snapshot_id == first.snapshot.id
    assert third.snapshot.parent_snapshot_id == second.snapshot.id
    assert [s.sequence for s in (first.snapshot, second.snapshot, third.snapshot)] == [1, 2, 3]
    assert note.current_snapshot_id == third.snapshot.id
    assert await commit_service.store.count(db_session, note.id) == 3


@pytest.mark.asyncio
async def test_commit_changes_synthesizes_message(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    await commit_service.commit(db_session, note, "initial commit")

    note.title = "Groceries (week 2)"
    result = await commit_service.commit_changes(db_session, note, "Groceries", "milk")

    assert result.snapshot.message == "updated title"


@pytest.mark.asyncio
async def test_unchanged_commit_is_still_recorded(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    await commit_service.commit(db_session, note, "initial commit")
    result = await commit_service.commit_changes(db_session, note, note.title, note.content)

    assert result.snapshot.message == "no changes"
    assert await commit_service.store.count(db_session, note.id) == 2


@pytest.mark.asyncio
async def test_commit_advances_updated_at(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    result = await commit_service.commit(db_session, note, "initial commit")
    assert note.updated_at == result.snapshot.timestamp


@pytest.mark.asyncio
async def test_branch_label_is_stamped(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    result = await commit_service.commit(db_session, note, "initial commit", branch_label="draft")
    assert result.snapshot.branch_label == "draft"


# ---------------------------------------------------------------------------
# Mirror outcomes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_commit_mirrors_rendered_note(
    db_session: AsyncSession, commit_service: CommitService, notes_root: pathlib.Path
) -> None:
    note = _note()
    result = await commit_service.commit(db_session, note, "initial commit")

    assert result.mirror.status is MirrorStatus.MIRRORED
    assert not result.degraded
    working = notes_root / note.id / "note.md"
    text = working.read_text()
    assert text.startswith("# Groceries\n\nmilk\n\n---\ncreated: ")
    assert f"updated: {result.snapshot.timestamp.isoformat()}" in text

    repository = LocalRepository(notes_root / note.id)
    repository.open()
    assert repository.head() == result.mirror.commit_id
    assert repository.read_commit(result.mirror.commit_id)["message"] == "initial commit"


@pytest.mark.asyncio
async def test_mirror_history_follows_snapshots(
    db_session: AsyncSession, commit_service: CommitService, notes_root: pathlib.Path
) -> None:
    note = _note()
    await commit_service.commit(db_session, note, "initial commit")
    note.content = "milk, eggs"
    await commit_service.commit(db_session, note, "updated content")

    repository = LocalRepository(notes_root / note.id)
    repository.open()
    assert [c["message"] for _, c in repository.log()] == ["updated content", "initial commit"]


@pytest.mark.asyncio
async def test_mirror_failure_degrades_but_persists(
    db_session: AsyncSession, notes_root: pathlib.Path
) -> None:
    mirror = _BrokenMirror()
    service = CommitService(RepositoryRegistry(mirror, notes_root))
    note = _note()

    result = await service.commit(db_session, note, "initial commit")

    assert result.degraded
    assert result.mirror.status is MirrorStatus.DEGRADED
    assert "disk full" in (result.mirror.error or "")
    assert result.mirror.commit_id is None
    assert note.current_snapshot_id == result.snapshot.id
    assert await service.store.count(db_session, note.id) == 1


@pytest.mark.asyncio
async def test_repository_init_failure_degrades_every_commit(
    db_session: AsyncSession, tmp_path: pathlib.Path
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    service = CommitService(
        RepositoryRegistry(LocalMirror(author_name="A", author_email="a@x"), blocker)
    )
    note = _note()

    first = await service.commit(db_session, note, "initial commit")
    note.content = "eggs"
    second = await service.commit(db_session, note, "updated content")

    assert first.degraded and second.degraded
    assert second.snapshot.parent_snapshot_id == first.snapshot.id


@pytest.mark.asyncio
async def test_disabled_mirror_reports_disabled(
    db_session: AsyncSession, notes_root: pathlib.Path
) -> None:
    service = CommitService(RepositoryRegistry(DisabledMirror(), notes_root))
    note = _note()

    result = await service.commit(db_session, note, "initial commit")

    assert result.mirror.status is MirrorStatus.DISABLED
    assert not result.degraded
    assert list(notes_root.iterdir()) == []


@pytest.mark.asyncio
async def test_custom_working_filename(
    db_session: AsyncSession, registry: RepositoryRegistry, notes_root: pathlib.Path
) -> None:
    service = CommitService(registry, working_filename="memo.txt")
    note = _note()
    await service.commit(db_session, note, "initial commit")
    assert (notes_root / note.id / "memo.txt").is_file()


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_store_failure_raises_and_leaves_pointer(
    db_session: AsyncSession, commit_service: CommitService, notes_root: pathlib.Path
) -> None:
    note = _note()
    first = await commit_service.commit(db_session, note, "initial commit")
    note_id, first_id = note.id, first.snapshot.id

    failing = CommitService(commit_service.registry, _FailingStore())
    note.content = "eggs"
    with pytest.raises(SnapshotPersistError) as exc_info:
        await failing.commit(db_session, note, "updated content")

    # The rollback expired the note; reload before reading it.
    assert exc_info.value.note_id == note_id
    await db_session.refresh(note)
    assert note.current_snapshot_id == first_id
    assert note.content == "milk"
    assert await commit_service.store.count(db_session, note_id) == 1


@pytest.mark.asyncio
async def test_store_failure_error_identifies_expired_note(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    await commit_service.commit(db_session, note, "initial commit")

    failing = CommitService(commit_service.registry, _FailingStore())
    note.content = "eggs"
    with pytest.raises(SnapshotPersistError) as exc_info:
        await failing.commit(db_session, note, "updated content")

    reloaded = await db_session.get(Note, exc_info.value.note_id)
    assert reloaded is note
    await db_session.refresh(note)
    assert note.id == exc_info.value.note_id
    assert note.content == "milk"


@pytest.mark.asyncio
async def test_transaction_rolls_back_every_staged_snapshot(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    first = await commit_service.commit(db_session, note, "initial commit")
    note_id, first_id = note.id, first.snapshot.id
    now = datetime.now(timezone.utc)

    with pytest.raises(SnapshotPersistError):
        async with commit_service.transaction(db_session, note_id):
            staged = await commit_service.stage_snapshot(
                db_session,
                note,
                message="first staged",
                parent_snapshot_id=first_id,
                timestamp=now,
            )
            await commit_service.stage_snapshot(
                db_session,
                note,
                message="second staged",
                parent_snapshot_id=staged.id,
                timestamp=now,
            )
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

    await db_session.refresh(note)
    assert note.current_snapshot_id == first_id
    assert await commit_service.store.count(db_session, note_id) == 1
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_commits_to_one_note_form_a_chain(
    db_session: AsyncSession, commit_service: CommitService
) -> None:
    note = _note()
    await commit_service.commit(db_session, note, "initial commit")

    results = await asyncio.gather(
        *(commit_service.commit(db_session, note, f"edit {i}") for i in range(4))
    )

    snapshots = await commit_service.store.query(db_session, note.id)
    assert len(snapshots) == 5
    parents = [r.snapshot.parent_snapshot_id for r in results]
    assert len(set(parents)) == 4
    assert sorted(s.sequence for s in snapshots) == [1, 2, 3, 4, 5]


def test_note_lock_is_per_note(registry: RepositoryRegistry) -> None:
    service = CommitService(registry)
    assert service.note_lock("a") is service.note_lock("a")
    assert service.note_lock("a") is not service.note_lock("b")
    service.forget("a")
    assert "a" not in service._locks
