"""Versioning services: commit, restore, history, registry and note editing."""
from __future__ import annotations

from rememmo.config import Settings
from rememmo.mirror.backend import build_mirror
from rememmo.services.commit import CommitResult, CommitService, MirrorOutcome, MirrorStatus
from rememmo.services.history import HistoryService
from rememmo.services.message import synthesize_message
from rememmo.services.notes import NoteService
from rememmo.services.registry import RepositoryRegistry
from rememmo.services.restore import RestoreResult, RestoreService
from rememmo.services.snapshot_store import SnapshotStore


def build_note_service(settings: Settings) -> NoteService:
    """Assemble the service graph described by *settings*."""
    registry = RepositoryRegistry(build_mirror(settings), settings.notes_root)
    commits = CommitService(registry, SnapshotStore(), working_filename=settings.working_filename)
    return NoteService(commits)


__all__ = [
    "CommitResult",
    "CommitService",
    "HistoryService",
    "MirrorOutcome",
    "MirrorStatus",
    "NoteService",
    "RepositoryRegistry",
    "RestoreResult",
    "RestoreService",
    "SnapshotStore",
    "build_note_service",
    "synthesize_message",
]
