"""Exception types for the versioned memo store.

Two families live here:

- Errors with no safe fallback (:class:`SnapshotPersistError`,
  :class:`CrossNoteRestoreError`, ...) propagate to the caller untouched.
- :class:`MirrorError` and :class:`RepositoryInitError` describe failures of
  the content-addressable mirror.  The commit path catches them and reports a
  degraded :class:`~rememmo.services.commit.MirrorOutcome` instead of raising;
  they only reach a caller through an explicit repository action such as
  :meth:`~rememmo.services.notes.NoteService.initialize_versioning`.
"""
from __future__ import annotations

import pathlib


class RememmoError(Exception):
    """Base exception for every error raised by this package."""


# ---------------------------------------------------------------------------
# Mirror (content-addressable repository) errors
# ---------------------------------------------------------------------------


class MirrorError(RememmoError):
    """Base exception for mirror repository I/O failures."""


class RepositoryInitError(MirrorError):
    """Raised when a note's backing repository cannot be created or opened.

    Attributes:
        note_id: The note whose repository failed to initialise.
        path:    The deterministic repository location.
    """

    def __init__(self, note_id: str, path: pathlib.Path, reason: str) -> None:
        super().__init__(
            f"Could not initialise repository for note {note_id} at {path}: {reason}"
        )
        self.note_id = note_id
        self.path = path
        self.reason = reason


class RepositoryNotFoundError(MirrorError):
    """Raised when ``open()`` finds no repository at the given path."""

    def __init__(self, path: pathlib.Path) -> None:
        super().__init__(f"No repository found at {path}.")
        self.path = path


class RepositoryNotOpenError(MirrorError):
    """Raised when a repository operation runs before ``open()``."""

    def __init__(self, path: pathlib.Path) -> None:
        super().__init__(f"Repository at {path} is not open. Call open() first.")
        self.path = path


class NothingStagedError(MirrorError):
    """Raised when ``commit()`` is called with an empty staging index."""

    def __init__(self, path: pathlib.Path) -> None:
        super().__init__(f"Nothing staged in repository at {path}.")
        self.path = path


class MissingObjectError(MirrorError):
    """Raised when an object referenced by a commit is absent from the store.

    Attributes:
        object_id: The SHA-256 digest that could not be found.
    """

    def __init__(self, object_id: str) -> None:
        super().__init__(f"Object {object_id[:8]} is missing from the object store.")
        self.object_id = object_id


# ---------------------------------------------------------------------------
# Structured store errors
# ---------------------------------------------------------------------------


class SnapshotPersistError(RememmoError):
    """Raised when appending a snapshot to the structured store fails.

    The transaction is rolled back before this is raised: neither the snapshot
    nor the note's pointer update is persisted.  The rollback expires the
    caller's ``Note``; identify it through :attr:`note_id` and reload it with
    ``await session.refresh(note)`` before reading its attributes.

    Attributes:
        note_id: The note whose snapshot could not be stored.
        reason:  The underlying store error message.
    """

    def __init__(self, note_id: str, reason: str) -> None:
        super().__init__(f"Could not persist snapshot for note {note_id}: {reason}")
        self.note_id = note_id
        self.reason = reason


class HistoryReadError(RememmoError):
    """Raised by strict history reads when the store cannot be queried
    or a snapshot chain is broken."""

    def __init__(self, note_id: str, reason: str) -> None:
        super().__init__(f"Could not read history for note {note_id}: {reason}")
        self.note_id = note_id
        self.reason = reason


class SnapshotNotFoundError(RememmoError):
    """Raised when a snapshot id does not resolve to a stored snapshot."""

    def __init__(self, snapshot_id: str) -> None:
        super().__init__(f"Snapshot {snapshot_id} not found.")
        self.snapshot_id = snapshot_id


# ---------------------------------------------------------------------------
# Note / restore errors
# ---------------------------------------------------------------------------


class CrossNoteRestoreError(RememmoError):
    """Raised when a restore target belongs to a different note.

    Attributes:
        note_id:        The note being restored.
        snapshot_id:    The offending target snapshot.
        target_note_id: The note that actually owns the target.
    """

    def __init__(self, note_id: str, snapshot_id: str, target_note_id: str) -> None:
        super().__init__(
            f"Snapshot {snapshot_id} belongs to note {target_note_id}, "
            f"not to note {note_id}. Cannot restore across notes."
        )
        self.note_id = note_id
        self.snapshot_id = snapshot_id
        self.target_note_id = target_note_id


class NoteNotFoundError(RememmoError):
    """Raised when a note id does not resolve to a stored note."""

    def __init__(self, note_id: str) -> None:
        super().__init__(f"Note {note_id} not found.")
        self.note_id = note_id


class EmptyNoteError(RememmoError):
    """Raised when a note would be saved without the text it requires."""
