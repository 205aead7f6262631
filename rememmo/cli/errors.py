"""Exit-code contract for the Rememmo CLI."""
from __future__ import annotations

import enum

from rememmo.errors import (
    CrossNoteRestoreError,
    EmptyNoteError,
    NoteNotFoundError,
    RememmoError,
    SnapshotNotFoundError,
)


class ExitCode(enum.IntEnum):
    """Standardised CLI exit codes.

    0 — success
    1 — user error (bad arguments, invalid input)
    2 — note or snapshot not found
    3 — storage / internal error
    """

    SUCCESS = 0
    USER_ERROR = 1
    NOT_FOUND = 2
    INTERNAL_ERROR = 3


def exit_code_for(exc: RememmoError) -> ExitCode:
    """Map a domain error onto the exit code a command should return."""
    if isinstance(exc, (NoteNotFoundError, SnapshotNotFoundError)):
        return ExitCode.NOT_FOUND
    if isinstance(exc, (EmptyNoteError, CrossNoteRestoreError)):
        return ExitCode.USER_ERROR
    return ExitCode.INTERNAL_ERROR
