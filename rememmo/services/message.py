"""Commit message synthesis.

Pure functions with no I/O.  Comparisons are exact string equality:
whitespace-only edits count as changes.
"""
from __future__ import annotations

INITIAL_COMMIT_MESSAGE = "initial commit"
SAFETY_COMMIT_MESSAGE = "saved state before restore"
NO_CHANGES_MESSAGE = "no changes"
_RESTORE_PREFIX = "restored from: "


def synthesize_message(
    old_title: str,
    old_content: str,
    new_title: str,
    new_content: str,
) -> str:
    """Describe what changed between two versions of a note.

    >>> synthesize_message("A", "B", "C", "B")
    'updated title'
    """
    title_changed = old_title != new_title
    content_changed = old_content != new_content

    if title_changed and content_changed:
        return "updated title and content"
    if title_changed:
        return "updated title"
    if content_changed:
        return "updated content"
    return NO_CHANGES_MESSAGE


def restore_message(target_message: str) -> str:
    """Message for the snapshot that records a restore to *target_message*'s snapshot."""
    return f"{_RESTORE_PREFIX}{target_message}"
