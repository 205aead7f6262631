"""rememmo edit — change a note's title and/or content and commit the edit.

The commit message is synthesized from what changed::

    updated title | updated content | updated title and content | no changes

Omitted options keep the note's current value.  Title and content are trimmed
before they are compared, and an empty title is rejected.
"""
from __future__ import annotations

import logging
from typing import Optional

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import echo_commit, resolve_note, run_command
from rememmo.services.commit import CommitResult
from rememmo.services.notes import NoteService

logger = logging.getLogger(__name__)


async def _edit_async(
    *,
    session: AsyncSession,
    service: NoteService,
    note_ref: str,
    title: str | None,
    content: str | None,
) -> CommitResult:
    note = await resolve_note(session, note_ref)
    result = await service.update_note(
        session,
        note,
        title=note.title if title is None else title,
        content=note.content if content is None else content,
    )
    echo_commit(result)
    return result


def edit(
    note_ref: str = typer.Argument(..., metavar="NOTE", help="Note id or unique prefix."),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title."),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="New body text."),
) -> None:
    """Edit a note and record the change as a new snapshot."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _edit_async(
            session=session,
            service=service,
            note_ref=note_ref,
            title=title,
            content=content,
        )

    run_command("edit", _body)
