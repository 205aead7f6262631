"""rememmo new — create a note and record its initial snapshot."""
from __future__ import annotations

import logging

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import echo_commit, run_command
from rememmo.db.models import Note
from rememmo.services.notes import NoteService

logger = logging.getLogger(__name__)


async def _new_async(
    *,
    session: AsyncSession,
    service: NoteService,
    title: str,
    content: str,
) -> Note:
    """Create the note and print its id and initial snapshot."""
    note, result = await service.create_note(session, title, content)
    typer.echo(f"✅ Created note {note.id}")
    echo_commit(result)
    return note


def new(
    title: str = typer.Argument(..., help="Title of the new note."),
    content: str = typer.Option("", "--content", "-c", help="Body text of the note."),
) -> None:
    """Create a note; its first snapshot is committed as 'initial commit'."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _new_async(session=session, service=service, title=title, content=content)

    run_command("new", _body)
