"""rememmo list — show every note, most recently updated first."""
from __future__ import annotations

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import run_command
from rememmo.db.models import Note
from rememmo.services.notes import NoteService


async def _list_async(*, session: AsyncSession, service: NoteService) -> list[Note]:
    notes = await service.list_notes(session)
    if not notes:
        typer.echo("No notes yet. Create one with `rememmo new TITLE`.")
        return notes
    for note in notes:
        updated = note.updated_at.strftime("%Y-%m-%d %H:%M:%S")
        typer.echo(f"{note.id[:8]}  {updated}  {note.title}")
    return notes


def list_notes() -> None:
    """List notes."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _list_async(session=session, service=service)

    run_command("list", _body)
