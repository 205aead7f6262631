"""rememmo show — print a note, or one of its snapshots, in working-file form."""
from __future__ import annotations

from typing import Optional

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import resolve_note, resolve_snapshot, run_command
from rememmo.errors import SnapshotNotFoundError
from rememmo.services.notes import NoteService
from rememmo.services.rendering import render_working_file


async def _show_async(
    *,
    session: AsyncSession,
    service: NoteService,
    note_ref: str,
    snapshot_ref: str | None,
) -> str:
    """Render the note (or *snapshot_ref* of it) and print the text.

    Raises:
        SnapshotNotFoundError: *snapshot_ref* matches no snapshot of the note.
    """
    note = await resolve_note(session, note_ref)
    if snapshot_ref is None:
        text = render_working_file(note.title, note.content, note.created_at, note.updated_at)
    else:
        snapshot = await resolve_snapshot(session, snapshot_ref, note_id=note.id)
        if snapshot.note_id != note.id:
            raise SnapshotNotFoundError(snapshot_ref)
        text = render_working_file(
            snapshot.title, snapshot.content, note.created_at, snapshot.timestamp
        )
    typer.echo(text, nl=False)
    return text


def show(
    note_ref: str = typer.Argument(..., metavar="NOTE", help="Note id or unique prefix."),
    snapshot_ref: Optional[str] = typer.Option(
        None, "--at", help="Show the note as it was at this snapshot."
    ),
) -> None:
    """Print a note."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _show_async(
            session=session, service=service, note_ref=note_ref, snapshot_ref=snapshot_ref
        )

    run_command("show", _body)
