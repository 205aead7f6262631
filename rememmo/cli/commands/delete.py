"""rememmo delete — remove a note; its snapshots and mirror repository stay."""
from __future__ import annotations

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import resolve_note, run_command
from rememmo.cli.errors import ExitCode
from rememmo.services.notes import NoteService


async def _delete_async(
    *,
    session: AsyncSession,
    service: NoteService,
    note_ref: str,
) -> str:
    note = await resolve_note(session, note_ref)
    note_id = note.id
    await service.delete_note(session, note)
    typer.echo(f"✅ Deleted note {note_id[:8]} (history retained)")
    return note_id


def delete(
    note_ref: str = typer.Argument(..., metavar="NOTE", help="Note id or unique prefix."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a note."""
    if not yes and not typer.confirm(f"Delete note {note_ref}?"):
        typer.echo("Aborted.")
        raise typer.Exit(code=ExitCode.USER_ERROR)

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _delete_async(session=session, service=service, note_ref=note_ref)

    run_command("delete", _body)
