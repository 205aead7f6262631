"""rememmo init-versioning — create or open a note's mirror repository now.

Commits initialise the repository lazily and fall back to store-only when
that fails.  This command does the same work eagerly and reports a failure
as an error, so a broken notes root can be diagnosed.
"""
from __future__ import annotations

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import resolve_note, run_command
from rememmo.mirror.backend import RepositoryHandle
from rememmo.services.notes import NoteService


async def _init_versioning_async(
    *,
    session: AsyncSession,
    service: NoteService,
    note_ref: str,
) -> RepositoryHandle:
    note = await resolve_note(session, note_ref)
    handle = await service.initialize_versioning(note.id)
    if handle.repository is None:
        typer.echo(f"⚠️  Mirror disabled; nothing created for note {note.id[:8]}")
    else:
        typer.echo(f"✅ Repository ready for note {note.id[:8]} at {handle.path}")
    return handle


def init_versioning(
    note_ref: str = typer.Argument(..., metavar="NOTE", help="Note id or unique prefix."),
) -> None:
    """Initialise a note's mirror repository."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _init_versioning_async(session=session, service=service, note_ref=note_ref)

    run_command("init-versioning", _body)
