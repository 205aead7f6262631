"""rememmo log — a note's snapshot history, newest first.

Default output::

    snapshot 3f2a9c1e  (current)
    Parent: 8b04d7aa
    Date:   2026-10-19 09:30:00

        updated content

``--oneline``::

    3f2a9c1e (current) updated content
    8b04d7aa initial commit

``--mirror`` lists the commits in the note's mirror repository instead::

    5d1e0b7f 2026-10-19T09:30:00 updated content

History is read through :meth:`HistoryService.history_strict`, so a store
failure surfaces as an error instead of an empty log.
"""
from __future__ import annotations

import logging
from typing import Any

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import resolve_note, run_command
from rememmo.db.models import Note, Snapshot
from rememmo.services.notes import NoteService

logger = logging.getLogger(__name__)

_DEFAULT_LIMIT = 1000


def _format_default(snapshot: Snapshot, note: Note) -> list[str]:
    marker = "  (current)" if snapshot.id == note.current_snapshot_id else ""
    lines = [f"snapshot {snapshot.id[:8]}{marker}"]
    if snapshot.parent_snapshot_id:
        lines.append(f"Parent: {snapshot.parent_snapshot_id[:8]}")
    lines.append(f"Date:   {snapshot.timestamp.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("")
    lines.append(f"    {snapshot.message}")
    lines.append("")
    return lines


def _format_oneline(snapshot: Snapshot, note: Note) -> str:
    marker = " (current)" if snapshot.id == note.current_snapshot_id else ""
    return f"{snapshot.id[:8]}{marker} {snapshot.message}"


async def _log_async(
    *,
    session: AsyncSession,
    service: NoteService,
    note_ref: str,
    limit: int,
    oneline: bool,
) -> list[Snapshot]:
    """Print up to *limit* snapshots of the note and return them."""
    note = await resolve_note(session, note_ref)
    snapshots = (await service.history.history_strict(session, note.id))[:limit]
    if not snapshots:
        typer.echo(f"No snapshots yet for note {note.id[:8]}.")
        return snapshots

    for snapshot in snapshots:
        if oneline:
            typer.echo(_format_oneline(snapshot, note))
        else:
            for line in _format_default(snapshot, note):
                typer.echo(line)
    return snapshots


async def _mirror_log_async(
    *,
    service: NoteService,
    session: AsyncSession,
    note_ref: str,
    limit: int,
) -> list[tuple[str, dict[str, Any]]]:
    """Print the commits recorded in the note's mirror repository."""
    note = await resolve_note(session, note_ref)
    entries = (await service.mirror_log(note.id))[:limit]
    if not entries:
        typer.echo(f"No mirror commits for note {note.id[:8]}.")
        return entries
    for commit_id, commit in entries:
        stamp = str(commit.get("committed_at", ""))[:19]
        typer.echo(f"{commit_id[:8]} {stamp} {commit.get('message', '')}")
    return entries


def log(
    note_ref: str = typer.Argument(..., metavar="NOTE", help="Note id or unique prefix."),
    limit: int = typer.Option(
        _DEFAULT_LIMIT, "--max-count", "-n", min=1, help="Limit the number of snapshots shown."
    ),
    oneline: bool = typer.Option(False, "--oneline", help="One snapshot per line."),
    mirror: bool = typer.Option(
        False, "--mirror", help="List the commits in the note's mirror repository instead."
    ),
) -> None:
    """Show a note's snapshot history."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        if mirror:
            await _mirror_log_async(
                service=service, session=session, note_ref=note_ref, limit=limit
            )
            return
        await _log_async(
            session=session,
            service=service,
            note_ref=note_ref,
            limit=limit,
            oneline=oneline,
        )

    run_command("log", _body)
