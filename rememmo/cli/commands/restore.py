"""rememmo restore — bring a note back to an earlier snapshot.

Writes two snapshots: ``saved state before restore`` holding the current text,
then ``restored from: <message>`` holding the target's text.  Nothing is
removed from the history.
"""
from __future__ import annotations

import logging

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli._runtime import echo_commit, echo_mirror, resolve_note, resolve_snapshot, run_command
from rememmo.services.notes import NoteService
from rememmo.services.restore import RestoreResult

logger = logging.getLogger(__name__)


async def _restore_async(
    *,
    session: AsyncSession,
    service: NoteService,
    note_ref: str,
    snapshot_ref: str,
) -> RestoreResult:
    note = await resolve_note(session, note_ref)
    target = await resolve_snapshot(session, snapshot_ref, note_id=note.id)
    result = await service.restore(session, note, target.id)
    echo_commit(result.safety)
    snapshot = result.snapshot
    typer.echo(f"[{snapshot.branch_label} {snapshot.id[:8]}] {snapshot.message}")
    echo_mirror(result.mirror)
    typer.echo(f"✅ Restored note {note.id[:8]} to {target.id[:8]}")
    return result


def restore(
    note_ref: str = typer.Argument(..., metavar="NOTE", help="Note id or unique prefix."),
    snapshot_ref: str = typer.Argument(..., metavar="SNAPSHOT", help="Snapshot id or unique prefix."),
) -> None:
    """Restore a note to an earlier snapshot."""

    async def _body(session: AsyncSession, service: NoteService) -> None:
        await _restore_async(
            session=session, service=service, note_ref=note_ref, snapshot_ref=snapshot_ref
        )

    run_command("restore", _body)
