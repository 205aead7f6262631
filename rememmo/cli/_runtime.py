"""Shared plumbing for CLI commands: service wiring, ref resolution, error exits.

Every command keeps its logic in an ``_<name>_async`` coroutine that takes an
open session and a :class:`NoteService`, so tests can drive it against an
in-memory SQLite session.  The Typer callback only wires those up via
:func:`run_command`.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import typer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rememmo.cli.errors import ExitCode, exit_code_for
from rememmo.config import get_settings
from rememmo.db.database import open_session
from rememmo.db.models import Note, Snapshot
from rememmo.errors import NoteNotFoundError, RememmoError, SnapshotNotFoundError
from rememmo.services import build_note_service
from rememmo.services.commit import CommitResult, MirrorOutcome, MirrorStatus
from rememmo.services.notes import NoteService

logger = logging.getLogger(__name__)

# Shortest id prefix accepted for notes and snapshots.
MIN_PREFIX_LENGTH = 4


def build_service() -> NoteService:
    """Assemble a :class:`NoteService` from the current settings."""
    return build_note_service(get_settings())


def run_command(
    name: str,
    body: Callable[[AsyncSession, NoteService], Awaitable[None]],
) -> None:
    """Open a session, build the services, and run *body*; map errors to exit codes."""

    async def _run() -> None:
        service = build_service()
        try:
            async with open_session() as session:
                await body(session, service)
        finally:
            await service.commits.registry.clear()

    try:
        asyncio.run(_run())
    except typer.Exit:
        raise
    except RememmoError as exc:
        typer.echo(f"❌ {exc}")
        logger.debug("rememmo %s failed: %s", name, exc)
        raise typer.Exit(code=exit_code_for(exc))
    except Exception as exc:
        typer.echo(f"❌ rememmo {name} failed: {exc}")
        logger.error("❌ rememmo %s error: %s", name, exc, exc_info=True)
        raise typer.Exit(code=ExitCode.INTERNAL_ERROR)


async def resolve_note(session: AsyncSession, ref: str) -> Note:
    """Resolve a full note id or a unique prefix of at least four characters.

    Raises:
        NoteNotFoundError: Nothing matches, or the prefix is ambiguous.
    """
    note = await session.get(Note, ref)
    if note is not None:
        return note
    if len(ref) < MIN_PREFIX_LENGTH:
        raise NoteNotFoundError(ref)
    result = await session.execute(select(Note).where(Note.id.startswith(ref)).limit(2))
    matches = list(result.scalars().all())
    if len(matches) != 1:
        raise NoteNotFoundError(ref)
    return matches[0]


async def resolve_snapshot(session: AsyncSession, ref: str, note_id: str | None = None) -> Snapshot:
    """Resolve a full snapshot id or a unique prefix, optionally within one note.

    Raises:
        SnapshotNotFoundError: Nothing matches, or the prefix is ambiguous.
    """
    snapshot = await session.get(Snapshot, ref)
    if snapshot is not None:
        return snapshot
    if len(ref) < MIN_PREFIX_LENGTH:
        raise SnapshotNotFoundError(ref)
    stmt = select(Snapshot).where(Snapshot.id.startswith(ref))
    if note_id is not None:
        stmt = stmt.where(Snapshot.note_id == note_id)
    result = await session.execute(stmt.limit(2))
    matches = list(result.scalars().all())
    if len(matches) != 1:
        raise SnapshotNotFoundError(ref)
    return matches[0]


def echo_mirror(outcome: MirrorOutcome) -> None:
    """Print a one-line warning when the mirror write was degraded."""
    if outcome.status is MirrorStatus.DEGRADED:
        typer.echo(f"⚠️  Mirror unavailable, saved to database only: {outcome.error}")


def echo_commit(result: CommitResult) -> None:
    snapshot = result.snapshot
    typer.echo(f"[{snapshot.branch_label} {snapshot.id[:8]}] {snapshot.message}")
    echo_mirror(result.mirror)
