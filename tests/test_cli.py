"""End-to-end tests for the ``rememmo`` CLI.

Commands run through ``typer.testing.CliRunner`` against a SQLite file in
``tmp_path``; each invocation opens its own engine, like a real process.
"""
from __future__ import annotations

import pathlib
import re

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from typer.testing import CliRunner

from rememmo.cli import _runtime
from rememmo.cli.app import cli
from rememmo.cli.commands.log import _log_async
from rememmo.cli.commands.new import _new_async
from rememmo.cli.errors import ExitCode
from rememmo.config import Settings
from rememmo.db import database
from rememmo.services.notes import NoteService

runner = CliRunner()

_CREATED_RE = re.compile(r"Created note ([0-9a-f-]{36})")


@pytest.fixture
def cli_settings(
    tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> Settings:
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'rememmo.db'}",
        notes_root=tmp_path / "memos",
    )
    monkeypatch.setattr(_runtime, "get_settings", lambda: settings)
    monkeypatch.setattr(database, "settings", settings)
    return settings


def _new_note(*args: str) -> str:
    result = runner.invoke(cli, ["new", *args])
    assert result.exit_code == 0, result.output
    match = _CREATED_RE.search(result.output)
    assert match is not None, result.output
    return match.group(1)


def test_new_creates_note_and_repository(cli_settings: Settings) -> None:
    result = runner.invoke(cli, ["new", "Groceries", "--content", "milk"])

    assert result.exit_code == 0, result.output
    assert "initial commit" in result.output
    match = _CREATED_RE.search(result.output)
    assert match is not None
    assert (cli_settings.notes_root / match.group(1) / "note.md").is_file()


def test_new_blank_note_is_user_error(cli_settings: Settings) -> None:
    result = runner.invoke(cli, ["new", "   "])
    assert result.exit_code == ExitCode.USER_ERROR


def test_edit_log_restore_round(cli_settings: Settings) -> None:
    note_id = _new_note("Groceries", "-c", "milk")

    edited = runner.invoke(cli, ["edit", note_id[:8], "--content", "milk, eggs"])
    assert edited.exit_code == 0, edited.output
    assert "updated content" in edited.output

    log = runner.invoke(cli, ["log", note_id, "--oneline"])
    assert log.exit_code == 0, log.output
    lines = log.output.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("(current) updated content")
    assert lines[1].endswith("initial commit")
    first_snapshot = lines[1].split()[0]

    restored = runner.invoke(cli, ["restore", note_id, first_snapshot])
    assert restored.exit_code == 0, restored.output
    assert "saved state before restore" in restored.output
    assert "restored from: initial commit" in restored.output

    shown = runner.invoke(cli, ["show", note_id])
    assert shown.exit_code == 0
    assert shown.output.startswith("# Groceries\n\nmilk\n\n---\n")

    at = runner.invoke(cli, ["show", note_id, "--at", first_snapshot])
    assert at.exit_code == 0
    assert "\nmilk\n" in at.output


def test_list_shows_notes(cli_settings: Settings) -> None:
    empty = runner.invoke(cli, ["list"])
    assert empty.exit_code == 0
    assert "No notes yet" in empty.output

    _new_note("Alpha")
    _new_note("Beta")
    listed = runner.invoke(cli, ["list"])
    assert listed.exit_code == 0
    assert listed.output.index("Beta") < listed.output.index("Alpha")


def test_unknown_note_is_not_found(cli_settings: Settings) -> None:
    result = runner.invoke(cli, ["log", "00000000-0000-0000-0000-000000000000"])
    assert result.exit_code == ExitCode.NOT_FOUND
    assert "not found" in result.output


def test_restore_snapshot_of_other_note_is_rejected(cli_settings: Settings) -> None:
    note_a = _new_note("A")
    note_b = _new_note("B")
    log_b = runner.invoke(cli, ["log", note_b, "--oneline"])
    snapshot_b = log_b.output.split()[0]

    result = runner.invoke(cli, ["restore", note_a, snapshot_b])

    assert result.exit_code == ExitCode.NOT_FOUND


def test_delete_keeps_repository(cli_settings: Settings) -> None:
    note_id = _new_note("Doomed")

    result = runner.invoke(cli, ["delete", note_id, "--yes"])

    assert result.exit_code == 0, result.output
    assert runner.invoke(cli, ["show", note_id]).exit_code == ExitCode.NOT_FOUND
    assert (cli_settings.notes_root / note_id / ".rememmo").is_dir()


def test_delete_declined_is_user_error(cli_settings: Settings) -> None:
    note_id = _new_note("Kept")
    result = runner.invoke(cli, ["delete", note_id], input="n\n")
    assert result.exit_code == ExitCode.USER_ERROR
    assert runner.invoke(cli, ["show", note_id]).exit_code == 0


def test_log_mirror_lists_repository_commits(cli_settings: Settings) -> None:
    note_id = _new_note("Groceries", "-c", "milk")
    runner.invoke(cli, ["edit", note_id, "--content", "milk, eggs"])

    result = runner.invoke(cli, ["log", note_id, "--mirror"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith(" updated content")
    assert lines[1].endswith(" initial commit")
    assert re.match(r"^[0-9a-f]{8} \d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2} ", lines[1])


def test_log_mirror_with_disabled_mirror(
    cli_settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    note_id = _new_note("Groceries", "-c", "milk")
    store_only = cli_settings.model_copy(update={"mirror_enabled": False})
    monkeypatch.setattr(_runtime, "get_settings", lambda: store_only)

    result = runner.invoke(cli, ["log", note_id, "--mirror"])

    assert result.exit_code == 0, result.output
    assert "No mirror commits" in result.output


def test_init_versioning_reports_path(cli_settings: Settings) -> None:
    note_id = _new_note("Versioned")
    result = runner.invoke(cli, ["init-versioning", note_id])
    assert result.exit_code == 0, result.output
    assert "Repository ready" in result.output


def test_init_versioning_failure_is_internal_error(
    cli_settings: Settings, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    note_id = _new_note("Versioned")
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    broken = cli_settings.model_copy(update={"notes_root": blocker})
    monkeypatch.setattr(_runtime, "get_settings", lambda: broken)

    result = runner.invoke(cli, ["init-versioning", note_id])

    assert result.exit_code == ExitCode.INTERNAL_ERROR
    assert "Could not initialise repository" in result.output


# ---------------------------------------------------------------------------
# Async cores
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_log_async_default_format(
    db_session: AsyncSession,
    store_only_service: NoteService,
    capsys: pytest.CaptureFixture[str],
) -> None:
    note = await _new_async(
        session=db_session, service=store_only_service, title="Groceries", content="milk"
    )
    capsys.readouterr()

    snapshots = await _log_async(
        session=db_session,
        service=store_only_service,
        note_ref=note.id,
        limit=10,
        oneline=False,
    )

    out = capsys.readouterr().out
    assert len(snapshots) == 1
    assert f"snapshot {snapshots[0].id[:8]}  (current)" in out
    assert "    initial commit" in out
    assert "Parent:" not in out
