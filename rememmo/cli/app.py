"""Rememmo CLI — Typer application root.

Entry point for the ``rememmo`` console script.  Every subcommand is
registered as a plain command rather than through ``add_typer`` so options are
parsed in any position, including after the NOTE argument.
"""
from __future__ import annotations

import logging

import typer

from rememmo.cli.commands import delete, edit, init_versioning, list_notes, log, new, restore, show
from rememmo.config import get_settings

cli = typer.Typer(
    name="rememmo",
    help="Rememmo: notes with an automatic, restorable snapshot history.",
    no_args_is_help=True,
)


@cli.callback()
def _main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if get_settings().debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


cli.command("new", help="Create a note.")(new.new)
cli.command("edit", help="Edit a note and commit the change.")(edit.edit)
cli.command("list", help="List notes, most recently updated first.")(list_notes.list_notes)
cli.command("log", help="Show a note's snapshot history.")(log.log)
cli.command("show", help="Print a note or one of its snapshots.")(show.show)
cli.command("restore", help="Restore a note to an earlier snapshot.")(restore.restore)
cli.command("delete", help="Delete a note; its history is kept.")(delete.delete)
cli.command("init-versioning", help="Initialise a note's mirror repository.")(
    init_versioning.init_versioning
)


if __name__ == "__main__":
    cli()
