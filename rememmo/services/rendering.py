"""Working-file rendering for the mirror.

The rendered text is what a reader finds on disk outside the app, so its
layout is fixed::

    # <title>

    <content>

    ---
    created: <created_at>
    updated: <updated_at>
"""
from __future__ import annotations

from datetime import datetime


def _stamp(value: datetime) -> str:
    return value.isoformat()


def render_working_file(
    title: str,
    content: str,
    created_at: datetime,
    updated_at: datetime,
) -> str:
    """Render a note's text into the mirror's working-file format."""
    return (
        f"# {title}\n"
        "\n"
        f"{content}\n"
        "\n"
        "---\n"
        f"created: {_stamp(created_at)}\n"
        f"updated: {_stamp(updated_at)}\n"
    )
