"""Structured snapshot store: session plumbing and ORM models."""
from rememmo.db.database import Base, open_session

__all__ = [
    "Base",
    "open_session",
]
