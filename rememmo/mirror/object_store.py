"""Content-addressed object store backing each note's mirror repository.

Every blob written by :mod:`rememmo.mirror.repository`, rendered working
files and serialized commit objects alike, goes through this module.

Layout
------
Objects are stored under ``<repo_root>/.rememmo/objects/`` using a
two-character sharded directory layout that mirrors Git's loose-object
format::

    .rememmo/objects/<sha2>/<sha62>

where ``<sha2>`` is the first two hex characters of the SHA-256 digest and
``<sha62>`` is the remaining 62 characters.

The store is append-only: writing the same object twice is always a no-op.
"""
from __future__ import annotations

import hashlib
import logging
import pathlib

logger = logging.getLogger(__name__)

REPO_DIR = ".rememmo"
_OBJECTS_DIR = "objects"


def hash_bytes(content: bytes) -> str:
    """Return the SHA-256 hex digest used as the object id for *content*."""
    return hashlib.sha256(content).hexdigest()


def objects_dir(repo_root: pathlib.Path) -> pathlib.Path:
    """Return the path to the object store root (may not yet exist)."""
    return repo_root / REPO_DIR / _OBJECTS_DIR


def object_path(repo_root: pathlib.Path, object_id: str) -> pathlib.Path:
    """Return the canonical on-disk path for a single object.

    Args:
        repo_root: Root of the note's repository (the directory containing
                   ``.rememmo/``).
        object_id: SHA-256 hex digest of the object's content (64 chars).

    Returns:
        Absolute path to the object file (may not yet exist).
    """
    return objects_dir(repo_root) / object_id[:2] / object_id[2:]


def has_object(repo_root: pathlib.Path, object_id: str) -> bool:
    """Return ``True`` if *object_id* is present in the local store."""
    return object_path(repo_root, object_id).exists()


def write_object(repo_root: pathlib.Path, object_id: str, content: bytes) -> bool:
    """Write *content* to the store under *object_id*.

    If the object already exists (same ID = same content) the write is skipped
    and ``False`` is returned.  Returns ``True`` when a new object was written.

    Args:
        repo_root: Root of the note's repository.
        object_id: SHA-256 hex digest that identifies this object (64 chars).
        content:   Raw bytes to persist.
    """
    dest = object_path(repo_root, object_id)
    if dest.exists():
        logger.debug("⚠️ Object %s already in store, skipped", object_id[:8])
        return False
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(content)
    logger.debug("✅ Stored object %s (%d bytes)", object_id[:8], len(content))
    return True


def store_bytes(repo_root: pathlib.Path, content: bytes) -> str:
    """Hash *content*, write it if absent, and return its object id."""
    object_id = hash_bytes(content)
    write_object(repo_root, object_id, content)
    return object_id


def read_object(repo_root: pathlib.Path, object_id: str) -> bytes | None:
    """Read and return the raw bytes for *object_id*.

    Returns ``None`` when the object is not present so callers can produce a
    meaningful error rather than raising ``FileNotFoundError``.
    """
    dest = object_path(repo_root, object_id)
    if not dest.exists():
        logger.debug("⚠️ Object %s not found in local store", object_id[:8])
        return None
    return dest.read_bytes()
