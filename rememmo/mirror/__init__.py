"""File-based, content-addressable mirror of every note commit."""
from rememmo.mirror.backend import (
    DisabledMirror,
    LocalMirror,
    MirrorBackend,
    RepositoryHandle,
    build_mirror,
)
from rememmo.mirror.repository import LocalRepository

__all__ = [
    "DisabledMirror",
    "LocalMirror",
    "LocalRepository",
    "MirrorBackend",
    "RepositoryHandle",
    "build_mirror",
]
