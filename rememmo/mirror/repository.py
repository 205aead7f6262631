"""Local content-addressable repository — one per note.

This is the file-based mirror a note's rendered text is committed into.  It
exposes the narrow contract the memo store depends on (``create``, ``open``,
``has_repo``, ``stage``, ``commit``) plus the ``read_commit`` and ``log``
helpers behind ``rememmo log --mirror``.  It is not a general-purpose VCS: a
single branch, no merges, no remotes.

Layout::

    <path>/
        note.md                  working file(s); the working tree is <path>
        .rememmo/
            repo.json            repo_id, schema_version, created_at
            HEAD                 text pointer → refs/heads/main
            refs/heads/main      newest commit id (empty = no commits yet)
            config.toml          [user] identity used as commit author
            index.json           staged tree {filename: object_id}
            objects/<sha2>/<sha62>

Commit objects are canonical JSON documents stored in the object store::

    {"author": "...", "committed_at": "...", "message": "...",
     "parent": "<commit id or null>", "tree": {"note.md": "<object id>"}}

so ``commit_id`` is the SHA-256 of that document: the same content always
yields the same id.
"""
from __future__ import annotations

import datetime
import json
import logging
import os
import pathlib
import tempfile
import tomllib
import uuid
from typing import Any

from rememmo.errors import (
    MirrorError,
    MissingObjectError,
    NothingStagedError,
    RepositoryNotFoundError,
    RepositoryNotOpenError,
)
from rememmo.mirror.object_store import REPO_DIR, objects_dir, read_object, store_bytes

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = "1"
_DEFAULT_BRANCH = "main"

_CONFIG_TOML_TEMPLATE = """\
[core]
repositoryformatversion = 0
bare = false

[user]
name = {name}
email = {email}
"""


def _toml_string(value: str) -> str:
    # JSON string escaping is a valid TOML basic string.
    return json.dumps(value, ensure_ascii=False)


def _atomic_write_text(dest: pathlib.Path, text: str) -> None:
    """Write *text* to *dest* via a temp file + rename in the same directory."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, dest)
    except BaseException:
        pathlib.Path(tmp_name).unlink(missing_ok=True)
        raise


class LocalRepository:
    """A single-branch content-addressable repository rooted at *path*."""

    def __init__(
        self,
        path: pathlib.Path,
        *,
        author_name: str = "",
        author_email: str = "",
    ) -> None:
        self.path = path
        self._author_name = author_name
        self._author_email = author_email
        self._is_open = False

    def __repr__(self) -> str:
        state = "open" if self._is_open else "closed"
        return f"<LocalRepository {self.path} {state}>"

    # ------------------------------------------------------------------
    # Layout helpers
    # ------------------------------------------------------------------

    @property
    def repo_dir(self) -> pathlib.Path:
        return self.path / REPO_DIR

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def has_repo(self) -> bool:
        """``True`` when *path* holds an initialised repository."""
        return (
            (self.repo_dir / "repo.json").is_file()
            and (self.repo_dir / "HEAD").is_file()
            and objects_dir(self.path).is_dir()
        )

    @property
    def author(self) -> str:
        if self._author_email:
            return f"{self._author_name} <{self._author_email}>"
        return self._author_name

    def _ref_path(self) -> pathlib.Path:
        head_ref = (self.repo_dir / "HEAD").read_text().strip()
        return self.repo_dir / pathlib.Path(head_ref)

    def _index_path(self) -> pathlib.Path:
        return self.repo_dir / "index.json"

    def _require_open(self) -> None:
        if not self._is_open:
            raise RepositoryNotOpenError(self.path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self) -> None:
        """Initialise the repository directory tree and identity files.

        A no-op when a repository already exists at *path*.  Filesystem
        errors (``PermissionError``, disk full...) propagate as ``OSError``.
        """
        if self.has_repo:
            logger.debug("⚠️ Repository already exists at %s, skipped", self.path)
            return

        (self.repo_dir / "refs" / "heads").mkdir(parents=True, exist_ok=True)
        objects_dir(self.path).mkdir(parents=True, exist_ok=True)

        repo_json = {
            "repo_id": str(uuid.uuid4()),
            "schema_version": _SCHEMA_VERSION,
            "created_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        (self.repo_dir / "repo.json").write_text(json.dumps(repo_json, indent=2) + "\n")
        (self.repo_dir / "HEAD").write_text(f"refs/heads/{_DEFAULT_BRANCH}\n")
        (self.repo_dir / "refs" / "heads" / _DEFAULT_BRANCH).write_text("")
        (self.repo_dir / "config.toml").write_text(
            _CONFIG_TOML_TEMPLATE.format(
                name=_toml_string(self._author_name),
                email=_toml_string(self._author_email),
            )
        )
        self._index_path().write_text("{}\n")
        logger.info("✅ Created repository at %s", self.path)

    def open(self) -> None:
        """Open an existing repository and load its author identity.

        Raises:
            RepositoryNotFoundError: No repository exists at *path*.
            MirrorError:             ``config.toml`` or ``repo.json`` is unreadable.
        """
        if not self.has_repo:
            raise RepositoryNotFoundError(self.path)
        try:
            json.loads((self.repo_dir / "repo.json").read_text())
            config_path = self.repo_dir / "config.toml"
            if config_path.is_file():
                with config_path.open("rb") as fh:
                    config = tomllib.load(fh)
                user = config.get("user", {})
                self._author_name = str(user.get("name", self._author_name))
                self._author_email = str(user.get("email", self._author_email))
        except (json.JSONDecodeError, tomllib.TOMLDecodeError, OSError) as exc:
            raise MirrorError(f"Corrupt repository at {self.path}: {exc}") from exc
        self._is_open = True
        logger.debug("✅ Opened repository at %s", self.path)

    def close(self) -> None:
        self._is_open = False

    # ------------------------------------------------------------------
    # Working tree / index
    # ------------------------------------------------------------------

    def write_file(self, filename: str, content: str) -> pathlib.Path:
        """Atomically write *content* to *filename* in the working tree."""
        self._require_open()
        dest = self.path / filename
        _atomic_write_text(dest, content)
        return dest

    def read_index(self) -> dict[str, str]:
        path = self._index_path()
        if not path.is_file():
            return {}
        try:
            data: dict[str, str] = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise MirrorError(f"Corrupt index at {path}: {exc}") from exc
        return data

    def stage(self, filename: str) -> str:
        """Store the working-tree file in the object store and record it in the index.

        Returns:
            The object id of the staged content.

        Raises:
            RepositoryNotOpenError: ``open()`` has not been called.
            MirrorError:            The file does not exist in the working tree.
        """
        self._require_open()
        src = self.path / filename
        if not src.is_file():
            raise MirrorError(f"Cannot stage {filename!r}: not found in {self.path}")
        object_id = store_bytes(self.path, src.read_bytes())
        index = self.read_index()
        index[filename] = object_id
        _atomic_write_text(self._index_path(), json.dumps(index, indent=2, sort_keys=True) + "\n")
        logger.debug("✅ Staged %s as %s", filename, object_id[:8])
        return object_id

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def head(self) -> str | None:
        """Return the newest commit id on the current branch, or ``None``."""
        ref_path = self._ref_path()
        if not ref_path.is_file():
            return None
        value = ref_path.read_text().strip()
        return value or None

    def commit(self, message: str) -> str:
        """Record the staged tree as a new commit and advance the branch ref.

        Raises:
            RepositoryNotOpenError: ``open()`` has not been called.
            NothingStagedError:     The index is empty.
        """
        self._require_open()
        tree = self.read_index()
        if not tree:
            raise NothingStagedError(self.path)

        parent = self.head()
        commit_obj = {
            "author": self.author,
            "committed_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "message": message,
            "parent": parent,
            "tree": tree,
        }
        payload = json.dumps(commit_obj, sort_keys=True, ensure_ascii=False).encode("utf-8")
        commit_id = store_bytes(self.path, payload)
        _atomic_write_text(self._ref_path(), commit_id + "\n")
        logger.debug(
            "✅ Commit %s in %s (parent=%s)",
            commit_id[:8],
            self.path.name,
            parent[:8] if parent else None,
        )
        return commit_id

    def read_commit(self, commit_id: str) -> dict[str, Any]:
        """Load and decode a commit object.

        Raises:
            MissingObjectError: The commit is not in the object store.
        """
        raw = read_object(self.path, commit_id)
        if raw is None:
            raise MissingObjectError(commit_id)
        data: dict[str, Any] = json.loads(raw.decode("utf-8"))
        return data

    def log(self) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(commit_id, commit)`` pairs newest first by walking parents."""
        entries: list[tuple[str, dict[str, Any]]] = []
        seen: set[str] = set()
        current = self.head()
        while current is not None and current not in seen:
            seen.add(current)
            commit = self.read_commit(current)
            entries.append((current, commit))
            current = commit.get("parent")
        return entries
