"""Durable index snapshots.

A snapshot is five YAML documents in a single git tree on a dedicated
branch. Commits are written with plumbing so the working tree is never
touched, and the branch ref is moved with a compare-and-swap, so a reader
sees either the previous tree or the new one.
"""

from __future__ import annotations

import copy
import logging
import subprocess
from pathlib import Path
from typing import Protocol

import yaml
from git import BadName, Repo
from git.objects import Blob, Tree

from campdex.errors import CampdexError
from campdex.models import Card, Column, Index, Meta, Person, Project

logger = logging.getLogger(__name__)

INDEX_BRANCH = "campdex-index"

PROJECTS_DOC = "projects.yaml"
COLUMNS_DOC = "columns.yaml"
CARDS_DOC = "cards.yaml"
PEOPLE_DOC = "people.yaml"
META_DOC = "meta.yaml"


class SnapshotStore(Protocol):
    def load(self) -> Index | None: ...

    def commit(self, index: Index, message: str) -> str: ...

    def clear(self, message: str) -> str: ...


# --- Serialisation ---


def _dump(data) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


def index_documents(index: Index) -> dict[str, str]:
    """Render an index as {filename: yaml_text}."""
    return {
        PROJECTS_DOC: _dump([p.to_dict() for p in index.projects.values()]),
        COLUMNS_DOC: _dump([c.to_dict() for c in index.columns.values()]),
        CARDS_DOC: _dump([c.to_dict() for c in index.cards.values()]),
        PEOPLE_DOC: _dump([p.to_dict() for p in index.people.values()]),
        META_DOC: _dump(index.meta.to_dict()),
    }


def index_from_documents(docs: dict[str, str]) -> Index:
    """Rebuild an index from {filename: yaml_text}; missing documents are empty."""

    def load_list(name: str) -> list[dict]:
        return yaml.safe_load(docs.get(name) or "") or []

    index = Index(meta=Meta.from_dict(yaml.safe_load(docs.get(META_DOC) or "") or {}))
    for data in load_list(PROJECTS_DOC):
        index.add_project(Project.from_dict(data))
    for data in load_list(COLUMNS_DOC):
        index.add_column(Column.from_dict(data))
    for data in load_list(CARDS_DOC):
        index.add_card(Card.from_dict(data))
    for data in load_list(PEOPLE_DOC):
        index.add_person(Person.from_dict(data))
    return index


# --- Git plumbing ---


def _git(repo_path: Path, args: list[str]) -> str:
    """Run a git command and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        check=True,
    )
    return result.stdout.decode("utf-8").strip()


def _hash_object(repo_path: Path, content: str) -> str:
    """Write content to git object store and return the blob hash."""
    result = subprocess.run(
        ["git", "hash-object", "-w", "--stdin"],
        cwd=repo_path,
        input=content.encode("utf-8"),
        capture_output=True,
        check=True,
    )
    return result.stdout.decode("utf-8").strip()


def _mktree(repo_path: Path, entries: list[tuple[str, str, str, str]]) -> str:
    """Create a tree object from (mode, type, sha, name) entries."""
    lines = [f"{mode} {typ} {sha}\t{name}" for mode, typ, sha, name in entries]
    content = "\n".join(lines) + "\n" if lines else ""
    result = subprocess.run(
        ["git", "mktree"],
        cwd=repo_path,
        input=content.encode("utf-8"),
        capture_output=True,
        check=True,
    )
    return result.stdout.decode("utf-8").strip()


def _get_ref(repo_path: Path, ref: str) -> str | None:
    """Get the commit hash for any ref, or None if it doesn't exist."""
    result = subprocess.run(
        ["git", "rev-parse", "--verify", "--quiet", ref],
        cwd=repo_path,
        capture_output=True,
    )
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8").strip()


def _tree_get(tree: Tree, name: str) -> Blob | Tree | None:
    try:
        return tree[name]
    except KeyError:
        return None


class GitSnapshotStore:
    """Snapshots on a git branch of the index repository."""

    def __init__(self, repo_path: str | Path, branch: str = INDEX_BRANCH) -> None:
        self.repo_path = Path(repo_path)
        self.branch = branch

    @property
    def ref(self) -> str:
        return f"refs/heads/{self.branch}"

    def tip(self) -> str | None:
        return _get_ref(self.repo_path, self.ref)

    def load(self) -> Index | None:
        """Load the snapshot at the branch tip, or None if never committed."""
        repo = Repo(self.repo_path)
        try:
            commit = repo.commit(self.branch)
        except (BadName, ValueError):
            return None
        docs = {}
        for name in (PROJECTS_DOC, COLUMNS_DOC, CARDS_DOC, PEOPLE_DOC, META_DOC):
            blob = _tree_get(commit.tree, name)
            if isinstance(blob, Blob):
                docs[name] = blob.data_stream.read().decode("utf-8")
        return index_from_documents(docs)

    def _write_tree(self, index: Index) -> str:
        entries = [
            ("100644", "blob", _hash_object(self.repo_path, text), name)
            for name, text in sorted(index_documents(index).items())
        ]
        return _mktree(self.repo_path, entries)

    def commit(self, index: Index, message: str = "Update index") -> str:
        """Write the index as one commit on the branch and return its hash.

        An unchanged tree returns the current tip without committing.
        """
        tree = self._write_tree(index)
        parent = self.tip()

        if parent:
            parent_tree = _git(self.repo_path, ["rev-parse", f"{parent}^{{tree}}"])
            if parent_tree == tree:
                logger.debug("index unchanged, no commit")
                return parent

        parent_args = ["-p", parent] if parent else []
        new_commit = _git(self.repo_path, ["commit-tree", tree, *parent_args, "-m", message])

        # Compare-and-swap: fails if another writer moved the branch meanwhile.
        # An empty old value means the ref must not exist yet.
        try:
            _git(self.repo_path, ["update-ref", self.ref, new_commit, parent or ""])
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", "replace").strip() if exc.stderr else ""
            raise CampdexError(f"index branch moved during commit: {stderr}") from exc

        logger.info("committed index %s: %s", new_commit[:8], message)
        return new_commit

    def clear(self, message: str = "Clear index") -> str:
        return self.commit(Index(), message)

    def history(self, max_count: int = 20) -> list[tuple[str, str]]:
        """Recent snapshots as (hexsha, summary), newest first."""
        if self.tip() is None:
            return []
        repo = Repo(self.repo_path)
        return [(c.hexsha, c.summary) for c in repo.iter_commits(self.branch, max_count=max_count)]


class MemorySnapshotStore:
    """In-process store; commits and loads hand out independent copies."""

    def __init__(self, index: Index | None = None) -> None:
        self._index = copy.deepcopy(index) if index is not None else None
        self.commits: list[str] = []

    def load(self) -> Index | None:
        return copy.deepcopy(self._index) if self._index is not None else None

    def commit(self, index: Index, message: str = "Update index") -> str:
        self._index = copy.deepcopy(index)
        self.commits.append(message)
        return str(len(self.commits))

    def clear(self, message: str = "Clear index") -> str:
        return self.commit(Index(), message)
