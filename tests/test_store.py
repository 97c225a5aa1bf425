"""Tests for git-backed index snapshots."""

import subprocess

import pytest
from git import Repo

from campdex.errors import CampdexError
from campdex.models import Index, Project
from campdex.store import (
    CARDS_DOC,
    INDEX_BRANCH,
    META_DOC,
    GitSnapshotStore,
    MemorySnapshotStore,
    index_documents,
    index_from_documents,
)


def test_documents_cover_every_map(built):
    docs = index_documents(built.index)
    assert set(docs) == {"projects.yaml", "columns.yaml", "cards.yaml", "people.yaml", "meta.yaml"}
    restored = index_from_documents(docs)
    assert restored.cards == built.index.cards
    assert restored.projects == built.index.projects
    assert restored.meta == built.index.meta


def test_missing_documents_are_empty():
    index = index_from_documents({})
    assert index.cards == {}
    assert index.meta.total_cards == 0


def test_load_without_branch(empty_repo):
    store = GitSnapshotStore(empty_repo)
    assert store.load() is None
    assert store.tip() is None
    assert store.history() == []


def test_commit_and_load(empty_repo, built):
    store = GitSnapshotStore(empty_repo)
    sha = store.commit(built.index, "Build index")
    assert len(sha) == 40
    assert store.tip() == sha

    loaded = store.load()
    assert loaded.cards == built.index.cards
    assert loaded.columns == built.index.columns
    assert loaded.people == built.index.people


def test_commit_leaves_working_tree_alone(empty_repo, built):
    repo = Repo(empty_repo)
    head = repo.head.commit.hexsha
    GitSnapshotStore(empty_repo).commit(built.index)
    assert repo.head.commit.hexsha == head
    assert not repo.is_dirty(untracked_files=True)
    assert INDEX_BRANCH in [h.name for h in repo.heads]


def test_unchanged_tree_skips_commit(empty_repo, built):
    store = GitSnapshotStore(empty_repo)
    first = store.commit(built.index, "one")
    second = store.commit(built.index, "two")
    assert first == second
    assert [summary for _, summary in store.history()] == ["one"]


def test_history_newest_first(empty_repo):
    store = GitSnapshotStore(empty_repo)
    index = Index()
    store.commit(index, "empty")
    index.add_project(Project(id=1, name="One"))
    store.commit(index, "one project")
    assert [summary for _, summary in store.history()] == ["one project", "empty"]
    assert len(store.history(max_count=1)) == 1


def test_clear(empty_repo, built):
    store = GitSnapshotStore(empty_repo)
    store.commit(built.index, "Build index")
    store.clear()
    loaded = store.load()
    assert loaded is not None
    assert loaded.cards == {}
    assert store.history()[0][1] == "Clear index"


def test_snapshot_tree_holds_documents(empty_repo, built):
    store = GitSnapshotStore(empty_repo)
    sha = store.commit(built.index)
    tree = Repo(empty_repo).commit(sha).tree
    assert CARDS_DOC in tree
    assert META_DOC in tree


def test_moved_branch_is_rejected(empty_repo, built, monkeypatch):
    store = GitSnapshotStore(empty_repo)
    store.commit(Index(), "empty")
    stale = store.tip()

    # Another writer commits between our read of the tip and the ref update.
    other = GitSnapshotStore(empty_repo)
    other.commit(built.index, "other writer")
    monkeypatch.setattr(store, "tip", lambda: stale)

    index = Index()
    index.add_project(Project(id=5, name="Mine"))
    with pytest.raises(CampdexError, match="moved during commit"):
        store.commit(index, "mine")
    assert [s for _, s in other.history()][0] == "other writer"


def test_custom_branch(empty_repo):
    store = GitSnapshotStore(empty_repo, branch="other-index")
    store.commit(Index(), "x")
    result = subprocess.run(
        ["git", "rev-parse", "--verify", "refs/heads/other-index"],
        cwd=empty_repo,
        capture_output=True,
    )
    assert result.returncode == 0
    assert GitSnapshotStore(empty_repo).load() is None


def test_memory_store_hands_out_copies():
    index = Index()
    index.add_project(Project(id=1, name="One"))
    store = MemorySnapshotStore(index)
    index.projects[1].name = "Changed"
    assert store.load().projects[1].name == "One"

    loaded = store.load()
    loaded.projects.clear()
    assert store.load().projects

    assert store.commit(Index(), "a") == "1"
    assert store.clear() == "2"
    assert store.commits == ["a", "Clear index"]
