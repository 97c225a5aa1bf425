"""Shared fixtures for CLI tests."""

import pytest

from campdex.config import TOKEN_ENV, write_config_key
from campdex.index import LocalIndex
from campdex.indexer import IndexBuilder
from campdex.models import Index
from campdex.store import GitSnapshotStore


@pytest.fixture
def initialized_repo(empty_repo):
    """A repo with an empty index branch and an account id."""
    write_config_key(empty_repo, "account-id", "999")
    GitSnapshotStore(empty_repo).commit(Index(), "Initialize campdex index")
    return empty_repo


@pytest.fixture
def indexed_repo(initialized_repo, remote):
    """A repo whose index holds the sample portfolio."""
    IndexBuilder(remote, LocalIndex.open(initialized_repo), account_id="999").build_sync()
    return initialized_repo


@pytest.fixture
def connected(remote, monkeypatch):
    """Route every CLI remote call to the sample remote."""
    monkeypatch.setenv(TOKEN_ENV, "secret")
    monkeypatch.setattr("campdex.cli._common.make_client", lambda settings: remote)
    return remote
