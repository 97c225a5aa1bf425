"""Tests for building the index from the remote."""

import threading

import pytest

from campdex.errors import BuildCancelled, RemoteFailure
from campdex.index import LocalIndex
from campdex.indexer import IndexBuilder
from campdex.models import ProjectStatus
from campdex.store import MemorySnapshotStore


@pytest.mark.asyncio
async def test_build_indexes_portfolio(remote, local):
    report = await IndexBuilder(remote, local, account_id="999").build()
    assert report.meta.total_projects == 3
    assert report.meta.total_columns == 5
    assert report.meta.total_cards == 12
    assert report.meta.total_people == 4
    assert report.failures == []
    assert report.commit == "1"
    assert local.store.commits == ["Build index: 3 projects, 12 cards"]
    assert local.is_built


@pytest.mark.asyncio
async def test_archived_projects_are_listed_not_scanned(remote, local):
    await IndexBuilder(remote, local).build()
    assert local.get_project(300).status is ProjectStatus.ARCHIVED
    assert local.cards_for(300) == []


@pytest.mark.asyncio
async def test_snapshot_order_is_stable(remote):
    first = LocalIndex(MemorySnapshotStore())
    second = LocalIndex(MemorySnapshotStore())
    await IndexBuilder(remote, first, concurrency=1).build()
    await IndexBuilder(remote, second, concurrency=8).build()
    assert list(first.index.cards) == list(second.index.cards)
    assert list(first.index.columns) == list(second.index.columns)
    assert list(first.index.cards)[:3] == ["100_5001", "100_5002", "100_5003"]


@pytest.mark.asyncio
async def test_paging(local, make_remote):
    remote = make_remote(page_size=2)
    report = await IndexBuilder(remote, local, page_size=2).build()
    assert report.meta.total_cards == 12
    assert report.meta.total_people == 4


@pytest.mark.asyncio
async def test_progress_messages(remote, local):
    messages = []
    await IndexBuilder(remote, local, concurrency=1).build(progress=messages.append)
    assert messages[0] == "Fetching projects..."
    assert "Found 3 projects" in messages
    assert "[1/2] BuddyPress Business Profile: 3 columns, 8 cards" in messages
    assert "[2/2] buddypress-checkins-pro: 2 columns, 4 cards" in messages
    assert messages[-1].startswith("Indexed 3 projects, 5 columns, 12 cards, 4 people")


@pytest.mark.asyncio
async def test_cancel_keeps_previous_snapshot(remote, built):
    before = built.index
    commits = list(built.store.commits)
    cancel = threading.Event()

    def progress(message):
        if message.startswith("[1/"):
            cancel.set()

    remote.projects[0]["name"] = "Renamed"
    with pytest.raises(BuildCancelled):
        await IndexBuilder(remote, built, concurrency=1).build(cancel, progress)
    assert built.index is before
    assert built.store.commits == commits
    assert built.get_project(100).name == "BuddyPress Business Profile"


@pytest.mark.asyncio
async def test_cancel_before_start(remote, local):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(BuildCancelled):
        await IndexBuilder(remote, local).build(cancel)
    assert local.store.commits == []


@pytest.mark.asyncio
async def test_column_failure_is_reported(remote, local):
    remote.fail_cards = {(100, 1003)}
    report = await IndexBuilder(remote, local).build()
    assert [(f.project_id, f.column_id) for f in report.failures] == [(100, 1003)]
    assert report.meta.total_cards == 9
    assert report.meta.total_columns == 5
    assert local.get_card(100, 5004) is None


@pytest.mark.asyncio
async def test_malformed_card_is_a_column_failure(remote, local):
    remote.cards[(200, 2001)][0]["due_on"] = "next tuesday"
    remote.cards[(200, 2004)].append({"title": "no id"})
    report = await IndexBuilder(remote, local).build()
    assert sorted((f.project_id, f.column_id) for f in report.failures) == [(200, 2001), (200, 2004)]
    assert report.meta.total_cards == 8
    assert local.get_card(200, 6002) is None
    assert local.get_card(100, 5001) is not None


@pytest.mark.asyncio
async def test_project_listing_failure_commits_nothing(remote, built):
    commits = list(built.store.commits)
    remote.fail_projects = True
    with pytest.raises(RemoteFailure):
        await IndexBuilder(remote, built).build()
    assert built.store.commits == commits
    assert len(built.index.cards) == 12


def test_build_sync(remote, local):
    report = IndexBuilder(remote, local).build_sync()
    assert report.meta.total_cards == 12
    assert report.meta.elapsed_seconds >= 0


def test_rebuild_replaces_cards(remote, built):
    remote.cards[(100, 1002)].pop()  # 5003 disappears remotely
    IndexBuilder(remote, built).build_sync()
    assert built.get_card(100, 5003) is None
    assert built.index.meta.total_cards == 11
