"""Shared fixtures: an in-memory remote with a small portfolio.

Portfolio: 3 projects (2 active with boards, 1 archived), 5 columns inside
the scan windows plus one outside, 12 cards, 4 people.
"""

from datetime import date, datetime, timezone

import pytest
from git import Repo

from campdex.errors import RemoteFailure
from campdex.index import LocalIndex
from campdex.indexer import IndexBuilder
from campdex.store import MemorySnapshotStore

TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

ALICE = {"id": 11, "name": "Alice Anders", "title": "Project Lead", "email_address": "alice@example.com"}
BOB = {"id": 12, "name": "Bob Builder", "title": "Developer", "email_address": "bob@example.com"}
CAROL = {"id": 13, "name": "Carol Checker", "title": "QA Engineer", "email_address": "carol@example.com"}
DAN = {"id": 14, "name": "Dan Designer", "title": "Designer", "email_address": "dan@example.com"}


def _who(*people):
    return [{"id": p["id"], "name": p["name"]} for p in people]


def _card(card_id, title, completed=False, due_on=None, assignees=(), content=""):
    return {
        "id": card_id,
        "title": title,
        "content": content,
        "completed": completed,
        "due_on": due_on,
        "assignees": _who(*assignees),
        "created_at": "2024-05-01T10:00:00.000Z",
        "updated_at": "2024-05-02T10:00:00.000Z",
    }


def _project(project_id, name, anchor=None, status="active", description=""):
    dock = [{"name": "message_board", "id": project_id * 10 + 1, "enabled": True}]
    if anchor is not None:
        dock.append({"name": "kanban_board", "id": anchor, "enabled": True})
    return {
        "id": project_id,
        "name": name,
        "description": description,
        "status": status,
        "created_at": "2024-01-01T00:00:00.000Z",
        "updated_at": "2024-06-01T00:00:00.000Z",
        "app_url": f"https://3.basecamp.com/999/projects/{project_id}",
        "dock": dock,
    }


class FakeRemote:
    """RemoteClient over dicts, recording every mutation."""

    def __init__(self, page_size: int = 15):
        self.page_size = page_size
        self.projects: list[dict] = []
        self.archived: list[dict] = []
        self.columns: dict[tuple[int, int], dict] = {}
        self.cards: dict[tuple[int, int], list[dict]] = {}
        self.people: list[dict] = []
        self.project_people: dict[int, list[dict]] = {}
        self.updates: list[tuple[int, int, dict]] = []
        self.moves: list[tuple[int, int, int]] = []
        self.comments: list[tuple[int, int, str]] = []
        self.created: list[dict] = []
        self.lookups: list[int] = []
        self.fail_cards: set[tuple[int, int]] = set()
        self.fail_updates: set[int] = set()
        self.fail_projects = False
        self.fail_archive: set[int] = set()
        self.archived_ids: list[int] = []
        self._next_id = 9000

    def _page(self, items: list[dict], page: int) -> list[dict]:
        start = (page - 1) * self.page_size
        return [dict(i) for i in items[start : start + self.page_size]]

    def _find_card(self, project_id: int, card_id: int) -> tuple[tuple[int, int], dict]:
        for key, cards in self.cards.items():
            if key[0] != project_id:
                continue
            for card in cards:
                if card["id"] == card_id:
                    return key, card
        raise RemoteFailure(f"card {card_id} not found", status=404)

    # --- reads ---

    def list_projects(self, status=None, page=1):
        if self.fail_projects:
            raise RemoteFailure("projects unavailable", status=503)
        return self._page(self.archived if status == "archived" else self.projects, page)

    def get_project(self, project_id):
        for p in self.projects + self.archived:
            if p["id"] == project_id:
                return dict(p)
        raise RemoteFailure(f"project {project_id} not found", status=404)

    def get_board_column(self, project_id, column_id):
        self.lookups.append(column_id)
        payload = self.columns.get((project_id, column_id))
        return dict(payload) if payload is not None else None

    def list_cards(self, project_id, column_id, page=1):
        if (project_id, column_id) in self.fail_cards:
            raise RemoteFailure("cards unavailable", status=500)
        return self._page(self.cards.get((project_id, column_id), []), page)

    def list_people(self, page=1):
        return self._page(self.people, page)

    def list_project_people(self, project_id):
        return [dict(p) for p in self.project_people.get(project_id, [])]

    # --- mutations ---

    def create_card(self, project_id, column_id, title, content="", due_on=None, assignee_ids=None):
        self._next_id += 1
        assignees = [p for p in self.people if p["id"] in (assignee_ids or [])]
        due = due_on.isoformat() if due_on else None
        card = _card(self._next_id, title, content=content, due_on=due, assignees=assignees)
        self.cards.setdefault((project_id, column_id), []).append(card)
        self.created.append(card)
        return dict(card)

    def update_card(self, project_id, card_id, fields):
        if card_id in self.fail_updates:
            raise RemoteFailure(f"update of {card_id} rejected", status=422)
        _, card = self._find_card(project_id, card_id)
        card.update(fields)
        self.updates.append((project_id, card_id, dict(fields)))
        return dict(card)

    def move_card(self, project_id, card_id, column_id, position=None):
        key, card = self._find_card(project_id, card_id)
        self.cards[key].remove(card)
        self.cards.setdefault((project_id, column_id), []).append(card)
        self.moves.append((project_id, card_id, column_id))
        return {}

    def create_comment(self, project_id, recording_id, content):
        self.comments.append((project_id, recording_id, content))
        return {"id": len(self.comments), "content": content}

    def archive_project(self, project_id):
        if project_id in self.fail_archive:
            raise RemoteFailure(f"archive of {project_id} rejected", status=403)
        self.archived_ids.append(project_id)
        return {"id": project_id, "status": "archived"}


def sample_remote(page_size: int = 15) -> FakeRemote:
    remote = FakeRemote(page_size=page_size)
    remote.projects = [
        _project(100, "BuddyPress Business Profile", anchor=1000, description="Profiles for business members"),
        _project(200, "buddypress-checkins-pro", anchor=2000),
    ]
    remote.archived = [_project(300, "Legacy Site", status="archived")]
    remote.people = [ALICE, BOB, CAROL, DAN]
    remote.project_people = {100: [ALICE, BOB, DAN], 200: [CAROL, BOB]}

    for project_id, column_id, title, position in [
        (100, 1002, "Backlog", 1),
        (100, 1003, "In Progress", 2),
        (100, 1005, "Done", 3),
        (100, 1031, "Outside The Window", 4),
        (200, 2001, "Bugs", 1),
        (200, 2004, "QA", 2),
    ]:
        remote.columns[(project_id, column_id)] = {"id": column_id, "title": title, "position": position}

    remote.cards = {
        (100, 1002): [
            _card(5001, "Fix login bug", due_on="2024-06-10", content="<p>Users see a <b>500</b></p>"),
            _card(5002, "New feature: export"),
            _card(5003, "Write docs", due_on="2024-06-20", assignees=[ALICE]),
        ],
        (100, 1003): [
            _card(5004, "Refactor API", due_on="2024-06-14", assignees=[ALICE]),
            _card(5005, "Ship release", completed=True, assignees=[BOB]),
            _card(5006, "Test payments", assignees=[BOB]),
        ],
        (100, 1005): [
            _card(5007, "Setup CI", completed=True, assignees=[ALICE]),
            _card(5008, "Old task", completed=True),
        ],
        (200, 2001): [
            _card(6001, "Checkin crash", due_on="2024-06-01", assignees=[CAROL]),
            _card(6002, "Map bug", completed=True),
        ],
        (200, 2004): [
            _card(6003, "Verify checkins", assignees=[CAROL]),
            _card(6004, "Regression test"),
        ],
    }
    return remote


@pytest.fixture(autouse=True)
def git_identity(monkeypatch):
    """Commits made through git plumbing need an identity."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "campdex tests")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tests@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "campdex tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tests@example.com")


@pytest.fixture
def remote():
    return sample_remote()


@pytest.fixture
def local():
    return LocalIndex(MemorySnapshotStore())


@pytest.fixture
def built(remote, local):
    """The sample portfolio indexed into a memory-backed LocalIndex."""
    IndexBuilder(remote, local, account_id="999").build_sync()
    return local


@pytest.fixture
def empty_repo(tmp_path):
    """Create an empty git repo."""
    repo = Repo.init(tmp_path)
    (tmp_path / ".gitkeep").write_text("")
    repo.index.add([".gitkeep"])
    repo.index.commit("Initial commit")
    return tmp_path


@pytest.fixture
def make_remote():
    """Factory for sample remotes with a custom page size."""
    return sample_remote
