"""The local index: search, statistics and card patching without remote calls."""

from __future__ import annotations

import csv
import dataclasses
import logging
import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from campdex.columns import sort_columns
from campdex.errors import InvalidInput, NotFound
from campdex.models import (
    Card,
    Column,
    ColumnType,
    Index,
    Person,
    Project,
    ProjectStatus,
    composite_key,
    parse_date,
)
from campdex.store import INDEX_BRANCH, GitSnapshotStore, SnapshotStore

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("all", "projects", "cards", "people")
EXPORT_KINDS = ("cards", "projects")

# Identity fields never change through a patch.
_FIXED_FIELDS = {"id", "project_id"}
PATCHABLE_FIELDS = frozenset(f.name for f in dataclasses.fields(Card)) - _FIXED_FIELDS


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _coerce_list(value: Any) -> list:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return list(value or [])


def coerce_card_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate and type-coerce a partial card update.

    Values may arrive as strings from the command line ("true", "2024-05-01", "1,2").
    """
    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise InvalidInput(f"Unknown card field(s): {', '.join(sorted(unknown))}")

    result: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "completed":
            value = _coerce_bool(value)
        elif name == "due_on":
            try:
                value = parse_date(value)
            except ValueError as exc:
                raise InvalidInput(f"Invalid due date: {value!r}") from exc
        elif name == "column_id":
            try:
                value = int(value)
            except (TypeError, ValueError) as exc:
                raise InvalidInput(f"Invalid column id: {value!r}") from exc
        elif name == "column_type":
            try:
                value = ColumnType(value)
            except ValueError as exc:
                raise InvalidInput(f"Invalid column type: {value!r}") from exc
        elif name == "assignee_ids":
            try:
                value = [int(v) for v in _coerce_list(value)]
            except ValueError as exc:
                raise InvalidInput(f"Invalid assignee ids: {value!r}") from exc
        elif name == "assignee_names":
            value = [str(v) for v in _coerce_list(value)]
        elif name in ("created_at", "updated_at"):
            if isinstance(value, str):
                try:
                    value = datetime.fromisoformat(value.replace("Z", "+00:00"))
                except ValueError as exc:
                    raise InvalidInput(f"Invalid timestamp for {name}: {value!r}") from exc
        elif value is None:
            value = ""
        else:
            value = str(value)
        result[name] = value
    return result


@dataclass
class SearchResults:
    projects: list[Project] = field(default_factory=list)
    cards: list[Card] = field(default_factory=list)
    people: list[Person] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.projects) + len(self.cards) + len(self.people)

    def to_dict(self) -> dict:
        return {
            "projects": [p.to_dict() for p in self.projects],
            "cards": [c.to_dict() for c in self.cards],
            "people": [p.to_dict() for p in self.people],
        }


@dataclass
class CardCounts:
    """Open/completed/overdue tallies over a set of cards."""

    total: int = 0
    open: int = 0
    completed: int = 0
    overdue: int = 0
    by_column: dict[str, int] = field(default_factory=dict)
    by_assignee: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


def count_cards(cards: Iterable[Card], today: date) -> CardCounts:
    """One pass over cards. Overdue cards are always a subset of open ones."""
    counts = CardCounts()
    by_column: Counter[str] = Counter()
    by_assignee: Counter[str] = Counter()
    for card in cards:
        counts.total += 1
        if card.completed:
            counts.completed += 1
        else:
            counts.open += 1
            if card.is_overdue(today):
                counts.overdue += 1
        by_column[card.column_title] += 1
        for name in card.assignee_names:
            by_assignee[name] += 1
    counts.by_column = dict(by_column)
    counts.by_assignee = dict(by_assignee)
    return counts


@dataclass
class Statistics:
    total_cards: int
    open_cards: int
    completed_cards: int
    overdue_cards: int
    by_column: dict[str, int]
    by_project: dict[str, int]
    by_assignee: dict[str, int]
    total_projects: int
    active_projects: int
    total_people: int
    index_age: timedelta | None
    built_at: datetime | None

    def to_dict(self) -> dict:
        data = dataclasses.asdict(self)
        data["index_age"] = self.index_age.total_seconds() if self.index_age is not None else None
        data["built_at"] = self.built_at.isoformat() if self.built_at is not None else None
        return data


@dataclass
class ProjectSummary:
    project: Project
    columns: list[Column]
    cards: list[Card]
    stats: CardCounts

    def to_dict(self) -> dict:
        return {
            "project": self.project.to_dict(),
            "columns": [c.to_dict() for c in self.columns],
            "cards": [c.to_dict() for c in self.cards],
            "stats": self.stats.to_dict(),
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _age(now: datetime, then: datetime | None) -> timedelta | None:
    if then is None:
        return None
    # Aware and naive timestamps can't be subtracted; compare as UTC.
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - then


class LocalIndex:
    """One index snapshot plus the store it is committed to.

    Writers are serialised by a lock and publish a fresh Index object once
    the store has committed it; readers keep using whichever snapshot they
    picked up.
    """

    def __init__(self, store: SnapshotStore, index: Index | None = None) -> None:
        self.store = store
        self._lock = threading.Lock()
        if index is None:
            index = store.load() or Index()
        self.index = index

    @classmethod
    def open(cls, repo_path: str | Path, branch: str = INDEX_BRANCH) -> LocalIndex:
        """Load the index committed on a repository's index branch."""
        return cls(GitSnapshotStore(repo_path, branch))

    @property
    def is_built(self) -> bool:
        return self.index.meta.started_at is not None

    def reload(self) -> None:
        with self._lock:
            self.index = self.store.load() or Index()

    def replace(self, index: Index, message: str = "Rebuild index") -> str:
        """Commit a whole new index and publish it."""
        with self._lock:
            index.refresh_meta_counts()
            commit = self.store.commit(index, message)
            self.index = index
            return commit

    def _publish(
        self,
        message: str,
        projects: dict[int, Project] | None = None,
        cards: dict[str, Card] | None = None,
    ) -> None:
        """Commit replacement project or card maps, keeping everything else as is."""
        current = self.index
        staged = Index(
            projects=current.projects if projects is None else projects,
            columns=current.columns,
            cards=current.cards if cards is None else cards,
            people=current.people,
            meta=dataclasses.replace(current.meta),
        )
        staged.refresh_meta_counts()
        self.store.commit(staged, message)
        self.index = staged

    # --- lookups ---

    def get_card(self, project_id: int, card_id: int) -> Card | None:
        return self.index.cards.get(composite_key(project_id, card_id))

    def get_project(self, project_id: int) -> Project | None:
        return self.index.projects.get(project_id)

    def columns_for(self, project_id: int) -> list[Column]:
        """A project's indexed columns, by position then id."""
        return sort_columns([c for c in self.index.columns.values() if c.project_id == project_id])

    def cards_for(self, project_id: int) -> list[Card]:
        return [c for c in self.index.cards.values() if c.project_id == project_id]

    def person_by_name(self, name: str) -> Person | None:
        """Exact (case-insensitive) name match, falling back to substring."""
        needle = name.strip().lower()
        if not needle:
            return None
        people = list(self.index.people.values())
        for person in people:
            if person.name.lower() == needle:
                return person
        for person in people:
            if needle in person.name.lower():
                return person
        return None

    def people_for_names(self, names: Iterable[str]) -> list[Person]:
        found = []
        for name in names:
            person = self.person_by_name(name)
            if person is not None and person not in found:
                found.append(person)
        return found

    # --- search ---

    def search(
        self,
        query: str = "",
        type: str = "all",
        project_id: int | None = None,
        assignee: str | None = None,
        completed: bool | None = None,
    ) -> SearchResults:
        """Case-insensitive substring filter over the snapshot.

        Filters narrow cards only. An empty query matches everything.
        """
        if type not in SEARCH_TYPES:
            raise InvalidInput(f"Unknown search type {type!r}; expected one of {', '.join(SEARCH_TYPES)}")
        needle = (query or "").strip().lower()
        index = self.index
        results = SearchResults()

        def hit(*texts: str) -> bool:
            return not needle or any(needle in (t or "").lower() for t in texts)

        if type in ("all", "projects"):
            results.projects = [p for p in index.projects.values() if hit(p.name, p.description)]

        if type in ("all", "cards"):
            wanted_assignee = assignee.strip().lower() if assignee else None
            for card in index.cards.values():
                if project_id is not None and card.project_id != project_id:
                    continue
                if completed is not None and card.completed != completed:
                    continue
                if wanted_assignee and wanted_assignee not in (n.lower() for n in card.assignee_names):
                    continue
                if hit(card.title, card.content, *card.assignee_names):
                    results.cards.append(card)

        if type in ("all", "people"):
            results.people = [p for p in index.people.values() if hit(p.name, p.email, p.title)]

        logger.debug("search %r (%s): %d results", query, type, results.total)
        return results

    def cards_by_type(self, column_type: ColumnType | str) -> list[Card]:
        column_type = ColumnType(column_type)
        return [c for c in self.index.cards.values() if c.column_type is column_type]

    def stats_by_type(self) -> dict[str, int]:
        """Card counts per column type, every type present, plus "total"."""
        counts = {t.value: 0 for t in ColumnType}
        for card in self.index.cards.values():
            counts[card.column_type.value] += 1
        counts["total"] = len(self.index.cards)
        return counts

    # --- statistics ---

    def statistics(self, now: datetime | None = None) -> Statistics:
        now = now or _utc_now()
        index = self.index
        counts = count_cards(index.cards.values(), now.date())
        by_project = Counter(c.project_name for c in index.cards.values())
        return Statistics(
            total_cards=counts.total,
            open_cards=counts.open,
            completed_cards=counts.completed,
            overdue_cards=counts.overdue,
            by_column=counts.by_column,
            by_project=dict(by_project),
            by_assignee=counts.by_assignee,
            total_projects=len(index.projects),
            active_projects=sum(1 for p in index.projects.values() if p.status is ProjectStatus.ACTIVE),
            total_people=len(index.people),
            index_age=_age(now, index.meta.started_at),
            built_at=index.meta.completed_at,
        )

    def project_summary(self, project_id: int, today: date | None = None, required: bool = False) -> ProjectSummary | None:
        """Columns, cards and tallies of one project, straight from the index."""
        project = self.get_project(project_id)
        if project is None:
            if required:
                raise NotFound(f"Project {project_id} is not in the index")
            return None
        columns = self.columns_for(project_id)
        cards = self.cards_for(project_id)
        stats = count_cards(cards, today or _utc_now().date())
        # Empty columns still show up with a zero count.
        stats.by_column = {c.title: 0 for c in columns} | stats.by_column
        return ProjectSummary(project=project, columns=columns, cards=cards, stats=stats)

    # --- writes ---

    def patch_card(self, project_id: int, card_id: int, **fields: Any) -> bool:
        """Merge fields into an existing card and commit.

        Returns False without writing when the card isn't indexed. A
        column_id change without a column title/type takes them from the
        indexed column.
        """
        updates = coerce_card_fields(fields)
        key = composite_key(project_id, card_id)
        with self._lock:
            card = self.index.cards.get(key)
            if card is None:
                logger.warning("patch skipped: card %s not in index", key)
                return False

            if "column_id" in updates and updates["column_id"] != card.column_id:
                if "column_title" not in updates or "column_type" not in updates:
                    column = self.index.columns.get(composite_key(project_id, updates["column_id"]))
                    if column is None:
                        raise InvalidInput(
                            f"Column {updates['column_id']} is not indexed for project {project_id}; "
                            "supply column_title and column_type"
                        )
                    updates.setdefault("column_title", column.title)
                    updates.setdefault("column_type", column.type)

            cards = dict(self.index.cards)
            cards[key] = dataclasses.replace(card, **updates)
            self._publish(f"Patch card {key}: {', '.join(sorted(updates))}", cards=cards)
        return True

    def move_card_entry(self, project_id: int, card_id: int, column: Column) -> bool:
        """Move a card to a column, updating id, title and type together."""
        return self.patch_card(
            project_id,
            card_id,
            column_id=column.id,
            column_title=column.title,
            column_type=column.type,
        )

    def add_card(self, card: Card) -> None:
        """Insert a card created remotely (quick-add)."""
        with self._lock:
            cards = dict(self.index.cards)
            cards[card.key] = card
            self._publish(f"Add card {card.key}", cards=cards)

    def set_project_status(self, project_id: int, status: ProjectStatus | str) -> bool:
        """Record a project's new status; False without writing when it isn't indexed."""
        try:
            status = ProjectStatus(status)
        except ValueError:
            raise InvalidInput(f"Unknown project status {status!r}") from None
        with self._lock:
            project = self.index.projects.get(project_id)
            if project is None:
                return False
            projects = dict(self.index.projects)
            projects[project_id] = dataclasses.replace(project, status=status)
            self._publish(f"Set project {project_id} {status.value}", projects=projects)
        return True

    def clear(self) -> str:
        """Discard every map and the meta, committing the empty snapshot."""
        with self._lock:
            empty = Index()
            commit = self.store.clear("Clear index")
            self.index = empty
        logger.info("index cleared")
        return commit

    # --- export ---

    def export_csv(self, kind: str = "cards", path: str | Path | None = None) -> Path:
        """Write cards or projects as CSV and return the path written."""
        if kind not in EXPORT_KINDS:
            raise InvalidInput(f"Unknown export kind {kind!r}; expected one of {', '.join(EXPORT_KINDS)}")
        path = Path(path) if path else Path(f"export_{kind}_{_utc_now().date().isoformat()}.csv")
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if kind == "cards":
                writer.writerow(
                    ["Card ID", "Project", "Column", "Title", "Assignees", "Status", "Due Date", "Created", "Updated", "URL"]
                )
                for card in self.index.cards.values():
                    writer.writerow(
                        [
                            card.id,
                            card.project_name,
                            card.column_title,
                            card.title,
                            ", ".join(card.assignee_names),
                            "Completed" if card.completed else "Open",
                            card.due_on.isoformat() if card.due_on else "",
                            card.created_at.isoformat() if card.created_at else "",
                            card.updated_at.isoformat() if card.updated_at else "",
                            card.url,
                        ]
                    )
            else:
                writer.writerow(["Project ID", "Name", "Status", "Board", "Columns", "Cards", "URL"])
                column_counts = Counter(c.project_id for c in self.index.columns.values())
                card_counts = Counter(c.project_id for c in self.index.cards.values())
                for project in self.index.projects.values():
                    writer.writerow(
                        [
                            project.id,
                            project.name,
                            project.status.value,
                            project.board_id or "",
                            column_counts[project.id],
                            card_counts[project.id],
                            project.url,
                        ]
                    )
        logger.info("exported %s to %s", kind, path)
        return path
