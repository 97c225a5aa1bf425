"""Data models for the campdex index."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    TRASHED = "trashed"


class ColumnType(str, Enum):
    """Semantic purpose of a column, derived from its title."""

    BUGS = "bugs"
    TESTING = "testing"
    REVIEW = "review"
    DEVELOPMENT = "development"
    DONE = "done"
    TODO = "todo"
    OTHER = "other"

    @property
    def emoji(self) -> str:
        return COLUMN_EMOJI[self]


COLUMN_EMOJI: dict[ColumnType, str] = {
    ColumnType.BUGS: "🐛",
    ColumnType.TESTING: "🧪",
    ColumnType.REVIEW: "👀",
    ColumnType.DEVELOPMENT: "💻",
    ColumnType.DONE: "✅",
    ColumnType.TODO: "📝",
    ColumnType.OTHER: "📊",
}


def composite_key(project_id: int, item_id: int) -> str:
    """Project-scoped key for columns and cards: "{project_id}_{item_id}"."""
    return f"{project_id}_{item_id}"


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class Project:
    """A remote project, optionally owning one board."""

    id: int
    name: str
    description: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    board_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    url: str = ""

    @property
    def has_board(self) -> bool:
        return self.board_id is not None

    @property
    def is_active(self) -> bool:
        return self.status is ProjectStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "board_id": self.board_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Project:
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            status=ProjectStatus(data.get("status") or "active"),
            board_id=int(data["board_id"]) if data.get("board_id") is not None else None,
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            url=data.get("url") or "",
        )


@dataclass
class Column:
    """A lane on a project's board."""

    id: int
    project_id: int
    title: str
    project_name: str = ""
    position: int | None = None
    type: ColumnType = ColumnType.OTHER

    @property
    def key(self) -> str:
        return composite_key(self.project_id, self.id)

    @property
    def emoji(self) -> str:
        return self.type.emoji

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "title": self.title,
            "position": self.position,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Column:
        position = data.get("position")
        return cls(
            id=int(data["id"]),
            project_id=int(data["project_id"]),
            title=data.get("title") or "",
            project_name=data.get("project_name") or "",
            position=int(position) if position is not None else None,
            type=ColumnType(data.get("type") or "other"),
        )


@dataclass
class Card:
    """A card, denormalised with its column and assignee names for search."""

    id: int
    project_id: int
    column_id: int
    title: str
    project_name: str = ""
    column_title: str = ""
    column_type: ColumnType = ColumnType.OTHER
    content: str = ""
    completed: bool = False
    due_on: date | None = None
    assignee_ids: list[int] = field(default_factory=list)
    assignee_names: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    url: str = ""

    @property
    def key(self) -> str:
        return composite_key(self.project_id, self.id)

    def is_overdue(self, today: date) -> bool:
        """Incomplete with a due date strictly before today."""
        return not self.completed and self.due_on is not None and self.due_on < today

    def days_overdue(self, today: date) -> int:
        if not self.is_overdue(today):
            return 0
        return (today - self.due_on).days

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "column_id": self.column_id,
            "column_title": self.column_title,
            "column_type": self.column_type.value,
            "title": self.title,
            "content": self.content,
            "completed": self.completed,
            "due_on": _iso(self.due_on),
            "assignee_ids": list(self.assignee_ids),
            "assignee_names": list(self.assignee_names),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Card:
        return cls(
            id=int(data["id"]),
            project_id=int(data["project_id"]),
            column_id=int(data["column_id"]),
            title=data.get("title") or "",
            project_name=data.get("project_name") or "",
            column_title=data.get("column_title") or "",
            column_type=ColumnType(data.get("column_type") or "other"),
            content=data.get("content") or "",
            completed=bool(data.get("completed")),
            due_on=parse_date(data.get("due_on")),
            assignee_ids=[int(i) for i in data.get("assignee_ids") or []],
            assignee_names=list(data.get("assignee_names") or []),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            url=data.get("url") or "",
        )


@dataclass
class Person:
    """An entry in the account's person directory."""

    id: int
    name: str
    email: str = ""
    title: str = ""
    admin: bool = False
    owner: bool = False
    avatar_url: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Person:
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            email=data.get("email") or "",
            title=data.get("title") or "",
            admin=bool(data.get("admin")),
            owner=bool(data.get("owner")),
            avatar_url=data.get("avatar_url") or "",
        )


@dataclass
class Meta:
    """Build bookkeeping for an index snapshot."""

    started_at: datetime | None = None
    completed_at: datetime | None = None
    elapsed_seconds: float = 0.0
    total_projects: int = 0
    total_columns: int = 0
    total_cards: int = 0
    total_people: int = 0
    account_id: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = _iso(self.started_at)
        data["completed_at"] = _iso(self.completed_at)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Meta:
        return cls(
            started_at=parse_datetime(data.get("started_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            elapsed_seconds=float(data.get("elapsed_seconds") or 0.0),
            total_projects=int(data.get("total_projects") or 0),
            total_columns=int(data.get("total_columns") or 0),
            total_cards=int(data.get("total_cards") or 0),
            total_people=int(data.get("total_people") or 0),
            account_id=str(data.get("account_id") or ""),
        )


@dataclass
class Index:
    """The full local snapshot: four maps plus meta."""

    projects: dict[int, Project] = field(default_factory=dict)
    columns: dict[str, Column] = field(default_factory=dict)
    cards: dict[str, Card] = field(default_factory=dict)
    people: dict[int, Person] = field(default_factory=dict)
    meta: Meta = field(default_factory=Meta)

    def refresh_meta_counts(self) -> None:
        """Set meta counts from the live map sizes."""
        self.meta.total_projects = len(self.projects)
        self.meta.total_columns = len(self.columns)
        self.meta.total_cards = len(self.cards)
        self.meta.total_people = len(self.people)

    def add_project(self, project: Project) -> None:
        self.projects[project.id] = project

    def add_column(self, column: Column) -> None:
        self.columns[column.key] = column

    def add_card(self, card: Card) -> None:
        self.cards[card.key] = card

    def add_person(self, person: Person) -> None:
        self.people[person.id] = person
