"""Turn raw remote payloads into index records."""

import html
import re

from campdex.models import Card, Column, Person, Project, ProjectStatus, parse_date, parse_datetime

DEFAULT_APP_BASE = "https://3.basecamp.com"
BOARD_TOOLS = ("card_table", "kanban_board")

_BLOCK_BREAK = re.compile(r"<\s*(br\s*/?|/p|/div|/li|/h[1-6])\s*>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_SPACES = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


def strip_html(text: str | None) -> str:
    """Reduce rich-text HTML to plain text, keeping paragraph breaks."""
    if not text:
        return ""
    text = _BLOCK_BREAK.sub("\n", text)
    text = _TAG.sub("", text)
    text = html.unescape(text)
    text = _SPACES.sub(" ", text)
    lines = [line.strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def board_anchor(payload: dict) -> int | None:
    """Find the board's anchor id in a project's dock, or None."""
    for tool in payload.get("dock") or []:
        if tool.get("name") in BOARD_TOOLS and tool.get("enabled", True):
            tool_id = tool.get("id")
            return int(tool_id) if tool_id is not None else None
    return None


def project_from_api(payload: dict, status: str | None = None) -> Project:
    """Build a Project; status overrides the payload's (archived listings omit it)."""
    return Project(
        id=int(payload["id"]),
        name=payload.get("name") or "",
        description=strip_html(payload.get("description")),
        status=ProjectStatus(status or payload.get("status") or "active"),
        board_id=board_anchor(payload),
        created_at=parse_datetime(payload.get("created_at")),
        updated_at=parse_datetime(payload.get("updated_at")),
        url=payload.get("app_url") or "",
    )


def person_from_api(payload: dict) -> Person:
    return Person(
        id=int(payload["id"]),
        name=payload.get("name") or "",
        email=payload.get("email_address") or payload.get("email") or "",
        title=payload.get("title") or "",
        admin=bool(payload.get("admin")),
        owner=bool(payload.get("owner")),
        avatar_url=payload.get("avatar_url") or "",
    )


def card_url(account_id: str, project_id: int, card_id: int, app_base: str = DEFAULT_APP_BASE) -> str:
    """Canonical browser URL for a card."""
    return f"{app_base.rstrip('/')}/{account_id}/buckets/{project_id}/card_tables/cards/{card_id}"


def card_from_api(
    payload: dict,
    column: Column,
    account_id: str = "",
    app_base: str = DEFAULT_APP_BASE,
) -> Card:
    """Build a Card denormalised with its column and assignee names."""
    assignees = payload.get("assignees") or []
    card_id = int(payload["id"])
    return Card(
        id=card_id,
        project_id=column.project_id,
        project_name=column.project_name,
        column_id=column.id,
        column_title=column.title,
        column_type=column.type,
        title=payload.get("title") or "",
        content=strip_html(payload.get("content")),
        completed=bool(payload.get("completed")),
        due_on=parse_date(payload.get("due_on")),
        assignee_ids=[int(a["id"]) for a in assignees if a.get("id") is not None],
        assignee_names=[a.get("name") or "" for a in assignees],
        created_at=parse_datetime(payload.get("created_at")),
        updated_at=parse_datetime(payload.get("updated_at")),
        url=payload.get("app_url") or card_url(account_id, column.project_id, card_id, app_base),
    )
