"""Column discovery and classification.

The remote API cannot list a board's columns; it can only fetch a column
by id. Columns are created with ids close to their board's anchor id, so
discovery scans the window [anchor, anchor + width] and keeps whatever
comes back with a title. Columns created later, outside the window, are
invisible to this strategy.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from campdex.errors import RemoteFailure
from campdex.models import Column, ColumnType, Project
from campdex.remote import RemoteClient

logger = logging.getLogger(__name__)

DEFAULT_SCAN_WIDTH = 30
DEFAULT_CONCURRENCY = 8

# Checked in order; the first category with a keyword in the title wins.
COLUMN_KEYWORDS: list[tuple[ColumnType, tuple[str, ...]]] = [
    (ColumnType.BUGS, ("bug", "issue", "error", "fix", "problem", "defect")),
    (ColumnType.TESTING, ("test", "testing", "qa", "quality", "verify", "validation")),
    (ColumnType.REVIEW, ("review", "pending", "approval", "waiting")),
    (ColumnType.DEVELOPMENT, ("dev", "development", "coding", "implement", "progress", "doing", "work")),
    (ColumnType.DONE, ("done", "complete", "finished", "closed", "resolved", "live", "deployed")),
    (ColumnType.TODO, ("todo", "to do", "backlog", "planned", "new", "open", "start")),
]


def classify_column(title: str) -> ColumnType:
    """Classify a column's purpose from its title.

    "QA" → TESTING, "Backlog" → TODO, "Testing & Done" → TESTING
    """
    lowered = (title or "").lower()
    for column_type, keywords in COLUMN_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return column_type
    return ColumnType.OTHER


def candidate_ids(anchor: int, width: int = DEFAULT_SCAN_WIDTH) -> range:
    """Candidate column ids for a board anchor, inclusive of anchor + width."""
    return range(anchor, anchor + width + 1)


def column_from_api(payload: dict, project: Project) -> Column | None:
    """Build a Column from a lookup payload, or None if it isn't a column."""
    if not isinstance(payload, dict):
        return None
    title = payload.get("title")
    if not title or payload.get("id") is None:
        return None
    position = payload.get("position")
    return Column(
        id=int(payload["id"]),
        project_id=project.id,
        project_name=project.name,
        title=title,
        position=int(position) if position is not None else None,
        type=classify_column(title),
    )


def sort_columns(columns: list[Column]) -> list[Column]:
    """Order by reported position; columns without one go last."""
    return sorted(
        columns,
        key=lambda c: (c.position if c.position is not None else sys.maxsize, c.id),
    )


class ColumnDiscoverer:
    """Recover a board's columns by looking up ids around its anchor."""

    def __init__(
        self,
        remote: RemoteClient,
        width: int = DEFAULT_SCAN_WIDTH,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self.remote = remote
        self.width = width
        self.concurrency = max(1, concurrency)

    def _lookup(self, project: Project, column_id: int) -> Column | None:
        try:
            payload = self.remote.get_board_column(project.id, column_id)
        except RemoteFailure as exc:
            logger.warning("lookup %s/%s failed: %s", project.id, column_id, exc)
            return None
        if payload is None:
            logger.debug("lookup %s/%s: no column", project.id, column_id)
            return None
        column = column_from_api(payload, project)
        if column is None:
            return None
        # The requested id is authoritative, keeping results inside the window.
        column.id = column_id
        return column

    def discover(self, project: Project) -> list[Column]:
        """Scan sequentially and return the board's columns in position order."""
        if not project.has_board:
            return []
        found = []
        for column_id in candidate_ids(project.board_id, self.width):
            column = self._lookup(project, column_id)
            if column is not None:
                found.append(column)
        return sort_columns(found)

    async def discover_async(self, project: Project, semaphore: asyncio.Semaphore | None = None) -> list[Column]:
        """Scan concurrently; ordering matches discover().

        Pass a semaphore to share one concurrency cap with other fetches.
        """
        if not project.has_board:
            return []
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.concurrency)

        async def lookup(column_id: int) -> Column | None:
            async with semaphore:
                return await asyncio.to_thread(self._lookup, project, column_id)

        results = await asyncio.gather(*(lookup(cid) for cid in candidate_ids(project.board_id, self.width)))
        return sort_columns([c for c in results if c is not None])
