"""Build the local index from the remote API."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from campdex.columns import DEFAULT_CONCURRENCY, ColumnDiscoverer
from campdex.errors import BuildCancelled, RemoteFailure
from campdex.index import LocalIndex
from campdex.models import Card, Column, Index, Meta, Project, ProjectStatus
from campdex.parser import DEFAULT_APP_BASE, card_from_api, person_from_api, project_from_api
from campdex.remote import DEFAULT_PAGE_SIZE, RemoteClient, iter_pages

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass
class BuildFailure:
    """A column whose cards couldn't be fetched. The build carried on without them."""

    project_id: int
    column_id: int
    error: str


@dataclass
class BuildReport:
    meta: Meta
    commit: str = ""
    failures: list[BuildFailure] = field(default_factory=list)


class IndexBuilder:
    """Full scan of projects, people, columns and cards into a staging index.

    Nothing is committed unless the scan finishes: a cancelled or failed
    build leaves the previous snapshot as it was.
    """

    def __init__(
        self,
        remote: RemoteClient,
        local: LocalIndex,
        discoverer: ColumnDiscoverer | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        page_size: int = DEFAULT_PAGE_SIZE,
        account_id: str = "",
        app_base: str = DEFAULT_APP_BASE,
    ) -> None:
        self.remote = remote
        self.local = local
        self.discoverer = discoverer or ColumnDiscoverer(remote, concurrency=concurrency)
        self.concurrency = max(1, concurrency)
        self.page_size = page_size
        self.account_id = account_id
        self.app_base = app_base

    def _pages(self, fetch: Callable[[int], list[dict]]) -> list[dict]:
        return list(iter_pages(fetch, self.page_size))

    def _fetch_projects(self) -> list[Project]:
        projects: dict[int, Project] = {}
        for payload in self._pages(lambda page: self.remote.list_projects(None, page)):
            project = project_from_api(payload)
            projects[project.id] = project
        for payload in self._pages(lambda page: self.remote.list_projects("archived", page)):
            project = project_from_api(payload, status=ProjectStatus.ARCHIVED.value)
            projects.setdefault(project.id, project)
        return list(projects.values())

    def _fetch_cards(self, column: Column) -> list[Card]:
        payloads = self._pages(lambda page: self.remote.list_cards(column.project_id, column.id, page))
        return [card_from_api(p, column, self.account_id, self.app_base) for p in payloads]

    async def _scan_project(
        self,
        project: Project,
        semaphore: asyncio.Semaphore,
        failures: list[BuildFailure],
    ) -> tuple[list[Column], list[Card]]:
        columns = await self.discoverer.discover_async(project, semaphore)

        async def cards_of(column: Column) -> list[Card]:
            async with semaphore:
                # A malformed payload (bad date, missing id) costs only its column.
                try:
                    return await asyncio.to_thread(self._fetch_cards, column)
                except (RemoteFailure, ValueError, KeyError) as exc:
                    logger.warning("cards of %s/%s skipped: %s", project.id, column.id, exc)
                    failures.append(BuildFailure(project.id, column.id, str(exc)))
                    return []

        per_column = await asyncio.gather(*(cards_of(c) for c in columns))
        cards = [card for batch in per_column for card in batch]
        return columns, cards

    async def build(
        self,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BuildReport:
        """Scan the remote and commit the result as the new snapshot.

        cancel is checked between projects; setting it raises BuildCancelled.
        """

        def report(message: str) -> None:
            logger.info(message)
            if progress is not None:
                progress(message)

        def cancelled() -> bool:
            return cancel is not None and cancel.is_set()

        started = datetime.now(timezone.utc)
        clock = time.monotonic()
        staging = Index(meta=Meta(started_at=started, account_id=self.account_id))
        failures: list[BuildFailure] = []

        report("Fetching projects...")
        projects = await asyncio.to_thread(self._fetch_projects)
        for project in projects:
            staging.add_project(project)
        report(f"Found {len(projects)} projects")

        report("Fetching people...")
        people = await asyncio.to_thread(self._pages, self.remote.list_people)
        for payload in people:
            staging.add_person(person_from_api(payload))
        report(f"Found {len(staging.people)} people")

        boards = [p for p in projects if p.is_active and p.has_board]
        queue: asyncio.Queue[Project] = asyncio.Queue()
        for project in boards:
            queue.put_nowait(project)
        semaphore = asyncio.Semaphore(self.concurrency)
        scanned: dict[int, tuple[list[Column], list[Card]]] = {}

        async def worker() -> None:
            while not cancelled():
                try:
                    project = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                scanned[project.id] = await self._scan_project(project, semaphore, failures)
                columns, cards = scanned[project.id]
                report(f"[{len(scanned)}/{len(boards)}] {project.name}: {len(columns)} columns, {len(cards)} cards")

        await asyncio.gather(*(worker() for _ in range(min(self.concurrency, len(boards)) or 1)))

        if cancelled():
            logger.warning("build cancelled after %d of %d projects", len(scanned), len(boards))
            raise BuildCancelled(f"Build cancelled after {len(scanned)} of {len(boards)} projects")

        # Insert in project order so the snapshot doesn't depend on fetch timing.
        for project in boards:
            columns, cards = scanned[project.id]
            for column in columns:
                staging.add_column(column)
            for card in cards:
                staging.add_card(card)

        staging.meta.completed_at = datetime.now(timezone.utc)
        staging.meta.elapsed_seconds = round(time.monotonic() - clock, 3)
        staging.refresh_meta_counts()

        commit = self.local.replace(
            staging,
            f"Build index: {staging.meta.total_projects} projects, {staging.meta.total_cards} cards",
        )
        report(
            f"Indexed {staging.meta.total_projects} projects, {staging.meta.total_columns} columns, "
            f"{staging.meta.total_cards} cards, {staging.meta.total_people} people "
            f"in {staging.meta.elapsed_seconds:.1f}s"
        )
        if failures:
            logger.warning("%d column(s) could not be fetched", len(failures))
        return BuildReport(meta=staging.meta, commit=commit, failures=failures)

    def build_sync(
        self,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BuildReport:
        """Blocking wrapper around build()."""
        return asyncio.run(self.build(cancel, progress))

    refresh = build
