"""Rule-based workflows over a project's cards.

Every workflow mutates the remote first and only then patches the local
index. A failure on one card is recorded as an unsuccessful Outcome and
the run carries on; only failing to load the project, its columns or its
cards raises.
"""

from __future__ import annotations

import calendar
import dataclasses
import inspect
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any

from campdex.columns import ColumnDiscoverer
from campdex.errors import InvalidInput, NotFound, RemoteFailure
from campdex.index import LocalIndex
from campdex.models import Card, Column, ColumnType, Project
from campdex.parser import DEFAULT_APP_BASE, card_from_api, project_from_api
from campdex.remote import DEFAULT_PAGE_SIZE, RemoteClient, iter_pages
from campdex.resolver import find_column, resolve_one

logger = logging.getLogger(__name__)

URGENT_MARKER = "[URGENT] "
DUE_SOON_DAYS = 7

# Ordered keyword → role table; the first keyword found in a card wins.
DEFAULT_ASSIGN_RULES: dict[str, str] = {
    "bug": "developer",
    "feature": "lead",
    "test": "qa",
    "urgent": "lead",
}


class WorkflowKind(str, Enum):
    AUTO_ASSIGN = "auto_assign"
    MOVE_COMPLETED = "move_completed"
    ESCALATE_OVERDUE = "escalate_overdue"
    BALANCE_WORKLOAD = "balance_workload"

    @classmethod
    def parse(cls, value: WorkflowKind | str) -> WorkflowKind:
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace("-", "_")
        try:
            return cls(name)
        except ValueError:
            choices = ", ".join(k.value for k in cls)
            raise InvalidInput(f"Unknown workflow {value!r}; expected one of {choices}") from None


@dataclass
class Outcome:
    """What happened to one card."""

    card_id: int
    card_title: str
    action: str
    success: bool
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "card_id": self.card_id,
            "card_title": self.card_title,
            "action": self.action,
            "success": self.success,
            "detail": self.detail,
        }


@dataclass
class WorkflowResult:
    kind: WorkflowKind
    project_id: int
    outcomes: list[Outcome] = field(default_factory=list)
    message: str = ""

    @property
    def succeeded(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[Outcome]:
        return [o for o in self.outcomes if not o.success]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "project_id": self.project_id,
            "message": self.message,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class HealthReport:
    """Project health derived from its card set."""

    project: Project
    total_cards: int
    active: int
    completed: int
    completion_rate: float
    by_column: dict[str, int]
    by_assignee: dict[str, int]
    overdue: list[Card]
    due_soon: list[Card]
    unassigned: list[Card]
    health_score: int

    def to_dict(self) -> dict:
        return {
            "project": self.project.to_dict(),
            "total_cards": self.total_cards,
            "active": self.active,
            "completed": self.completed,
            "completion_rate": self.completion_rate,
            "by_column": self.by_column,
            "by_assignee": self.by_assignee,
            "overdue": [c.to_dict() for c in self.overdue],
            "due_soon": [c.to_dict() for c in self.due_soon],
            "unassigned": [c.to_dict() for c in self.unassigned],
            "health_score": self.health_score,
        }


@dataclass
class ArchiveOutcome:
    """What happened to one project in an archive sweep."""

    project_id: int
    project_name: str
    completion_rate: float
    total_cards: int
    archived: bool
    detail: str = ""

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class PortfolioReport:
    """Health of several projects added together."""

    projects: list[HealthReport] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    total_cards: int = 0
    total_overdue: int = 0
    by_assignee: dict[str, int] = field(default_factory=dict)

    @property
    def total_projects(self) -> int:
        return len(self.projects)

    @property
    def average_health(self) -> float | None:
        if not self.projects:
            return None
        return round(sum(r.health_score for r in self.projects) / len(self.projects), 1)

    def to_dict(self) -> dict:
        return {
            "total_projects": self.total_projects,
            "total_cards": self.total_cards,
            "total_overdue": self.total_overdue,
            "average_health": self.average_health,
            "by_assignee": self.by_assignee,
            "projects": {r.project.name: r.to_dict() for r in self.projects},
            "skipped": self.skipped,
        }


class Schedule(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @classmethod
    def parse(cls, value: Schedule | str) -> Schedule:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise InvalidInput(f"Unknown schedule {value!r}; expected one of {choices}") from None


def add_months(day: date, months: int) -> date:
    """Same day n months later, clamped to the end of shorter months.

    2024-01-31 + 1 → 2024-02-29
    """
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def next_due_date(schedule: Schedule | str, today: date) -> date:
    schedule = Schedule.parse(schedule)
    if schedule is Schedule.DAILY:
        return today + timedelta(days=1)
    if schedule is Schedule.WEEKLY:
        return today + timedelta(weeks=1)
    if schedule is Schedule.MONTHLY:
        return add_months(today, 1)
    return add_months(today, 3)


def merge_rules(rules: dict[str, str] | None) -> list[tuple[str, str]]:
    """Default rules in their order with caller roles replacing them in place; new caller keywords go last."""
    merged = dict(DEFAULT_ASSIGN_RULES)
    for keyword, role in (rules or {}).items():
        merged[keyword.lower()] = role
    return list(merged.items())


def find_person(people: Iterable[dict], role: str) -> dict | None:
    """First person whose title or name contains role, case-insensitively."""
    needle = role.strip().lower()
    if not needle:
        return None
    for person in people:
        title = (person.get("title") or "").lower()
        name = (person.get("name") or "").lower()
        if needle in title or needle in name:
            return person
    return None


def health_score(overdue: int, unassigned: int, completion_rate: float | None) -> int:
    """100, less 5 per overdue and 2 per unassigned open card, less 10 under 30% done."""
    score = 100 - 5 * overdue - 2 * unassigned
    if completion_rate is not None and completion_rate < 30:
        score -= 10
    return max(0, min(100, score))


class AutomationEngine:
    def __init__(
        self,
        remote: RemoteClient,
        local: LocalIndex,
        discoverer: ColumnDiscoverer | None = None,
        account_id: str = "",
        app_base: str = DEFAULT_APP_BASE,
        page_size: int = DEFAULT_PAGE_SIZE,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.remote = remote
        self.local = local
        self.discoverer = discoverer or ColumnDiscoverer(remote)
        self.account_id = account_id
        self.app_base = app_base
        self.page_size = page_size
        self.today = today

    # --- loading ---

    def _project(self, project_id: int) -> Project:
        project = self.local.get_project(project_id)
        if project is not None:
            return project
        try:
            return project_from_api(self.remote.get_project(project_id))
        except RemoteFailure as exc:
            if exc.status == 404:
                raise NotFound(f"Project {project_id} not found") from exc
            raise

    def _columns(self, project: Project) -> list[Column]:
        columns = self.local.columns_for(project.id)
        if columns:
            return columns
        return self.discoverer.discover(project)

    def _cards(self, project: Project, columns: list[Column]) -> list[Card]:
        """Indexed cards, or a fresh fetch when the project has none indexed."""
        cards = self.local.cards_for(project.id)
        if cards:
            return cards
        logger.info("no indexed cards for %s, fetching from remote", project.name)
        cards = []
        for column in columns:
            pages = iter_pages(lambda page: self.remote.list_cards(project.id, column.id, page), self.page_size)
            cards.extend(card_from_api(p, column, self.account_id, self.app_base) for p in pages)
        return cards

    def _load(self, project_id: int) -> tuple[Project, list[Column], list[Card]]:
        project = self._project(project_id)
        columns = self._columns(project)
        return project, columns, self._cards(project, columns)

    def _people(self, project_id: int) -> list[dict]:
        try:
            return self.remote.list_project_people(project_id)
        except RemoteFailure as exc:
            logger.warning("people of project %s unavailable: %s", project_id, exc)
            return []

    def _patch_local(self, card: Card, **fields: Any) -> None:
        if not self.local.patch_card(card.project_id, card.id, **fields):
            logger.debug("card %s not indexed, local patch skipped", card.key)

    def _update(self, card: Card, action: str, fields: dict[str, Any], detail: str) -> Outcome:
        try:
            self.remote.update_card(card.project_id, card.id, fields)
        except RemoteFailure as exc:
            logger.warning("%s failed on card %s: %s", action, card.id, exc)
            return Outcome(card.id, card.title, action, False, str(exc))
        return Outcome(card.id, card.title, action, True, detail)

    # --- workflows ---

    def auto_assign(self, project_id: int, rules: dict[str, str] | None = None) -> WorkflowResult:
        """Assign unassigned open cards by keyword → role rules."""
        project, _, cards = self._load(project_id)
        table = merge_rules(rules)
        people = self._people(project.id)
        result = WorkflowResult(WorkflowKind.AUTO_ASSIGN, project.id)

        for card in cards:
            if card.assignee_ids or card.completed:
                continue
            text = f"{card.title}\n{card.content}".lower()
            matched = next(((k, role) for k, role in table if k in text), None)
            if matched is None:
                continue
            keyword, role = matched
            person = find_person(people, role)
            if person is None:
                result.outcomes.append(
                    Outcome(card.id, card.title, "assign", False, f"no person for role {role!r} (rule {keyword!r})")
                )
                continue
            person_id = int(person["id"])
            outcome = self._update(
                card, "assign", {"assignee_ids": [person_id]}, f"{person.get('name', person_id)} (rule {keyword!r})"
            )
            if outcome.success:
                self._patch_local(card, assignee_ids=[person_id], assignee_names=[person.get("name") or ""])
            result.outcomes.append(outcome)

        result.message = f"assigned {len(result.succeeded)} of {len(result.outcomes)} card(s)"
        return result

    def move_completed(self, project_id: int) -> WorkflowResult:
        """Move completed cards into the first done column."""
        project, columns, cards = self._load(project_id)
        result = WorkflowResult(WorkflowKind.MOVE_COMPLETED, project.id)
        done = next((c for c in columns if c.type is ColumnType.DONE), None)
        if done is None:
            result.message = "no done column"
            return result

        for card in cards:
            if not card.completed or card.column_id == done.id:
                continue
            try:
                self.remote.move_card(project.id, card.id, done.id)
            except RemoteFailure as exc:
                logger.warning("move failed on card %s: %s", card.id, exc)
                result.outcomes.append(Outcome(card.id, card.title, "move", False, str(exc)))
                continue
            self.local.move_card_entry(project.id, card.id, done)
            result.outcomes.append(Outcome(card.id, card.title, "move", True, f"{card.column_title} -> {done.title}"))

        result.message = f"moved {len(result.succeeded)} card(s) to {done.title}"
        return result

    def escalate_overdue(
        self,
        project_id: int,
        threshold_days: int = 3,
        escalate_to: str = "lead",
        add_urgent_tag: bool = True,
        notify_comment: bool = True,
    ) -> WorkflowResult:
        """Mark, reassign and comment on cards overdue by threshold_days or more."""
        project, _, cards = self._load(project_id)
        today = self.today()
        people = self._people(project.id) if escalate_to else []
        result = WorkflowResult(WorkflowKind.ESCALATE_OVERDUE, project.id)

        for card in cards:
            days = card.days_overdue(today)
            if not card.is_overdue(today) or days < threshold_days:
                continue

            if add_urgent_tag and URGENT_MARKER.strip().lower() not in card.title.lower():
                new_title = URGENT_MARKER + card.title
                outcome = self._update(card, "urgent_tag", {"title": new_title}, new_title)
                if outcome.success:
                    self._patch_local(card, title=new_title)
                result.outcomes.append(outcome)

            if escalate_to:
                lead = find_person(people, escalate_to)
                if lead is None:
                    result.outcomes.append(
                        Outcome(card.id, card.title, "escalate", False, f"no person for role {escalate_to!r}")
                    )
                elif int(lead["id"]) not in card.assignee_ids:
                    ids = [*card.assignee_ids, int(lead["id"])]
                    names = [*card.assignee_names, lead.get("name") or ""]
                    outcome = self._update(card, "escalate", {"assignee_ids": ids}, lead.get("name") or "")
                    if outcome.success:
                        self._patch_local(card, assignee_ids=ids, assignee_names=names)
                    result.outcomes.append(outcome)

            if notify_comment:
                text = f"🚨 This task is {days} days overdue and has been escalated. Please prioritize."
                try:
                    self.remote.create_comment(project.id, card.id, text)
                    result.outcomes.append(Outcome(card.id, card.title, "comment", True, f"{days} days overdue"))
                except RemoteFailure as exc:
                    logger.warning("comment failed on card %s: %s", card.id, exc)
                    result.outcomes.append(Outcome(card.id, card.title, "comment", False, str(exc)))

        result.message = f"{len(result.succeeded)} escalation action(s), {len(result.failed)} failed"
        return result

    def balance_workload(self, project_id: int, max_cards: int = 5) -> WorkflowResult:
        """Greedy first-fit move of excess open cards to underloaded assignees.

        Overloaded: more than max_cards open. Underloaded: max_cards - 2 or
        fewer. Nobody receives a card once at max_cards - 1.
        """
        project, _, cards = self._load(project_id)
        result = WorkflowResult(WorkflowKind.BALANCE_WORKLOAD, project.id)
        open_cards = [c for c in cards if not c.completed]

        # dict keeps first-appearance order, which is the tie-break everywhere below
        load: dict[int, int] = {}
        names: dict[int, str] = {}
        for card in open_cards:
            for i, person_id in enumerate(card.assignee_ids):
                load[person_id] = load.get(person_id, 0) + 1
                if i < len(card.assignee_names):
                    names.setdefault(person_id, card.assignee_names[i])

        assigned = {card.id: list(card.assignee_ids) for card in open_cards}
        overloaded = [p for p, n in load.items() if n > max_cards]
        underloaded = [p for p, n in load.items() if n <= max_cards - 2]
        if not overloaded or not underloaded:
            result.message = "workload is already balanced"
            return result

        for source in overloaded:
            excess = load[source] - max_cards
            moved = 0
            for card in open_cards:
                if moved >= excess or not any(load[p] < max_cards - 1 for p in underloaded):
                    break
                current = assigned[card.id]
                if source not in current:
                    continue
                # Someone with room may already share this card; a later card can still go to them.
                target = next((p for p in underloaded if load[p] < max_cards - 1 and p not in current), None)
                if target is None:
                    continue
                ids = [target if p == source else p for p in current]
                detail = f"{names.get(source, source)} -> {names.get(target, target)}"
                outcome = self._update(card, "reassign", {"assignee_ids": ids}, detail)
                result.outcomes.append(outcome)
                if not outcome.success:
                    continue
                new_names = [names.get(p, "") for p in ids]
                self._patch_local(card, assignee_ids=ids, assignee_names=new_names)
                assigned[card.id] = ids
                load[source] -= 1
                load[target] += 1
                moved += 1

        result.message = f"reassigned {len(result.succeeded)} card(s)"
        return result

    # --- dispatch ---

    def run_workflow(
        self,
        kind: WorkflowKind | str,
        project_id: int,
        options: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        kind = WorkflowKind.parse(kind)
        handler = {
            WorkflowKind.AUTO_ASSIGN: self.auto_assign,
            WorkflowKind.MOVE_COMPLETED: self.move_completed,
            WorkflowKind.ESCALATE_OVERDUE: self.escalate_overdue,
            WorkflowKind.BALANCE_WORKLOAD: self.balance_workload,
        }[kind]
        options = options or {}
        try:
            inspect.signature(handler).bind(project_id, **options)
        except TypeError as exc:
            raise InvalidInput(f"Bad options for {kind.value}: {exc}") from exc
        result = handler(project_id, **options)
        logger.info("%s on project %s: %s", kind.value, project_id, result.message)
        return result

    def run_suite(
        self,
        project_id: int,
        auto_assign: bool = True,
        move_completed: bool = True,
        escalate_overdue: bool = True,
        balance_workload: bool = False,
    ) -> dict[WorkflowKind, WorkflowResult]:
        """Run the selected workflows in a fixed order."""
        selected = [
            (WorkflowKind.AUTO_ASSIGN, auto_assign),
            (WorkflowKind.MOVE_COMPLETED, move_completed),
            (WorkflowKind.ESCALATE_OVERDUE, escalate_overdue),
            (WorkflowKind.BALANCE_WORKLOAD, balance_workload),
        ]
        results: dict[WorkflowKind, WorkflowResult] = {}
        started = time.monotonic()
        for kind, enabled in selected:
            if not enabled:
                continue
            t0 = time.monotonic()
            results[kind] = self.run_workflow(kind, project_id)
            logger.info("%s took %.3fs", kind.value, time.monotonic() - t0)
        logger.info(
            "suite on project %s: %d workflow(s) in %.3fs", project_id, len(results), time.monotonic() - started
        )
        return results

    # --- reports and card helpers ---

    def analyze_project(self, project_id: int) -> HealthReport:
        project, _, cards = self._load(project_id)
        today = self.today()
        soon = today + timedelta(days=DUE_SOON_DAYS)
        by_column: dict[str, int] = {}
        by_assignee: dict[str, int] = {}
        overdue: list[Card] = []
        due_soon: list[Card] = []
        unassigned: list[Card] = []
        completed = 0

        for card in cards:
            by_column[card.column_title] = by_column.get(card.column_title, 0) + 1
            if card.completed:
                completed += 1
                continue
            if card.is_overdue(today):
                overdue.append(card)
            elif card.due_on is not None and card.due_on <= soon:
                due_soon.append(card)
            if not card.assignee_ids:
                unassigned.append(card)
            for name in card.assignee_names:
                by_assignee[name] = by_assignee.get(name, 0) + 1

        rate = round(completed / len(cards) * 100, 1) if cards else None
        report = HealthReport(
            project=project,
            total_cards=len(cards),
            active=len(cards) - completed,
            completed=completed,
            completion_rate=rate or 0.0,
            by_column=by_column,
            by_assignee=by_assignee,
            overdue=overdue,
            due_soon=due_soon,
            unassigned=unassigned,
            health_score=health_score(len(overdue), len(unassigned), rate),
        )
        logger.info("%s health %d (%d overdue, %d unassigned)", project.name, report.health_score, len(overdue), len(unassigned))
        return report

    def quick_add(
        self,
        project_query: str,
        column_query: str,
        title: str,
        content: str = "",
        due_on: date | None = None,
        assignee_ids: list[int] | None = None,
    ) -> Card:
        """Create a card in a project and column found by name."""
        if not title.strip():
            raise InvalidInput("Card title must not be empty")
        project = resolve_one(project_query, self.local.index.projects.values())
        if project is None:
            raise NotFound(f"No project matches {project_query!r}")
        column = find_column(self._columns(project), column_query)
        if column is None:
            raise NotFound(f"No column matching {column_query!r} in {project.name}")

        payload = self.remote.create_card(project.id, column.id, title, content, due_on, assignee_ids)
        card = card_from_api(payload, column, self.account_id, self.app_base)
        self.local.add_card(card)
        logger.info("added card %s to %s / %s", card.id, project.name, column.title)
        return card

    def batch_move(self, project_id: int, card_ids: Iterable[int], column_id: int) -> list[Outcome]:
        project, columns, cards = self._load(project_id)
        target = next((c for c in columns if c.id == column_id), None)
        if target is None:
            raise NotFound(f"Column {column_id} not found in {project.name}")
        by_id = {c.id: c for c in cards}

        outcomes = []
        for card_id in card_ids:
            card = by_id.get(card_id)
            if card is None:
                outcomes.append(Outcome(card_id, "", "move", False, "card not found"))
                continue
            try:
                self.remote.move_card(project.id, card.id, target.id)
            except RemoteFailure as exc:
                outcomes.append(Outcome(card.id, card.title, "move", False, str(exc)))
                continue
            self.local.move_card_entry(project.id, card.id, target)
            outcomes.append(Outcome(card.id, card.title, "move", True, f"{card.column_title} -> {target.title}"))
        return outcomes

    def create_recurring_task(
        self,
        project_id: int,
        title: str,
        schedule: Schedule | str = Schedule.WEEKLY,
        column: str = "todo",
        content: str = "",
        assignee_role: str | None = None,
    ) -> Outcome:
        """Create one occurrence of a repeating card, due at the schedule's next step.

        column matches a column title, then a column type ("todo" finds Backlog).
        """
        if not title.strip():
            raise InvalidInput("Card title must not be empty")
        schedule = Schedule.parse(schedule)
        project = self._project(project_id)
        columns = self._columns(project)
        target = find_column(columns, column)
        if target is None:
            target = next((c for c in columns if c.type.value == column.strip().lower()), None)
        if target is None:
            raise NotFound(f"No column matching {column!r} in {project.name}")

        today = self.today()
        due = next_due_date(schedule, today)
        full_title = f"{title.strip()} - {today.strftime('%b %Y')}"
        assignee_ids = None
        if assignee_role:
            person = find_person(self._people(project.id), assignee_role)
            if person is None:
                logger.warning("no person for role %r in %s, card left unassigned", assignee_role, project.name)
            else:
                assignee_ids = [int(person["id"])]

        try:
            payload = self.remote.create_card(project.id, target.id, full_title, content, due, assignee_ids)
        except RemoteFailure as exc:
            logger.warning("recurring card %r not created: %s", full_title, exc)
            return Outcome(0, full_title, "create", False, str(exc))
        card = card_from_api(payload, target, self.account_id, self.app_base)
        self.local.add_card(card)
        logger.info("created %s card %s in %s / %s", schedule.value, card.id, project.name, target.title)
        return Outcome(card.id, card.title, "create", True, f"due {due.isoformat()} ({schedule.value})")

    def archive_completed_projects(
        self, completion_threshold: float = 95.0, dry_run: bool = False
    ) -> list[ArchiveOutcome]:
        """Archive active indexed projects whose cards are at least completion_threshold percent done.

        Projects without cards are never archived.
        """
        outcomes = []
        for project in list(self.local.index.projects.values()):
            if not project.is_active:
                continue
            try:
                report = self.analyze_project(project.id)
            except (NotFound, RemoteFailure) as exc:
                logger.warning("archive sweep skipped %s: %s", project.name, exc)
                continue
            if not report.total_cards or report.completion_rate < completion_threshold:
                continue
            outcome = ArchiveOutcome(project.id, project.name, report.completion_rate, report.total_cards, False)
            if dry_run:
                outcome.detail = "would archive"
                outcomes.append(outcome)
                continue
            try:
                self.remote.archive_project(project.id)
            except RemoteFailure as exc:
                logger.warning("archive of %s failed: %s", project.name, exc)
                outcome.detail = str(exc)
                outcomes.append(outcome)
                continue
            self.local.set_project_status(project.id, "archived")
            outcome.archived = True
            outcome.detail = f"{report.completion_rate}% complete"
            outcomes.append(outcome)

        logger.info("archive sweep: %d of %d project(s) archived", sum(o.archived for o in outcomes), len(outcomes))
        return outcomes

    def analyze_portfolio(self, project_ids: Iterable[int] | None = None) -> PortfolioReport:
        """Health of the given projects, or of every active indexed project, added together."""
        if project_ids is None:
            project_ids = [p.id for p in self.local.index.projects.values() if p.is_active]
        portfolio = PortfolioReport()
        for project_id in project_ids:
            try:
                report = self.analyze_project(project_id)
            except (NotFound, RemoteFailure) as exc:
                logger.warning("portfolio skipped project %s: %s", project_id, exc)
                portfolio.skipped.append(project_id)
                continue
            portfolio.projects.append(report)
            portfolio.total_cards += report.total_cards
            portfolio.total_overdue += len(report.overdue)
            for name, count in report.by_assignee.items():
                portfolio.by_assignee[name] = portfolio.by_assignee.get(name, 0) + count
        return portfolio
