"""Rank projects and columns against a free-text query."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from campdex.ids import is_numeric_id
from campdex.matcher import MatchLabel, score
from campdex.models import Column, Project

logger = logging.getLogger(__name__)


@dataclass
class Match:
    """A ranked candidate."""

    project: Project
    score: int
    label: MatchLabel


def resolve(query: str, projects: Iterable[Project]) -> list[Match]:
    """Score every project and return the non-zero ones, best first.

    Ties keep the input order. No match is an empty list, not an error.
    """
    matches = []
    for project in projects:
        result = score(query, project.name, project.description)
        if result.score > 0:
            matches.append(Match(project=project, score=result.score, label=result.label))
    matches.sort(key=lambda m: m.score, reverse=True)
    return matches


def resolve_one(query: str, projects: Iterable[Project]) -> Project | None:
    """Resolve a query to a single project: by id if numeric, else best match."""
    projects = list(projects)
    if is_numeric_id(query):
        wanted = int(query)
        for project in projects:
            if project.id == wanted:
                return project
        logger.warning("no project with id %s", wanted)
        return None

    matches = resolve(query, projects)
    if not matches:
        logger.warning("no project matches %r", query)
        return None
    best = matches[0]
    logger.info(
        "resolved %r to %s (score %d, %s)",
        query,
        best.project.name,
        best.score,
        best.label.value,
    )
    return best.project


def find_column(columns: Iterable[Column], name: str) -> Column | None:
    """First column whose title contains name, case-insensitively."""
    needle = name.strip().lower()
    if not needle:
        return None
    for column in columns:
        if needle in column.title.lower():
            return column
    return None
