"""Handlers for 'campdex project' commands."""

from campdex.cli._common import load_index_or_die, output_json
from campdex.models import ProjectStatus
from campdex.resolver import resolve


def project_find(args) -> int:
    """Rank indexed projects against a fuzzy query."""
    local = load_index_or_die(args.repo, args.json)
    query = " ".join(args.query)
    matches = resolve(query, local.index.projects.values())[: args.limit]

    if args.json:
        output_json(
            [
                {"id": m.project.id, "name": m.project.name, "score": m.score, "label": m.label.value}
                for m in matches
            ]
        )
        return 0

    if not matches:
        print(f"No projects match '{query}'")
        return 0
    for m in matches:
        print(f"{m.score:>4}  {m.label.value:<8} {m.project.id}  {m.project.name}")
    return 0


def project_list(args) -> int:
    local = load_index_or_die(args.repo, args.json)
    projects = sorted(local.index.projects.values(), key=lambda p: p.name.lower())
    if args.status:
        status = ProjectStatus(args.status)
        projects = [p for p in projects if p.status is status]

    if args.json:
        output_json([p.to_dict() for p in projects])
        return 0

    for p in projects:
        board = "" if p.has_board else "  (no board)"
        print(f"{p.id}  {p.name}  [{p.status.value}]{board}")
    return 0
