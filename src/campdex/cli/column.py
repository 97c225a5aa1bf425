"""Handlers for 'campdex column' commands."""

from campdex.cli._common import find_project, load_index_or_die, make_discoverer, output_json, remote_or_die
from campdex.models import Column


def _print_columns(columns: list[Column], counts: dict[int, int] | None = None) -> None:
    for c in columns:
        suffix = ""
        if counts is not None:
            n = counts.get(c.id, 0)
            suffix = f"  {n} {'card' if n == 1 else 'cards'}"
        print(f"{c.id}  {c.emoji} {c.title:<24} {c.type.value}{suffix}")


def column_list(args) -> int:
    """List a project's indexed columns with card counts."""
    local = load_index_or_die(args.repo, args.json)
    project = find_project(local, args.project, args.json)
    columns = local.columns_for(project.id)
    counts: dict[int, int] = {}
    for card in local.cards_for(project.id):
        counts[card.column_id] = counts.get(card.column_id, 0) + 1

    if args.json:
        output_json([{**c.to_dict(), "cards": counts.get(c.id, 0)} for c in columns])
        return 0

    if not columns:
        print(f"No columns indexed for {project.name}")
        return 0
    _print_columns(columns, counts)
    return 0


def column_discover(args) -> int:
    """Scan the remote for a project's columns without touching the index."""
    local = load_index_or_die(args.repo, args.json)
    project = find_project(local, args.project, args.json)
    remote, settings = remote_or_die(args.repo, args.json)
    columns = make_discoverer(remote, settings).discover(project)

    if args.json:
        output_json([c.to_dict() for c in columns])
        return 0

    if not project.has_board:
        print(f"{project.name} has no board")
        return 0
    print(f"{project.name}: {len(columns)} columns (scanned {project.board_id}..{project.board_id + settings.scan_width})")
    _print_columns(columns)
    return 0
