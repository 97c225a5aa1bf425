"""Handlers for 'campdex index' commands."""

import signal
import threading

from campdex.cli._common import (
    error,
    find_project,
    format_counts,
    load_index_or_die,
    make_discoverer,
    output_json,
    output_result,
    remote_or_die,
)
from campdex.errors import BuildCancelled
from campdex.indexer import IndexBuilder


def index_build(args) -> int:
    """Scan the remote and commit a fresh index."""
    local = load_index_or_die(args.repo, args.json)
    remote, settings = remote_or_die(args.repo, args.json)
    builder = IndexBuilder(
        remote,
        local,
        discoverer=make_discoverer(remote, settings),
        concurrency=settings.concurrency,
        page_size=settings.page_size,
        account_id=settings.account_id,
        app_base=settings.app_base,
    )
    progress = None if args.json else (lambda message: print(f"  {message}"))

    # SIGINT/SIGTERM stop the build after the current project; the old index stays.
    cancel = threading.Event()

    def _stop(signum, frame):
        cancel.set()

    previous = {sig: signal.signal(sig, _stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        report = builder.build_sync(cancel=cancel, progress=progress)
    except BuildCancelled as e:
        error(str(e), args.json)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    meta = report.meta
    data = {
        "commit": report.commit,
        "meta": meta.to_dict(),
        "failures": [vars(f) for f in report.failures],
    }
    lines = [
        "Index built",
        f"  Projects: {meta.total_projects}",
        f"  Columns:  {meta.total_columns}",
        f"  Cards:    {meta.total_cards}",
        f"  People:   {meta.total_people}",
        f"  Time:     {meta.elapsed_seconds:.1f}s",
    ]
    if report.failures:
        lines.append(f"  Skipped columns: {len(report.failures)}")
    output_result(data, "\n".join(lines), args.json)
    return 0


def index_stats(args) -> int:
    local = load_index_or_die(args.repo, args.json)
    stats = local.statistics()

    if args.json:
        data = stats.to_dict()
        data["by_type"] = local.stats_by_type()
        output_json(data)
        return 0

    if not local.is_built:
        print("Index has not been built yet (run 'campdex index build')")
        return 0

    print(f"Projects: {stats.total_projects} ({stats.active_projects} active)")
    print(f"People:   {stats.total_people}")
    print(f"Cards:    {stats.total_cards}")
    print(f"  Open:      {stats.open_cards}")
    print(f"  Completed: {stats.completed_cards}")
    print(f"  Overdue:   {stats.overdue_cards}")
    if stats.index_age is not None:
        hours = int(stats.index_age.total_seconds() // 3600)
        print(f"Index age: {hours // 24} days, {hours % 24} hours")
    if stats.by_assignee:
        print("Top assignees:")
        for line in format_counts(stats.by_assignee, limit=5):
            print(line)
    by_type = {k: v for k, v in local.stats_by_type().items() if k != "total" and v}
    if by_type:
        print("By column type:")
        for line in format_counts(by_type):
            print(line)
    return 0


def index_search(args) -> int:
    local = load_index_or_die(args.repo, args.json)
    results = local.search(
        args.query,
        type=args.type,
        project_id=args.project,
        assignee=args.assignee,
        completed=args.completed,
    )

    if args.json:
        output_json(results.to_dict())
        return 0

    if not results.total:
        print(f"No results for '{args.query}'")
        return 0
    if results.projects:
        print(f"Projects ({len(results.projects)}):")
        for p in results.projects:
            print(f"  {p.id}  {p.name}")
    if results.cards:
        print(f"Cards ({len(results.cards)}):")
        for c in results.cards:
            done = "x" if c.completed else " "
            print(f"  [{done}] {c.id}  {c.title}  ({c.project_name} / {c.column_title})")
    if results.people:
        print(f"People ({len(results.people)}):")
        for p in results.people:
            print(f"  {p.id}  {p.name} <{p.email}>")
    return 0


def index_export(args) -> int:
    local = load_index_or_die(args.repo, args.json)
    path = local.export_csv(args.type, args.output)
    output_result({"path": str(path), "type": args.type}, f"Exported {args.type} to {path}", args.json)
    return 0


def index_clear(args) -> int:
    local = load_index_or_die(args.repo, args.json)
    commit = local.clear()
    output_result({"commit": commit, "cleared": True}, "Index cleared", args.json)
    return 0


def index_summary(args) -> int:
    """Show one project's columns and card tallies from the index."""
    local = load_index_or_die(args.repo, args.json)
    project = find_project(local, args.project, args.json)
    summary = local.project_summary(project.id)

    if args.json:
        output_json(summary.to_dict())
        return 0

    stats = summary.stats
    print(f"{project.name} ({project.id})")
    print(f"  {stats.total} cards: {stats.open} open, {stats.completed} completed, {stats.overdue} overdue")
    for column in summary.columns:
        print(f"  {column.emoji} {column.title:<24} {stats.by_column.get(column.title, 0)}")
    if stats.by_assignee:
        print("  Assignees:")
        for line in format_counts(stats.by_assignee, indent="    "):
            print(line)
    return 0


def index_history(args) -> int:
    local = load_index_or_die(args.repo, args.json)
    entries = local.store.history(max_count=args.limit)
    if args.json:
        output_json([{"commit": sha, "message": message} for sha, message in entries])
    else:
        for sha, message in entries:
            print(f"{sha[:8]}  {message}")
    return 0
