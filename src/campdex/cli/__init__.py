"""CLI argument parser and dispatch for campdex."""

import argparse

from campdex.automation import Schedule, WorkflowKind
from campdex.cli.card import card_add, card_move, card_patch
from campdex.cli.column import column_discover, column_list
from campdex.cli.config import config
from campdex.cli.index import (
    index_build,
    index_clear,
    index_export,
    index_history,
    index_search,
    index_stats,
    index_summary,
)
from campdex.cli.init import init_index
from campdex.cli.project import project_find, project_list
from campdex.cli.web import web
from campdex.cli.workflow import (
    workflow_analyze,
    workflow_archive,
    workflow_portfolio,
    workflow_recurring,
    workflow_run,
    workflow_suite,
)
from campdex.index import EXPORT_KINDS, SEARCH_TYPES
from campdex.models import ProjectStatus


def build_parser() -> argparse.ArgumentParser:
    """Build the full CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--repo", default=".", help="Path to the index repository (default: .)")
    common.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    parser = argparse.ArgumentParser(
        prog="campdex",
        description="Local index and automation for kanban projects",
        parents=[common],
    )

    nouns = parser.add_subparsers(dest="noun")

    # --- init ---
    init_p = nouns.add_parser("init", help="Create the index repository", parents=[common])
    init_p.add_argument("--account-id", dest="account_id", help="Remote account id")
    init_p.set_defaults(func=init_index)

    # --- config ---
    config_p = nouns.add_parser("config", help="Show or set configuration", parents=[common])
    config_p.add_argument("key", nargs="?", help="Setting name")
    config_p.add_argument("value", nargs="?", help="New value")
    config_p.set_defaults(func=config)

    # --- index ---
    index_p = nouns.add_parser("index", help="Local index operations", parents=[common])
    index_verbs = index_p.add_subparsers(dest="verb")

    build_p = index_verbs.add_parser("build", help="Build or rebuild the index", parents=[common])
    build_p.set_defaults(func=index_build)

    stats_p = index_verbs.add_parser("stats", help="Show index statistics", parents=[common])
    stats_p.set_defaults(func=index_stats)

    search_p = index_verbs.add_parser("search", help="Search the index", parents=[common])
    search_p.add_argument("query", help="Search text (empty string matches all)")
    search_p.add_argument("--type", default="all", choices=SEARCH_TYPES, help="Entity type (default: all)")
    search_p.add_argument("--project", type=int, help="Only cards of this project id")
    search_p.add_argument("--assignee", help="Only cards assigned to this person (full name)")
    state = search_p.add_mutually_exclusive_group()
    state.add_argument("--completed", dest="completed", action="store_const", const=True, help="Only completed cards")
    state.add_argument("--open", dest="completed", action="store_const", const=False, help="Only open cards")
    search_p.set_defaults(func=index_search, completed=None)

    export_p = index_verbs.add_parser("export", help="Export the index as CSV", parents=[common])
    export_p.add_argument("--type", default="cards", choices=EXPORT_KINDS, help="What to export (default: cards)")
    export_p.add_argument("--output", help="Output file path")
    export_p.set_defaults(func=index_export)

    clear_p = index_verbs.add_parser("clear", help="Empty the index", parents=[common])
    clear_p.set_defaults(func=index_clear)

    summary_p = index_verbs.add_parser("summary", help="Summarise one project", parents=[common])
    summary_p.add_argument("project", help="Project id or name")
    summary_p.set_defaults(func=index_summary)

    history_p = index_verbs.add_parser("history", help="List index snapshots", parents=[common])
    history_p.add_argument("--limit", type=int, default=20, help="Number of snapshots (default: 20)")
    history_p.set_defaults(func=index_history)

    # index with no verb = stats
    index_p.set_defaults(func=index_stats)

    # --- project ---
    project_p = nouns.add_parser("project", help="Project lookup", parents=[common])
    project_verbs = project_p.add_subparsers(dest="verb")

    find_p = project_verbs.add_parser("find", help="Fuzzy-find projects by name", parents=[common])
    find_p.add_argument("query", nargs="+", help="Project name, acronym or fragment")
    find_p.add_argument("--limit", type=int, default=10, help="Maximum results (default: 10)")
    find_p.set_defaults(func=project_find)

    plist_p = project_verbs.add_parser("list", help="List indexed projects", parents=[common])
    plist_p.add_argument("--status", choices=[s.value for s in ProjectStatus], help="Filter by status")
    plist_p.set_defaults(func=project_list)

    # project with no verb = list
    project_p.set_defaults(func=project_list, status=None)

    # --- column ---
    col_p = nouns.add_parser("column", help="Board columns", parents=[common])
    col_verbs = col_p.add_subparsers(dest="verb")

    col_list_p = col_verbs.add_parser("list", help="List indexed columns", parents=[common])
    col_list_p.add_argument("project", help="Project id or name")
    col_list_p.set_defaults(func=column_list)

    col_discover_p = col_verbs.add_parser("discover", help="Scan the remote for columns", parents=[common])
    col_discover_p.add_argument("project", help="Project id or name")
    col_discover_p.set_defaults(func=column_discover)

    # --- card ---
    card_p = nouns.add_parser("card", help="Card operations", parents=[common])
    card_verbs = card_p.add_subparsers(dest="verb")

    patch_p = card_verbs.add_parser("patch", help="Merge fields into an indexed card", parents=[common])
    patch_p.add_argument("project", help="Project id or name")
    patch_p.add_argument("card", help="Card id")
    patch_p.add_argument("--field", action="append", metavar="KEY=VALUE", help="Field to set (repeatable)")
    patch_p.set_defaults(func=card_patch)

    add_p = card_verbs.add_parser("add", help="Create a card", parents=[common])
    add_p.add_argument("project", help="Project id or name")
    add_p.add_argument("column", help="Column title or fragment")
    add_p.add_argument("title", help="Card title")
    add_p.add_argument("--content", default="", help="Card body text")
    add_p.add_argument("--due", help="Due date (YYYY-MM-DD)")
    add_p.set_defaults(func=card_add)

    move_p = card_verbs.add_parser("move", help="Move cards to a column", parents=[common])
    move_p.add_argument("project", help="Project id or name")
    move_p.add_argument("cards", nargs="+", help="Card ids")
    move_p.add_argument("--column", required=True, help="Target column id")
    move_p.set_defaults(func=card_move)

    # --- workflow ---
    wf_p = nouns.add_parser("workflow", help="Automation workflows", parents=[common])
    wf_verbs = wf_p.add_subparsers(dest="verb")

    run_p = wf_verbs.add_parser("run", help="Run one workflow", parents=[common])
    run_p.add_argument("name", help=f"Workflow: {', '.join(k.value for k in WorkflowKind)}")
    run_p.add_argument("project", help="Project id or name")
    run_p.add_argument("--threshold", type=int, default=3, help="escalate_overdue: days overdue (default: 3)")
    run_p.add_argument("--escalate-to", dest="escalate_to", help="escalate_overdue: role to add (default: lead)")
    run_p.add_argument("--max-cards", dest="max_cards", type=int, default=5, help="balance_workload: cap (default: 5)")
    run_p.add_argument("--rule", action="append", metavar="KEYWORD=ROLE", help="auto_assign: extra rule (repeatable)")
    run_p.set_defaults(func=workflow_run)

    suite_p = wf_verbs.add_parser("suite", help="Run the standard workflows", parents=[common])
    suite_p.add_argument("project", help="Project id or name")
    suite_p.add_argument("--no-assign", action="store_true", help="Skip auto_assign")
    suite_p.add_argument("--no-move", action="store_true", help="Skip move_completed")
    suite_p.add_argument("--no-escalate", action="store_true", help="Skip escalate_overdue")
    suite_p.add_argument("--balance", action="store_true", help="Also run balance_workload")
    suite_p.set_defaults(func=workflow_suite)

    analyze_p = wf_verbs.add_parser("analyze", help="Project health report", parents=[common])
    analyze_p.add_argument("project", help="Project id or name")
    analyze_p.set_defaults(func=workflow_analyze)

    recurring_p = wf_verbs.add_parser("recurring", help="Create the next card of a repeating task", parents=[common])
    recurring_p.add_argument("project", help="Project id or name")
    recurring_p.add_argument("title", help="Task title; the current month is appended")
    recurring_p.add_argument(
        "--schedule", choices=[s.value for s in Schedule], default="weekly", help="Due date step (default: weekly)"
    )
    recurring_p.add_argument("--column", default="todo", help="Column title or type (default: todo)")
    recurring_p.add_argument("--content", default="", help="Card body")
    recurring_p.add_argument("--assign-role", dest="assign_role", help="Assign the first person with this role")
    recurring_p.set_defaults(func=workflow_recurring)

    archive_p = wf_verbs.add_parser("archive", help="Archive projects that are nearly done", parents=[common])
    archive_p.add_argument(
        "--threshold", type=float, default=95.0, help="Minimum completion percentage (default: 95)"
    )
    archive_p.add_argument("--dry-run", dest="dry_run", action="store_true", help="List projects without archiving")
    archive_p.set_defaults(func=workflow_archive)

    portfolio_p = wf_verbs.add_parser("portfolio", help="Health report across projects", parents=[common])
    portfolio_p.add_argument("projects", nargs="*", help="Project ids or names (default: all active)")
    portfolio_p.set_defaults(func=workflow_portfolio)

    # --- web ---
    web_p = nouns.add_parser("web", help="Serve the index browser in a web browser", parents=[common])
    web_p.add_argument("--host", default="localhost", help="Bind address (default: localhost)")
    web_p.add_argument("--port", type=int, default=8617, help="Port (default: 8617)")
    web_p.set_defaults(func=web)

    return parser
