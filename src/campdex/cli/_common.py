"""Shared helpers for CLI command handlers."""

import json
import logging
import sys
from pathlib import Path

from campdex.automation import AutomationEngine
from campdex.columns import ColumnDiscoverer
from campdex.config import TOKEN_ENV, Settings, is_git_repo, load_settings
from campdex.ids import parse_id
from campdex.index import LocalIndex
from campdex.errors import InvalidInput
from campdex.models import Project
from campdex.remote import BasecampClient, RemoteClient
from campdex.resolver import resolve_one


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
    )


def repo_path_or_die(repo: str, json_mode: bool) -> Path:
    """Resolve the index repository path. Exit 1 if it isn't a git repo."""
    repo_path = Path(repo).resolve()
    if not is_git_repo(repo_path):
        error(f"{repo_path} is not a git repository (run 'campdex init')", json_mode)
    return repo_path


def load_index_or_die(repo: str, json_mode: bool) -> LocalIndex:
    return LocalIndex.open(repo_path_or_die(repo, json_mode))


def make_client(settings: Settings) -> RemoteClient:
    return BasecampClient(
        account_id=settings.account_id,
        token=settings.token,
        api_base=settings.api_base,
        user_agent=settings.user_agent,
        timeout=settings.timeout,
    )


def remote_or_die(repo: str, json_mode: bool) -> tuple[RemoteClient, Settings]:
    """Build the remote client from config. Exit 1 if credentials are missing."""
    settings = load_settings(repo_path_or_die(repo, json_mode))
    if not settings.account_id:
        error("account-id is not set (run 'campdex config account-id ID')", json_mode)
    if not settings.token:
        error(f"{TOKEN_ENV} is not set", json_mode)
    return make_client(settings), settings


def make_discoverer(remote: RemoteClient, settings: Settings) -> ColumnDiscoverer:
    return ColumnDiscoverer(remote, width=settings.scan_width, concurrency=settings.concurrency)


def make_engine(args) -> tuple[AutomationEngine, LocalIndex]:
    local = load_index_or_die(args.repo, args.json)
    remote, settings = remote_or_die(args.repo, args.json)
    engine = AutomationEngine(
        remote,
        local,
        discoverer=make_discoverer(remote, settings),
        account_id=settings.account_id,
        app_base=settings.app_base,
        page_size=settings.page_size,
    )
    return engine, local


def find_project(local: LocalIndex, query: str, json_mode: bool) -> Project:
    """Resolve a project by id or fuzzy name. Exit 1 if nothing matches."""
    project = resolve_one(query, local.index.projects.values())
    if project is None:
        error(f"No project matches '{query}'", json_mode)
    return project


def id_or_die(value: str, what: str, json_mode: bool) -> int:
    try:
        return parse_id(value, what)
    except InvalidInput as e:
        error(str(e), json_mode)


def output_json(data: dict | list) -> None:
    """Write JSON to stdout."""
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def output_result(data: dict, text: str, json_mode: bool) -> None:
    """Output mutation result as JSON or plain text."""
    if json_mode:
        output_json(data)
    else:
        print(text)


def error(message: str, json_mode: bool) -> None:
    """Print error to stderr and exit 1."""
    if json_mode:
        print(json.dumps({"error": message}), file=sys.stderr)
    else:
        print(f"error: {message}", file=sys.stderr)
    sys.exit(1)


def format_counts(counts: dict[str, int], limit: int | None = None, indent: str = "  ") -> list[str]:
    """Counts as aligned lines, largest first."""
    items = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    if limit is not None:
        items = items[:limit]
    width = max((len(k) for k, _ in items), default=0)
    return [f"{indent}{name or '(none)':<{width}}  {n}" for name, n in items]
