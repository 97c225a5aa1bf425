"""Handler for 'campdex init'."""

from pathlib import Path

from campdex.cli._common import error, output_json
from campdex.config import init_repo, is_git_repo, write_config_key
from campdex.models import Index
from campdex.store import GitSnapshotStore


def init_index(args) -> int:
    """Create the index repository and an empty index branch."""
    repo_path = Path(args.repo).resolve()

    if not is_git_repo(repo_path):
        init_repo(repo_path)

    if args.account_id:
        try:
            write_config_key(repo_path, "account-id", args.account_id)
        except (KeyError, ValueError) as e:
            error(str(e), args.json)

    store = GitSnapshotStore(repo_path)
    created = store.tip() is None
    if created:
        store.commit(Index(), "Initialize campdex index")

    if args.json:
        output_json({"repo_path": str(repo_path), "branch": store.branch, "created": created})
    elif created:
        print(f"Initialized campdex index at {repo_path}")
        print(f"Branch: {store.branch}")
    else:
        print(f"Index already initialized at {repo_path}")

    return 0
