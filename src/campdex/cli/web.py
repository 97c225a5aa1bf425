"""Handler for 'campdex web'."""

import shutil
import sys
from pathlib import Path

from textual_serve.server import Server


def web(args) -> int:
    """Serve the index browser over HTTP."""
    repo_path = str(Path(args.repo).resolve())

    campdex = shutil.which("campdex")
    if campdex is None:
        print("error: campdex not found on PATH", file=sys.stderr)
        return 1

    server = Server(
        f"{campdex} {repo_path}",
        host=args.host,
        port=args.port,
        title="campdex",
    )

    print(f"serving {repo_path} at http://{args.host}:{args.port}")
    server.serve()
    return 0
