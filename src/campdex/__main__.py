"""Entry point for campdex CLI."""

import sys
from pathlib import Path

NOUNS = {"init", "config", "index", "project", "column", "card", "workflow", "web"}


def main():
    # No subcommand or non-noun argument = TUI mode
    if len(sys.argv) < 2 or (sys.argv[1] not in NOUNS and not sys.argv[1].startswith("-")):
        from campdex.ui import CampdexApp

        path = sys.argv[1] if len(sys.argv) > 1 and not sys.argv[1].startswith("-") else "."
        app = CampdexApp(Path(path).resolve())
        app.run()
        return

    from campdex.cli import build_parser
    from campdex.cli._common import configure_logging, error
    from campdex.errors import CampdexError

    parser = build_parser()
    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    configure_logging(args.verbose)
    try:
        code = args.func(args)
    except CampdexError as e:
        error(str(e), args.json)
    sys.exit(code)


if __name__ == "__main__":
    main()
