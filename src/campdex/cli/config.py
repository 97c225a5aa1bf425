"""Handler for 'campdex config'."""

from campdex.cli._common import error, output_json, output_result, repo_path_or_die
from campdex.config import CAMPDEX_DEFAULTS, read_config, write_config_key


def config(args) -> int:
    """Show all settings, show one, or set one."""
    repo_path = repo_path_or_die(args.repo, args.json)

    if args.key is None:
        values = read_config(repo_path)
        if args.json:
            output_json({k: values[k.replace("-", "_")] for k in CAMPDEX_DEFAULTS})
        else:
            for key in CAMPDEX_DEFAULTS:
                print(f"{key} = {values[key.replace('-', '_')]}")
        return 0

    key = args.key.replace("_", "-")
    if key not in CAMPDEX_DEFAULTS:
        error(f"Unknown setting '{args.key}'. Known: {', '.join(CAMPDEX_DEFAULTS)}", args.json)

    if args.value is None:
        value = read_config(repo_path)[key.replace("-", "_")]
        output_result({key: value}, str(value), args.json)
        return 0

    try:
        write_config_key(repo_path, key, args.value)
    except ValueError as e:
        error(f"Invalid value for {key}: {e}", args.json)
    output_result({key: read_config(repo_path)[key.replace("-", "_")]}, f"{key} = {args.value}", args.json)
    return 0
