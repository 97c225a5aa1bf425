"""Configuration stored in the index repository's git config."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

SECTION = "campdex"
TOKEN_ENV = "CAMPDEX_TOKEN"

CAMPDEX_DEFAULTS: dict[str, Any] = {
    "account-id": "",
    "api-base": "https://3.basecampapi.com",
    "app-base": "https://3.basecamp.com",
    "concurrency": 8,
    "scan-width": 30,
    "page-size": 15,
    "timeout": 30,
    "user-agent": "campdex",
}


def _python_key(git_key: str) -> str:
    """Convert git-style key (hyphenated) to Python-style (underscored)."""
    return git_key.replace("-", "_")


def _git_key(python_key: str) -> str:
    """Convert Python-style key (underscored) to git-style (hyphenated)."""
    return python_key.replace("_", "-")


def _coerce(git_key: str, raw: str) -> Any:
    """Type-coerce a value using the type of its default."""
    default = CAMPDEX_DEFAULTS.get(git_key)
    if isinstance(default, bool):
        return raw.lower() in ("true", "yes", "1")
    if isinstance(default, int):
        return int(raw)
    return raw


@dataclass
class Settings:
    """Typed view of the [campdex] config section."""

    account_id: str = ""
    api_base: str = "https://3.basecampapi.com"
    app_base: str = "https://3.basecamp.com"
    concurrency: int = 8
    scan_width: int = 30
    page_size: int = 15
    timeout: int = 30
    user_agent: str = "campdex"
    token: str = ""


def is_git_repo(path: str | Path) -> bool:
    """Check if path is inside a git repository."""
    try:
        Repo(path)
        return True
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False


def init_repo(path: str | Path) -> Repo:
    """Initialize a new git repository at path."""
    Path(path).mkdir(parents=True, exist_ok=True)
    return Repo.init(path)


def read_config(repo_path: str | Path) -> dict[str, Any]:
    """Read the [campdex] section as {python_key: value}, defaults merged in."""
    reader = Repo(repo_path).config_reader()
    result: dict[str, Any] = {}
    if reader.has_section(SECTION):
        for git_k, raw in reader.items(SECTION):
            result[_python_key(git_k)] = _coerce(git_k, raw)
    for git_k, default in CAMPDEX_DEFAULTS.items():
        result.setdefault(_python_key(git_k), default)
    return result


def write_config_key(repo_path: str | Path, key: str, value: Any) -> None:
    """Write one key to the repository's git config. key may use either style."""
    git_k = _git_key(key)
    if git_k not in CAMPDEX_DEFAULTS:
        raise KeyError(f"Unknown setting: {key}")
    # Validate before writing
    _coerce(git_k, str(value))
    writer = Repo(repo_path).config_writer("repository")
    try:
        if isinstance(value, bool):
            writer.set_value(SECTION, git_k, str(value).lower())
        else:
            writer.set_value(SECTION, git_k, str(value))
    finally:
        writer.release()


def load_settings(repo_path: str | Path) -> Settings:
    """Read settings from git config and the token from the environment."""
    values = read_config(repo_path)
    known = {k: v for k, v in values.items() if k in Settings.__dataclass_fields__}
    return Settings(**known, token=os.environ.get(TOKEN_ENV, ""))
