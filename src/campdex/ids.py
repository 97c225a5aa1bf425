"""Remote identifier parsing and composite keys."""

from campdex.errors import InvalidInput


def is_numeric_id(s: str) -> bool:
    """True if s looks like a remote identifier ("123", " 42 ")."""
    return s.strip().isdigit()


def parse_id(s: str | int, what: str = "id") -> int:
    """Parse a remote identifier, rejecting anything that isn't a positive integer.

    "0042" → 42, 7 → 7, "abc" → InvalidInput
    """
    if isinstance(s, bool):
        raise InvalidInput(f"Invalid {what}: {s!r}")
    if isinstance(s, int):
        value = s
    else:
        text = str(s).strip()
        if not text.isdigit():
            raise InvalidInput(f"Invalid {what}: {s!r}")
        value = int(text)
    if value <= 0:
        raise InvalidInput(f"Invalid {what}: {s!r}")
    return value


def split_key(key: str) -> tuple[int, int]:
    """Split a composite "{project_id}_{item_id}" key.

    "12_345" → (12, 345)
    """
    project, sep, item = key.partition("_")
    if not sep:
        raise InvalidInput(f"Invalid key: {key!r}")
    return parse_id(project, "project id"), parse_id(item, "item id")
