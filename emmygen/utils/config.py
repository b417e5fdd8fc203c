"""Runtime configuration for the annotation generator."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Final, Iterable, Mapping, Tuple


def _parse_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    return value in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, *, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_list(value: str | None) -> Tuple[str, ...]:
    if not value:
        return ()
    items = (" ".join(part.split()) for part in value.split(","))
    return tuple(item for item in items if item)


def _env_bool(name: str, *, default: bool = False) -> bool:
    return _parse_bool(os.getenv(name), default=default)


def _env_int(name: str, *, default: int) -> int:
    return _parse_int(os.getenv(name), default=default)


def _env_str(name: str, *, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value or default


OUTPUT_DIR: Final[Path] = Path(_env_str("EMMYGEN_OUTPUT_DIR", default="api")).expanduser()
NAMESPACE: Final[str] = _env_str("EMMYGEN_NAMESPACE", default="love")
WIKI_URL: Final[str] = _env_str("EMMYGEN_WIKI_URL", default="https://love2d.org/wiki/")
MAX_WORKERS: Final[int] = max(1, _env_int("EMMYGEN_MAX_WORKERS", default=4))
STRICT_TYPES: Final[bool] = _env_bool("EMMYGEN_STRICT", default=False)

# Lua builtin type names; never namespace-qualified.
BUILTIN_TYPES: Final[frozenset[str]] = frozenset(
    {
        "any",
        "boolean",
        "function",
        "nil",
        "number",
        "string",
        "table",
        "thread",
        "userdata",
    }
)

# Primitive names made of several words. They must never be emitted truncated.
DESCRIPTIVE_PRIMITIVES: Final[Tuple[str, ...]] = ("light userdata",) + tuple(
    name
    for name in _parse_list(os.getenv("EMMYGEN_DESCRIPTIVE_TYPES"))
    if name != "light userdata"
)


def fragment_table(names: Iterable[str] = DESCRIPTIVE_PRIMITIVES) -> Mapping[str, str]:
    """Map every proper leading word-prefix of *names* to its full name.

    The first descriptive primitive claiming a prefix keeps it, so the table
    only depends on the order of *names*.
    """

    table: Dict[str, str] = {}
    for name in names:
        words = name.split()
        for size in range(1, len(words)):
            table.setdefault(" ".join(words[:size]), name)
    return table


__all__ = [
    "BUILTIN_TYPES",
    "DESCRIPTIVE_PRIMITIVES",
    "MAX_WORKERS",
    "NAMESPACE",
    "OUTPUT_DIR",
    "STRICT_TYPES",
    "WIKI_URL",
    "fragment_table",
]
