"""JSON schema validation helpers for API descriptions."""
from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List, Mapping, Tuple

from jsonschema import Draft202012Validator
from referencing import Registry, Resource

_SCHEMA_PACKAGE = "emmygen.api.schemas"


@lru_cache(maxsize=None)
def _schema_contents(name: str) -> Dict[str, Any]:
    with resources.files(_SCHEMA_PACKAGE).joinpath(name).open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=1)
def _registry() -> Registry:
    registry = Registry()
    package = resources.files(_SCHEMA_PACKAGE)
    for entry in sorted(package.iterdir(), key=lambda item: item.name):
        if entry.name.endswith(".json"):
            contents = _schema_contents(entry.name)
            schema_id = contents.get("$id")
            if schema_id:
                registry = registry.with_resource(schema_id, Resource.from_contents(contents))
    return registry


@lru_cache(maxsize=None)
def _load_schema(name: str) -> Draft202012Validator:
    schema = _schema_contents(name)
    return Draft202012Validator(schema, registry=_registry())


def _error_location(path: Any) -> str:
    parts = [str(part) for part in path]
    return "/" + "/".join(parts) if parts else "/"


def validate_payload(schema_name: str, payload: Mapping[str, Any]) -> Tuple[bool, List[str]]:
    """Validate *payload* and return ``(ok, messages)`` ordered by JSON path."""

    validator = _load_schema(schema_name)
    errors = sorted(
        validator.iter_errors(payload),
        key=lambda error: ([str(part) for part in error.absolute_path], error.message),
    )
    messages: List[str] = [
        f"{_error_location(error.absolute_path)}: {error.message}" for error in errors
    ]
    return not messages, messages


__all__ = ["validate_payload"]
