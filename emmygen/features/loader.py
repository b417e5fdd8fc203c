"""Load an API description into the typed model."""
from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, List, Optional, Tuple, cast
from urllib.parse import urlparse

import httpx

from ..api.validators import validate_payload
from ..model.entities import (
    VARARGS_NAME,
    ClassType,
    EnumConstant,
    EnumType,
    Function,
    Module,
    Param,
    ReturnSpec,
    TypeIndex,
    Variant,
)
from ..model.raw import RawArgument, RawClass, RawEnum, RawFunction, RawModule
from ..utils.errors import MalformedModelError
from ..utils.logging import RunContext

_SCHEMA = "module.v1.json"
DEFAULT_TIMEOUT = 30.0


def read_description(
    source: str,
    *,
    transport: Optional[httpx.BaseTransport] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Mapping[str, Any]:
    """Load a JSON description from an HTTP(S) URL or filesystem path."""

    parsed = urlparse(source)
    if parsed.scheme in {"http", "https"}:
        with httpx.Client(timeout=timeout, transport=transport, follow_redirects=True) as client:
            response = client.get(source)
            response.raise_for_status()
            return response.json()
    if parsed.scheme and parsed.scheme != "file" and len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme}")
    path = parsed.path if parsed.scheme == "file" else source
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def _split_names(raw_name: str) -> List[str]:
    """Expand ``"x, y"`` into ``["x", "y"]``; ``...`` is never split."""

    if raw_name == VARARGS_NAME or "," not in raw_name:
        return [raw_name.strip()]
    return [part.strip() for part in raw_name.split(",")]


def _table_source(fields: Sequence[RawArgument]) -> str:
    """Render inline table fields as a raw ``{name:type, ...}`` type string."""

    entries = []
    for field in fields:
        name = field["name"]
        marker = "?" if field.get("default") is not None else ""
        if field.get("table"):
            field_type = _table_source(field["table"])
        else:
            field_type = field["type"]
        entries.append(f"{name}{marker}:{field_type}")
    return "{" + ", ".join(entries) + "}"


def _raw_type(argument: RawArgument) -> str:
    if argument.get("table"):
        return _table_source(argument["table"])
    return str(argument["type"])


def _load_params(
    arguments: Sequence[RawArgument], where: str, problems: List[str]
) -> Tuple[Param, ...]:
    params: List[Param] = []
    for index, argument in enumerate(arguments):
        default: Optional[str] = argument.get("default")
        optional = default is not None
        declared = argument.get("optional")
        if declared is not None and bool(declared) != optional:
            problems.append(
                f"{where}/arguments/{index}: optional={declared!r} disagrees with "
                f"default {'present' if optional else 'absent'}"
            )
        raw_type = _raw_type(argument)
        for name in _split_names(str(argument["name"])):
            if not name:
                problems.append(f"{where}/arguments/{index}: empty parameter name")
                continue
            params.append(
                Param(
                    name=name,
                    raw_type=raw_type,
                    description=argument.get("description", ""),
                    default=default,
                    optional=optional,
                )
            )
    return tuple(params)


def _load_returns(returns: Sequence[RawArgument]) -> Tuple[ReturnSpec, ...]:
    return tuple(
        ReturnSpec(
            raw_type=_raw_type(ret),
            description=ret.get("description", ""),
            name=ret.get("name", ""),
        )
        for ret in returns
    )


def _load_function(
    raw: RawFunction, owner: str, *, is_method: bool, where: str, problems: List[str]
) -> Function:
    variants = []
    for index, variant in enumerate(raw["variants"]):
        variant_where = f"{where}/variants/{index}"
        variants.append(
            Variant(
                params=_load_params(variant.get("arguments", ()), variant_where, problems),
                returns=_load_returns(variant.get("returns", ())),
                description=variant.get("description"),
            )
        )
    return Function(
        name=raw["name"],
        owner=owner,
        variants=tuple(variants),
        description=raw.get("description", ""),
        is_method=is_method,
    )


def _load_class(raw: RawClass, where: str, problems: List[str]) -> ClassType:
    name = raw["name"]
    methods_raw = list(raw.get("functions", ())) + list(raw.get("methods", ()))
    methods = tuple(
        _load_function(fn, name, is_method=True, where=f"{where}/functions/{index}", problems=problems)
        for index, fn in enumerate(methods_raw)
    )
    return ClassType(
        name=name,
        description=raw.get("description", ""),
        supertypes=tuple(raw.get("supertypes", ())),
        methods=methods,
    )


def _load_enum(raw: RawEnum) -> EnumType:
    return EnumType(
        name=raw["name"],
        description=raw.get("description", ""),
        constants=tuple(
            EnumConstant(value=str(const["name"]), description=const.get("description", ""))
            for const in raw["constants"]
        ),
    )


def _load_module(raw: RawModule, name: str, where: str, problems: List[str]) -> Module:
    return Module(
        name=name,
        description=raw.get("description", ""),
        classes=tuple(
            _load_class(cls, f"{where}/types/{index}", problems)
            for index, cls in enumerate(raw.get("types", ()))
        ),
        functions=tuple(
            _load_function(fn, name, is_method=False, where=f"{where}/functions/{index}", problems=problems)
            for index, fn in enumerate(raw.get("functions", ()))
        ),
        enums=tuple(_load_enum(enum) for enum in raw.get("enums", ())),
        submodules=tuple(
            _load_module(sub, f"{name}.{sub['name']}", f"{where}/modules/{index}", problems)
            for index, sub in enumerate(raw.get("modules", ()))
        ),
    )


def load_model(description: Mapping[str, Any], context: RunContext) -> Module:
    """Validate *description* and build the root :class:`Module`.

    Every shape problem is collected before raising, so one
    :class:`MalformedModelError` lists all of them.
    """

    if not isinstance(description, Mapping):
        raise MalformedModelError(["/: description must be a JSON object"])
    valid, problems = validate_payload(_SCHEMA, description)
    if not valid:
        raise MalformedModelError(problems)

    semantic: List[str] = []
    root = _load_module(cast(RawModule, description), context.namespace, "", semantic)
    if semantic:
        raise MalformedModelError(semantic)
    context.logger.debug(
        "model.loaded",
        extra=context.extra(modules=sum(1 for _ in root.walk())),
    )
    return root


def build_type_index(root: Module, namespace: str) -> TypeIndex:
    """Collect every class and enum name defined anywhere under *root*."""

    classes = set()
    enums = set()
    for module in root.walk():
        classes.update(cls.name for cls in module.classes)
        enums.update(enum.name for enum in module.enums)
    return TypeIndex(namespace=namespace, classes=frozenset(classes), enums=frozenset(enums))


__all__ = ["build_type_index", "load_model", "read_description"]
