"""Render a normalized module as a LuaCATS annotation file.

Layout of one module file::

    ---@meta
    ---@namespace love

    ---<module doc>
    love.audio = {}

    --region Source
    ...class doc, ---@class, local Source = {}, methods...
    --endregion Source

    ---@alias EnumName
    ---| "value" -- description

    ...module functions...

Blocks appear in source order; only the variants of a single function are
reordered (see :mod:`emmygen.features.overloads`).
"""
from __future__ import annotations

import re
from typing import List, Optional

from ..model.entities import ClassType, EnumType, Function, Module, Param, ReturnSpec, Variant
from ..model.types import TypeExpr, Varargs
from ..utils.errors import EmissionError
from ..utils.logging import RunContext
from .normalizer import is_balanced, render_annotation
from .overloads import resolve_overloads

HEADER_MARKER = "---@meta"
NAMESPACE_MARKER = "---@namespace"
REGION_START = "--region"
REGION_END = "--endregion"

LUA_KEYWORDS = frozenset(
    {
        "and",
        "break",
        "do",
        "else",
        "elseif",
        "end",
        "false",
        "for",
        "function",
        "goto",
        "if",
        "in",
        "local",
        "nil",
        "not",
        "or",
        "repeat",
        "return",
        "then",
        "true",
        "until",
        "while",
    }
)

_LUA_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def doc_lines(text: Optional[str]) -> List[str]:
    """Prefix every line of *text* with ``---``; nothing for empty text."""

    if not text:
        return []
    return ["---" + line for line in text.replace("\r\n", "\n").split("\n")]


def single_line(text: Optional[str]) -> str:
    if not text:
        return ""
    return " ".join(part.strip() for part in text.splitlines() if part.strip())


def _doc_block(description: Optional[str], target: str, context: RunContext) -> List[str]:
    lines = doc_lines(description)
    if lines:
        lines.append("---")
    lines.append(f"---[Open in Browser]({context.wiki_url}{target})")
    lines.append("---")
    return lines


def _check_name(name: str, subject: str, what: str) -> None:
    if not _LUA_NAME.match(name) or name in LUA_KEYWORDS:
        raise EmissionError(subject, f"{what} {name!r} is not a valid Lua name")


def _check_dotted(name: str, subject: str, what: str) -> None:
    for part in name.split("."):
        _check_name(part, subject, what)


def _type_text(
    expr: Optional[TypeExpr], subject: str, what: str, *, optional: bool = False
) -> str:
    if expr is None:
        raise EmissionError(subject, f"{what} has no normalized type")
    text = render_annotation(expr, optional=optional)
    if not is_balanced(text):
        raise EmissionError(subject, f"{what} type {text!r} has unbalanced brackets")
    if "\n" in text:
        raise EmissionError(subject, f"{what} type spans several lines")
    return text


def _check_params(variant: Variant, subject: str) -> None:
    for position, param in enumerate(variant.params):
        if param.is_varargs:
            if param.name != "...":
                raise EmissionError(subject, f"varargs parameter {param.name!r} must be named '...'")
            if position != len(variant.params) - 1:
                raise EmissionError(subject, "varargs parameter must be last")
            continue
        _check_name(param.name, subject, "parameter")


def _vararg_type(param: Param, subject: str) -> str:
    expr = param.type
    if isinstance(expr, Varargs):
        expr = expr.inner
    return _type_text(expr, subject, "varargs")


def _with_description(line: str, description: str) -> str:
    return f"{line} # {description}" if description else line


def _param_lines(param: Param, subject: str) -> List[str]:
    description = single_line(param.description)
    if param.default is not None:
        description = f"{description} (Defaults to {param.default}.)".strip()
    if param.is_varargs:
        return [_with_description(f"---@vararg {_vararg_type(param, subject)}", description)]
    type_text = _type_text(param.type, subject, f"parameter {param.name!r}", optional=param.optional)
    return [_with_description(f"---@param {param.name} {type_text}", description)]


def _returns_text(returns: tuple[ReturnSpec, ...], subject: str) -> str:
    return ", ".join(
        _type_text(ret.type, subject, f"return #{position + 1}")
        for position, ret in enumerate(returns)
    )


def _overload_line(function: Function, variant: Variant) -> str:
    subject = function.qualified_name
    params: List[str] = []
    if function.is_method:
        params.append(f"self:{function.owner}")
    for param in variant.params:
        if param.is_varargs:
            params.append(f"...:{_vararg_type(param, subject)}")
        else:
            type_text = _type_text(
                param.type, subject, f"parameter {param.name!r}", optional=param.optional
            )
            params.append(f"{param.name}:{type_text}")
    returns = _returns_text(variant.returns, subject) if variant.returns else "nil"
    return f"---@overload fun({', '.join(params)}):{returns}"


def emit_function(function: Function, context: RunContext) -> List[str]:
    """Render one function or method declaration with its annotations."""

    subject = function.qualified_name
    if not function.variants:
        raise EmissionError(subject, "function has no variants")
    _check_name(function.name, subject, "function")
    _check_dotted(function.owner, subject, "owner")
    overloads = resolve_overloads(function)
    primary = overloads.primary

    lines = _doc_block(function.description, function.qualified_name, context)
    _check_params(primary, subject)
    for param in primary.params:
        lines.extend(_param_lines(param, subject))
    if primary.returns:
        lines.append(f"---@return {_returns_text(primary.returns, subject)}")
    for alternate in overloads.alternates:
        _check_params(alternate, subject)
        if alternate.description and alternate.description != function.description:
            lines.append("---")
            lines.extend(doc_lines(alternate.description))
        lines.append(_overload_line(function, alternate))

    names = ", ".join(param.name for param in primary.params)
    lines.append(f"function {function.owner}{function.call_separator}{function.name}({names}) end")
    lines.append("")
    return lines


def emit_class(cls: ClassType, context: RunContext) -> List[str]:
    _check_name(cls.name, cls.name, "class")
    lines = [f"{REGION_START} {cls.name}", ""]
    lines.extend(_doc_block(cls.description, cls.name, context))
    declaration = f"---@class {cls.name}"
    if cls.supertypes:
        declaration += " : " + ", ".join(cls.supertypes)
    lines.append(declaration)
    lines.append(f"local {cls.name} = {{}}")
    for method in cls.methods:
        lines.extend(emit_function(method, context))
    lines.append(f"{REGION_END} {cls.name}")
    lines.append("")
    return lines


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def emit_enum(enum: EnumType, context: RunContext) -> List[str]:
    _check_name(enum.name, enum.name, "enum")
    lines = _doc_block(enum.description, enum.name, context)
    lines.append(f"---@alias {enum.name}")
    for constant in enum.constants:
        entry = f"---| {_quote(constant.value)}"
        description = single_line(constant.description)
        lines.append(f"{entry} -- {description}" if description else entry)
    lines.append("")
    return lines


def emit_module(module: Module, context: RunContext) -> str:
    """Render *module* (not its sub-modules) to annotation text.

    The result depends only on *module* and the context settings, so
    repeated runs give byte-identical text.
    """

    _check_dotted(module.name, module.name, "module")
    lines = [HEADER_MARKER, f"{NAMESPACE_MARKER} {context.namespace}", ""]
    lines.extend(doc_lines(module.description))
    lines.append(f"{module.name} = {{}}")
    lines.append("")
    for cls in module.classes:
        lines.extend(emit_class(cls, context))
    for enum in module.enums:
        lines.extend(emit_enum(enum, context))
    for function in module.functions:
        lines.extend(emit_function(function, context))
    return "\n".join(lines).rstrip("\n") + "\n"


__all__ = [
    "HEADER_MARKER",
    "LUA_KEYWORDS",
    "NAMESPACE_MARKER",
    "REGION_END",
    "REGION_START",
    "doc_lines",
    "emit_class",
    "emit_enum",
    "emit_function",
    "emit_module",
    "single_line",
]
