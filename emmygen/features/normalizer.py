"""Normalize free-form description types into the annotation type grammar.

Raw types are parsed by a small recursive-descent parser::

    type    := segment ( SEP segment )*          SEP = " or " | " and " | "|" at depth 0
    segment := "..." segment | "{" fields "}" | "(" type ")" | atom
    fields  := field ( "," field )*
    field   := ( name [ "?" ] | "..." ) ":" type

Separators are only recognised outside braces and parentheses, so a union
inside a table-literal field stays part of that field's type.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..model.entities import VARARGS_NAME, ClassType, Function, Module, Param, ReturnSpec, TypeIndex, Variant
from ..model.types import NamedRef, Primitive, TableField, TableLiteral, TypeExpr, Union, Varargs
from ..utils import config
from ..utils.errors import Diagnostic, ErrorCode, Severity, UnrecognizedTypeError
from ..utils.logging import RunContext

UNION_SEPARATORS: Tuple[str, ...] = (" or ", " and ", "|")
OPTIONAL_SUFFIX = "?"

_OPENERS = {"{": "}", "(": ")"}
_CLOSERS = {"}": "{", ")": "("}
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$")
_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_balanced(text: str) -> bool:
    stack: List[str] = []
    for char in text:
        if char in _OPENERS:
            stack.append(char)
        elif char in _CLOSERS:
            if not stack or stack.pop() != _CLOSERS[char]:
                return False
    return not stack


def split_top_level(
    text: str,
    separators: Sequence[str],
    *,
    maxsplit: int = -1,
    openers: str = "{(",
) -> List[str]:
    """Split *text* on *separators* occurring at depth 0.

    Only the bracket kinds named in *openers* nest; by default both braces
    and parentheses do.
    """

    closers = {_OPENERS[opener] for opener in openers}
    parts: List[str] = []
    depth = 0
    start = 0
    index = 0
    while index < len(text):
        char = text[index]
        if char in openers:
            depth += 1
        elif char in closers:
            depth = max(0, depth - 1)
        elif depth == 0 and (maxsplit < 0 or len(parts) < maxsplit):
            separator = next((sep for sep in separators if text.startswith(sep, index)), None)
            if separator is not None:
                parts.append(text[start:index])
                index += len(separator)
                start = index
                continue
        index += 1
    parts.append(text[start:])
    return parts


def _enclosed(text: str, opener: str) -> bool:
    """Return True if *text* is wholly wrapped by one *opener* bracket pair."""

    if not text.startswith(opener) or not text.endswith(_OPENERS[opener]):
        return False
    depth = 0
    for index, char in enumerate(text):
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth == 0:
                return index == len(text) - 1
    return False


@dataclass(frozen=True)
class TypeNotice:
    code: ErrorCode
    token: str
    reason: str


class _TypeParser:
    def __init__(
        self,
        index: TypeIndex,
        *,
        strict: bool,
        descriptive: Sequence[str],
        fragments: Mapping[str, str],
    ) -> None:
        self._index = index
        self._strict = strict
        self._descriptive = frozenset(descriptive)
        self._fragments = fragments
        self.notices: List[TypeNotice] = []

    def _notice(self, code: ErrorCode, token: str, reason: str) -> None:
        self.notices.append(TypeNotice(code=code, token=token, reason=reason))

    def parse(self, raw: str) -> TypeExpr:
        text = " ".join(str(raw).split())
        if not text:
            self._notice(ErrorCode.UNRECOGNIZED_TYPE, raw, "empty type")
            return Primitive("any")
        if not is_balanced(text):
            self._notice(ErrorCode.UNRECOGNIZED_TYPE, text, "unbalanced brackets")
            return NamedRef(text)
        return self._type(text)

    def _type(self, text: str) -> TypeExpr:
        text = text.strip()
        if text in self._descriptive:
            return Primitive(text)
        alternatives: List[TypeExpr] = []
        seen = set()
        for segment in split_top_level(text, UNION_SEPARATORS):
            segment = segment.strip()
            if not segment:
                self._notice(ErrorCode.UNRECOGNIZED_TYPE, text, "empty union alternative")
                continue
            expr = self._segment(segment)
            flattened = expr.alternatives if isinstance(expr, Union) else (expr,)
            for alternative in flattened:
                key = render_type(alternative)
                if key not in seen:
                    seen.add(key)
                    alternatives.append(alternative)
        if not alternatives:
            return Primitive("any")
        if len(alternatives) == 1:
            return alternatives[0]
        return Union(tuple(alternatives))

    def _segment(self, segment: str) -> TypeExpr:
        if segment.startswith(VARARGS_NAME):
            inner = segment[len(VARARGS_NAME):].strip()
            return Varargs(self._segment(inner) if inner else Primitive("any"))
        if _enclosed(segment, "{"):
            return self._table(segment[1:-1])
        if _enclosed(segment, "("):
            return self._type(segment[1:-1])
        return self._atom(segment)

    def _table(self, body: str) -> TableLiteral:
        fields: List[TableField] = []
        for entry in split_top_level(body, (",",)):
            entry = entry.strip()
            if not entry:
                continue
            if entry == VARARGS_NAME:
                fields.append(TableField(name=VARARGS_NAME, type=Primitive("any")))
                continue
            parts = split_top_level(entry, (":",), maxsplit=1)
            if len(parts) != 2 or not parts[1].strip():
                self._notice(ErrorCode.UNRECOGNIZED_TYPE, entry, "table field without a type")
                name, type_text = parts[0], ""
            else:
                name, type_text = parts
            name = name.strip()
            optional = name.endswith(OPTIONAL_SUFFIX)
            if optional:
                name = name[:-1].rstrip()
            if name != VARARGS_NAME and not _FIELD_NAME.match(name):
                self._notice(ErrorCode.UNRECOGNIZED_TYPE, name, "invalid table field name")
            field_type = self._type(type_text) if type_text.strip() else Primitive("any")
            fields.append(TableField(name=name, type=field_type, optional=optional))
        return TableLiteral(tuple(fields))

    def _atom(self, token: str) -> TypeExpr:
        if token in self._descriptive:
            return Primitive(token)
        completion = self._fragments.get(token)
        if completion is not None:
            if self._strict:
                self._notice(
                    ErrorCode.UNRECOGNIZED_TYPE, token, f"bare fragment of '{completion}'"
                )
                return NamedRef(token)
            self._notice(ErrorCode.COMPLETED_FRAGMENT, token, f"completed to '{completion}'")
            return Primitive(completion)
        if not _IDENTIFIER.match(token):
            self._notice(ErrorCode.UNRECOGNIZED_TYPE, token, "not a type name")
            return NamedRef(token)
        if token in config.BUILTIN_TYPES:
            return Primitive(token)
        if "." in token:
            return NamedRef(token)
        if token in self._index:
            return NamedRef(token, self._index.namespace)
        if len(token) > 1 and token.endswith("s"):
            singular = token[:-1]
            if singular in config.BUILTIN_TYPES:
                return Primitive(singular)
            if singular in self._index:
                return NamedRef(singular, self._index.namespace)
        self._notice(ErrorCode.UNRESOLVED_NAME, token, "name is not defined by the model")
        return NamedRef(token)


def render_type(expr: TypeExpr) -> str:
    """Render *expr* in the annotation grammar."""

    if isinstance(expr, Primitive):
        return expr.name
    if isinstance(expr, NamedRef):
        return expr.qualified
    if isinstance(expr, Union):
        return "|".join(render_type(alternative) for alternative in expr.alternatives)
    if isinstance(expr, TableLiteral):
        entries = [
            f"{field.name}{OPTIONAL_SUFFIX if field.optional else ''}:{render_type(field.type)}"
            for field in expr.fields
        ]
        return "{" + ", ".join(entries) + "}"
    if isinstance(expr, Varargs):
        return VARARGS_NAME + render_type(expr.inner)
    raise TypeError(f"unsupported type expression: {expr!r}")


def render_annotation(expr: TypeExpr, *, optional: bool = False) -> str:
    """Render *expr* with the optional suffix applied once, outermost."""

    rendered = render_type(expr)
    return rendered + OPTIONAL_SUFFIX if optional else rendered


def _parser(index: TypeIndex, *, strict: bool, context: Optional[RunContext]) -> _TypeParser:
    if context is not None:
        descriptive: Sequence[str] = context.descriptive_primitives
        fragments = context.fragments
    else:
        descriptive = config.DESCRIPTIVE_PRIMITIVES
        fragments = config.fragment_table()
    return _TypeParser(index, strict=strict, descriptive=descriptive, fragments=fragments)


def parse_type(
    raw: str,
    index: TypeIndex,
    *,
    strict: bool = False,
    context: Optional[RunContext] = None,
) -> TypeExpr:
    """Parse *raw* into a :class:`TypeExpr`.

    Lenient parsing completes known fragments and passes unknown names
    through. With ``strict`` the first unclassifiable token raises
    :class:`UnrecognizedTypeError`.
    """

    parser = _parser(index, strict=strict, context=context)
    expr = parser.parse(raw)
    if strict:
        for notice in parser.notices:
            if notice.code is ErrorCode.UNRECOGNIZED_TYPE:
                raise UnrecognizedTypeError(notice.token, str(raw), notice.reason)
    return expr


def normalize_type(
    raw: str, index: TypeIndex, context: RunContext, *, subject: str = ""
) -> Tuple[TypeExpr, Tuple[Diagnostic, ...]]:
    """Parse *raw* without raising; problems come back as diagnostics.

    Unresolved names are only reported in verbose runs. In strict runs an
    unrecognized token is an error diagnostic and is passed through as-is.
    """

    parser = _parser(index, strict=context.strict, context=context)
    expr = parser.parse(raw)
    diagnostics = []
    for notice in parser.notices:
        if notice.code is ErrorCode.UNRESOLVED_NAME and not context.verbose:
            continue
        severity = None
        if notice.code is ErrorCode.UNRECOGNIZED_TYPE and not context.strict:
            severity = Severity.WARNING
        diagnostics.append(
            Diagnostic(
                code=notice.code,
                message=f"{notice.reason}: {notice.token!r}",
                subject=subject,
                text=str(raw),
                severity=severity,
            )
        )
    return expr, tuple(diagnostics)


def _normalize_param(
    param: Param, index: TypeIndex, context: RunContext, subject: str
) -> Tuple[Param, Tuple[Diagnostic, ...]]:
    expr, diagnostics = normalize_type(
        param.raw_type, index, context, subject=f"{subject}({param.name})"
    )
    if param.name == VARARGS_NAME and not isinstance(expr, Varargs):
        expr = Varargs(expr)
    return replace(param, type=expr), diagnostics


def _normalize_return(
    ret: ReturnSpec, index: TypeIndex, context: RunContext, subject: str
) -> Tuple[ReturnSpec, Tuple[Diagnostic, ...]]:
    expr, diagnostics = normalize_type(ret.raw_type, index, context, subject=f"{subject}->")
    if ret.name == VARARGS_NAME and not isinstance(expr, Varargs):
        expr = Varargs(expr)
    return replace(ret, type=expr), diagnostics


def normalize_function(
    function: Function, index: TypeIndex, context: RunContext
) -> Tuple[Function, Tuple[Diagnostic, ...]]:
    subject = function.qualified_name
    diagnostics: List[Diagnostic] = []
    variants: List[Variant] = []
    for variant in function.variants:
        params = []
        for param in variant.params:
            typed, found = _normalize_param(param, index, context, subject)
            params.append(typed)
            diagnostics.extend(found)
        returns = []
        for ret in variant.returns:
            typed_ret, found = _normalize_return(ret, index, context, subject)
            returns.append(typed_ret)
            diagnostics.extend(found)
        variants.append(replace(variant, params=tuple(params), returns=tuple(returns)))
    return replace(function, variants=tuple(variants)), tuple(diagnostics)


def normalize_module(
    module: Module, index: TypeIndex, context: RunContext
) -> Tuple[Module, Tuple[Diagnostic, ...]]:
    """Return *module* with every param and return typed, plus diagnostics."""

    diagnostics: List[Diagnostic] = []
    classes: List[ClassType] = []
    for cls in module.classes:
        methods = []
        for method in cls.methods:
            typed, found = normalize_function(method, index, context)
            methods.append(typed)
            diagnostics.extend(found)
        classes.append(replace(cls, methods=tuple(methods)))
    functions = []
    for function in module.functions:
        typed, found = normalize_function(function, index, context)
        functions.append(typed)
        diagnostics.extend(found)
    normalized = replace(module, classes=tuple(classes), functions=tuple(functions))
    return normalized, tuple(diagnostics)


def iter_type_exprs(expr: TypeExpr) -> Iterator[TypeExpr]:
    """Yield *expr* and every nested type expression, depth first."""

    yield expr
    if isinstance(expr, Union):
        for alternative in expr.alternatives:
            yield from iter_type_exprs(alternative)
    elif isinstance(expr, TableLiteral):
        for field in expr.fields:
            yield from iter_type_exprs(field.type)
    elif isinstance(expr, Varargs):
        yield from iter_type_exprs(expr.inner)


@dataclass(frozen=True)
class TypeCensus:
    """Sorted listing of the type names seen in a set of normalized modules."""

    defined: Tuple[str, ...]
    referenced: Tuple[str, ...]
    descriptive: Tuple[str, ...]
    unresolved: Tuple[str, ...]


def type_census(
    modules: Iterable[Module], index: TypeIndex, context: Optional[RunContext] = None
) -> TypeCensus:
    descriptive_names = frozenset(
        context.descriptive_primitives if context is not None else config.DESCRIPTIVE_PRIMITIVES
    )
    referenced = set()
    descriptive = set()
    unresolved = set()
    for module in modules:
        for function in module.all_functions():
            for variant in function.variants:
                typed = [param.type for param in variant.params]
                typed.extend(ret.type for ret in variant.returns)
                for root in typed:
                    if root is None:
                        continue
                    for expr in iter_type_exprs(root):
                        if isinstance(expr, NamedRef):
                            referenced.add(expr.qualified)
                            if not expr.resolved and "." not in expr.name:
                                unresolved.add(expr.name)
                        elif isinstance(expr, Primitive):
                            referenced.add(expr.name)
                            if expr.name in descriptive_names:
                                descriptive.add(expr.name)
    return TypeCensus(
        defined=tuple(sorted(f"{index.namespace}.{name}" for name in index.defined)),
        referenced=tuple(sorted(referenced)),
        descriptive=tuple(sorted(descriptive)),
        unresolved=tuple(sorted(unresolved)),
    )


__all__ = [
    "OPTIONAL_SUFFIX",
    "UNION_SEPARATORS",
    "TypeCensus",
    "TypeNotice",
    "is_balanced",
    "iter_type_exprs",
    "normalize_function",
    "normalize_module",
    "normalize_type",
    "parse_type",
    "render_annotation",
    "render_type",
    "split_top_level",
    "type_census",
]
