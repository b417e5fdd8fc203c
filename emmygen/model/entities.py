"""Immutable entities of a loaded API description."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .types import TypeExpr, Varargs

VARARGS_NAME = "..."


@dataclass(frozen=True)
class Param:
    name: str
    raw_type: str
    description: str = ""
    default: Optional[str] = None
    optional: bool = False
    type: Optional[TypeExpr] = None

    @property
    def is_varargs(self) -> bool:
        return self.name == VARARGS_NAME or isinstance(self.type, Varargs)


@dataclass(frozen=True)
class ReturnSpec:
    raw_type: str
    description: str = ""
    name: str = ""
    type: Optional[TypeExpr] = None


@dataclass(frozen=True)
class Variant:
    params: Tuple[Param, ...] = ()
    returns: Tuple[ReturnSpec, ...] = ()
    description: Optional[str] = None

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def has_varargs(self) -> bool:
        return bool(self.params) and self.params[-1].is_varargs


@dataclass(frozen=True)
class Function:
    """A module function or class method with one or more call variants."""

    name: str
    owner: str
    variants: Tuple[Variant, ...]
    description: str = ""
    is_method: bool = False

    @property
    def call_separator(self) -> str:
        return ":" if self.is_method else "."

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}.{self.name}"


@dataclass(frozen=True)
class ClassType:
    name: str
    description: str = ""
    supertypes: Tuple[str, ...] = ()
    methods: Tuple[Function, ...] = ()


@dataclass(frozen=True)
class EnumConstant:
    value: str
    description: str = ""


@dataclass(frozen=True)
class EnumType:
    name: str
    constants: Tuple[EnumConstant, ...]
    description: str = ""


@dataclass(frozen=True)
class Module:
    """A module and, for the root, its nested sub-modules.

    Each module is emitted to its own file; ``submodules`` only records the
    nesting of the description.
    """

    name: str
    description: str = ""
    classes: Tuple[ClassType, ...] = ()
    functions: Tuple[Function, ...] = ()
    enums: Tuple[EnumType, ...] = ()
    submodules: Tuple["Module", ...] = ()

    def walk(self) -> Iterator["Module"]:
        """Yield this module and every sub-module, depth first, in source order."""

        yield self
        for module in self.submodules:
            yield from module.walk()

    def all_functions(self) -> Iterator[Function]:
        for cls in self.classes:
            yield from cls.methods
        yield from self.functions


@dataclass(frozen=True)
class TypeIndex:
    """Names of every class and enum defined anywhere in the loaded model."""

    namespace: str
    classes: frozenset[str] = frozenset()
    enums: frozenset[str] = frozenset()

    def __contains__(self, name: object) -> bool:
        return name in self.classes or name in self.enums

    @property
    def defined(self) -> frozenset[str]:
        return self.classes | self.enums


__all__ = [
    "VARARGS_NAME",
    "ClassType",
    "EnumConstant",
    "EnumType",
    "Function",
    "Module",
    "Param",
    "ReturnSpec",
    "TypeIndex",
    "Variant",
]
