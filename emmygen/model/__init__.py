"""Typed in-memory model of an API description."""

from .entities import (
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
from .types import NamedRef, Primitive, TableField, TableLiteral, TypeExpr, Union, Varargs

__all__ = [
    "ClassType",
    "EnumConstant",
    "EnumType",
    "Function",
    "Module",
    "NamedRef",
    "Param",
    "Primitive",
    "ReturnSpec",
    "TableField",
    "TableLiteral",
    "TypeExpr",
    "TypeIndex",
    "Union",
    "Varargs",
    "Variant",
]
