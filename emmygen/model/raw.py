"""Lightweight type hints for the raw API description."""
from __future__ import annotations

from typing import List, NotRequired, TypedDict


class RawArgument(TypedDict, total=False):
    name: str
    type: str
    description: str
    default: str
    optional: bool
    table: List["RawArgument"]


class RawVariant(TypedDict, total=False):
    description: str
    arguments: List[RawArgument]
    returns: List[RawArgument]


class RawFunction(TypedDict):
    name: str
    variants: List[RawVariant]
    description: NotRequired[str]


class RawClass(TypedDict):
    name: str
    description: NotRequired[str]
    supertypes: NotRequired[List[str]]
    constructors: NotRequired[List[str]]
    functions: NotRequired[List[RawFunction]]
    methods: NotRequired[List[RawFunction]]


class RawConstant(TypedDict):
    name: str
    description: NotRequired[str]


class RawEnum(TypedDict):
    name: str
    constants: List[RawConstant]
    description: NotRequired[str]


class RawModule(TypedDict, total=False):
    name: str
    version: str
    description: str
    functions: List[RawFunction]
    types: List[RawClass]
    enums: List[RawEnum]
    modules: List["RawModule"]
