"""Tagged type expressions produced by the type normalizer."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Primitive:
    """A builtin or descriptive primitive such as ``number`` or ``light userdata``."""

    name: str


@dataclass(frozen=True)
class NamedRef:
    """A reference to a named type.

    ``namespace`` is set only when the name resolved to a class or enum of the
    loaded model; unresolved and already-qualified names keep it ``None``.
    """

    name: str
    namespace: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.namespace is not None

    @property
    def qualified(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name


@dataclass(frozen=True)
class Union:
    alternatives: Tuple["TypeExpr", ...]

    def __post_init__(self) -> None:
        if len(self.alternatives) < 2:
            raise ValueError("a union needs at least two alternatives")


@dataclass(frozen=True)
class TableField:
    name: str
    type: "TypeExpr"
    optional: bool = False

    @property
    def is_rest(self) -> bool:
        return self.name == "..."


@dataclass(frozen=True)
class TableLiteral:
    fields: Tuple[TableField, ...] = ()

    @property
    def is_open(self) -> bool:
        return any(field.is_rest for field in self.fields)


@dataclass(frozen=True)
class Varargs:
    inner: "TypeExpr"


TypeExpr = Primitive | NamedRef | Union | TableLiteral | Varargs


__all__ = ["NamedRef", "Primitive", "TableField", "TableLiteral", "TypeExpr", "Union", "Varargs"]
