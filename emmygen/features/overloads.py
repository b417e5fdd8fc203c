"""Pick the primary call signature of a function and order its alternates."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from ..model.entities import Function, Variant


@dataclass(frozen=True)
class Overloads:
    primary: Variant
    alternates: Tuple[Variant, ...] = ()


def _rank_key(indexed: Tuple[int, Variant]) -> Tuple[int, int, int]:
    position, variant = indexed
    return (-variant.arity, 0 if variant.has_varargs else 1, position)


def rank_variants(variants: Sequence[Variant]) -> Tuple[Variant, ...]:
    """Order *variants* most-complete first.

    Higher declared parameter count wins. On equal counts a variant ending in
    varargs goes first, and source order breaks any remaining tie.
    """

    return tuple(variant for _, variant in sorted(enumerate(variants), key=_rank_key))


def resolve_overloads(function: Function) -> Overloads:
    if not function.variants:
        raise ValueError(f"{function.qualified_name} has no variants")
    ranked = rank_variants(function.variants)
    return Overloads(primary=ranked[0], alternates=ranked[1:])


__all__ = ["Overloads", "rank_variants", "resolve_overloads"]
