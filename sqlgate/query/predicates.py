"""
Filter and join descriptors.

Each descriptor is an immutable description of one query fragment. Callers
pass ordered sequences of them to the repository operations, which translate
them to SQL through :mod:`sqlgate.query.composer`. Values are always bound as
parameters; column and table names are always quoted identifiers.

Column names may be qualified (``"orders.user_id"``).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, Union


class Operator(str, enum.Enum):
    EQ = "="
    NE = "<>"
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    LIKE = "LIKE"
    ILIKE = "ILIKE"


class JoinKind(str, enum.Enum):
    INNER = "INNER JOIN"
    LEFT = "LEFT JOIN"
    RIGHT = "RIGHT JOIN"
    FULL = "FULL JOIN"


@dataclass(frozen=True)
class Where:
    """``column <op> value``; equality by default."""

    column: str
    value: Any
    op: Operator = Operator.EQ


@dataclass(frozen=True)
class Between:
    """Inclusive range ``column BETWEEN low AND high``."""

    column: str
    low: Any
    high: Any


@dataclass(frozen=True)
class InSet:
    """``column = ANY(values)``. An empty set matches nothing."""

    column: str
    values: Tuple[Any, ...]

    def __init__(self, column: str, values: Sequence[Any]) -> None:
        object.__setattr__(self, "column", column)
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class IsNull:
    column: str
    negate: bool = False


@dataclass(frozen=True)
class AnyOf:
    """OR-group of predicates, rendered in parentheses."""

    predicates: Tuple["Predicate", ...]

    def __init__(self, *predicates: "Predicate") -> None:
        object.__setattr__(self, "predicates", tuple(predicates))


@dataclass(frozen=True)
class Join:
    """``<kind> table [AS alias] ON left = right``."""

    table: str
    left: str
    right: str
    kind: JoinKind = JoinKind.INNER
    alias: Optional[str] = None


Predicate = Union[Where, Between, InSet, IsNull, AnyOf]

__all__ = [
    "Operator",
    "JoinKind",
    "Where",
    "Between",
    "InSet",
    "IsNull",
    "AnyOf",
    "Join",
    "Predicate",
]
