"""
Query package for sqlgate.

Filter/join descriptors and their translation into psycopg ``sql``
compositions, so downstream code can import from ``sqlgate.query`` directly.
"""

from sqlgate.query.composer import QueryContext, build_count, build_select, compose
from sqlgate.query.predicates import (
    AnyOf,
    Between,
    InSet,
    IsNull,
    Join,
    JoinKind,
    Operator,
    Predicate,
    Where,
)

__all__ = [
    # Descriptors
    "AnyOf",
    "Between",
    "InSet",
    "IsNull",
    "Join",
    "JoinKind",
    "Operator",
    "Predicate",
    "Where",
    # Composition
    "QueryContext",
    "compose",
    "build_select",
    "build_count",
]
