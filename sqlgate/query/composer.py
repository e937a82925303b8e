"""
Translate filter/join descriptors into psycopg ``sql`` compositions.

A :class:`QueryContext` is the mutable query-building context: descriptors are
applied to it one by one, strictly in the order supplied, and every statement
built from one context sees the identical join and filter sequence. This is
what keeps a pagination count query and its data query in agreement.

Usage:
    ctx = compose("users", predicates=[Where("active", True)], joins=[...])
    query, params = build_select(ctx, ["users.id", "name"], limit=10, offset=0)
    count_query, count_params = build_count(ctx)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from psycopg import sql

from sqlgate.query.predicates import (
    AnyOf,
    Between,
    InSet,
    IsNull,
    Join,
    Operator,
    Predicate,
    Where,
)

Statement = Tuple[sql.Composed, List[Any]]
Unit = Union[Predicate, Join]
Field = Union[str, sql.Composable]

_ALIAS_RE = re.compile(r"^\s*(?P<expr>\S+)\s+as\s+(?P<alias>\S+)\s*$", re.IGNORECASE)
_DIRECTIONS = {"asc": sql.SQL("ASC"), "desc": sql.SQL("DESC")}


def identifier(name: str) -> sql.Composable:
    """Quote a possibly qualified name; ``*`` and ``table.*`` stay wildcards."""
    name = name.strip()
    if name == "*":
        return sql.SQL("*")
    parts = name.split(".")
    if parts[-1] == "*":
        return sql.Composed([sql.Identifier(*parts[:-1]), sql.SQL(".*")])
    return sql.Identifier(*parts)


def projection(fields: Optional[Sequence[Field]]) -> sql.Composable:
    """
    Select list; ``"col as alias"`` entries are honoured.

    Entries that are already ``sql.Composable`` (computed columns such as
    ``sql.SQL("COUNT(*) AS n")``) are emitted verbatim.
    """
    if not fields:
        return sql.SQL("*")
    items: List[sql.Composable] = []
    for entry in fields:
        if isinstance(entry, sql.Composable):
            items.append(entry)
            continue
        match = _ALIAS_RE.match(entry)
        if match:
            items.append(
                sql.SQL("{} AS {}").format(
                    identifier(match.group("expr")), sql.Identifier(match.group("alias"))
                )
            )
        else:
            items.append(identifier(entry))
    return sql.SQL(", ").join(items)


def order_direction(direction: str) -> sql.SQL:
    try:
        return _DIRECTIONS[direction.strip().lower()]
    except KeyError:
        raise ValueError(f"Order direction must be 'asc' or 'desc', got {direction!r}") from None


@dataclass
class QueryContext:
    """Mutable query-building context for one table."""

    table: str
    joins: List[sql.Composable] = field(default_factory=list)
    conditions: List[sql.Composable] = field(default_factory=list)
    params: List[Any] = field(default_factory=list)

    def apply(self, unit: Unit) -> "QueryContext":
        if isinstance(unit, Join):
            self.joins.append(self._join(unit))
        else:
            self.conditions.append(self._condition(unit))
        return self

    def _join(self, join: Join) -> sql.Composable:
        target: sql.Composable = identifier(join.table)
        if join.alias:
            target = sql.SQL("{} AS {}").format(target, sql.Identifier(join.alias))
        return sql.SQL("{} {} ON {} = {}").format(
            sql.SQL(join.kind.value), target, identifier(join.left), identifier(join.right)
        )

    def _condition(self, predicate: Predicate) -> sql.Composable:
        if isinstance(predicate, Where):
            column = identifier(predicate.column)
            op = Operator(predicate.op)
            if predicate.value is None and op in (Operator.EQ, Operator.NE):
                test = "IS NULL" if op is Operator.EQ else "IS NOT NULL"
                return sql.SQL("{} {}").format(column, sql.SQL(test))
            self.params.append(predicate.value)
            return sql.SQL("{} {} {}").format(column, sql.SQL(op.value), sql.Placeholder())
        if isinstance(predicate, Between):
            self.params.extend([predicate.low, predicate.high])
            return sql.SQL("{} BETWEEN {} AND {}").format(
                identifier(predicate.column), sql.Placeholder(), sql.Placeholder()
            )
        if isinstance(predicate, InSet):
            self.params.append(list(predicate.values))
            return sql.SQL("{} = ANY({})").format(identifier(predicate.column), sql.Placeholder())
        if isinstance(predicate, IsNull):
            test = "IS NOT NULL" if predicate.negate else "IS NULL"
            return sql.SQL("{} {}").format(identifier(predicate.column), sql.SQL(test))
        if isinstance(predicate, AnyOf):
            if not predicate.predicates:
                return sql.SQL("FALSE")
            parts = [self._condition(p) for p in predicate.predicates]
            return sql.Composed([sql.SQL("("), sql.SQL(" OR ").join(parts), sql.SQL(")")])
        raise TypeError(f"Unsupported predicate: {predicate!r}")

    def from_clause(self) -> sql.Composed:
        parts: List[sql.Composable] = [sql.SQL(" FROM "), identifier(self.table)]
        for join in self.joins:
            parts.extend([sql.SQL(" "), join])
        return sql.Composed(parts)

    def where_clause(self) -> sql.Composable:
        if not self.conditions:
            return sql.SQL("")
        return sql.Composed([sql.SQL(" WHERE "), sql.SQL(" AND ").join(self.conditions)])


def compose(
    table: str,
    predicates: Iterable[Predicate] = (),
    joins: Iterable[Join] = (),
) -> QueryContext:
    """Apply joins, then predicates, each in the order given."""
    ctx = QueryContext(table)
    for join in joins:
        ctx.apply(join)
    for predicate in predicates:
        ctx.apply(predicate)
    return ctx


def build_select(
    ctx: QueryContext,
    fields: Optional[Sequence[Field]] = None,
    order_by: Optional[Tuple[str, str]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Statement:
    parts: List[sql.Composable] = [
        sql.SQL("SELECT "),
        projection(fields),
        ctx.from_clause(),
        ctx.where_clause(),
    ]
    params = list(ctx.params)
    if order_by is not None:
        column, direction = order_by
        parts.append(
            sql.SQL(" ORDER BY {} {}").format(identifier(column), order_direction(direction))
        )
    if limit is not None:
        parts.append(sql.SQL(" LIMIT {}").format(sql.Placeholder()))
        params.append(limit)
    if offset is not None:
        parts.append(sql.SQL(" OFFSET {}").format(sql.Placeholder()))
        params.append(offset)
    return sql.Composed(parts), params


def build_count(ctx: QueryContext) -> Statement:
    query = sql.Composed(
        [sql.SQL("SELECT COUNT(*) AS total"), ctx.from_clause(), ctx.where_clause()]
    )
    return query, list(ctx.params)


def build_insert(
    table: str,
    records: Sequence[Mapping[str, Any]],
    returning: Optional[str] = None,
) -> Statement:
    """
    Multi-row INSERT over the union of the records' keys.

    Keys missing from a record are filled with ``DEFAULT``; a single empty
    record becomes ``DEFAULT VALUES``. Several empty records insert
    ``(DEFAULT)`` rows into the ``returning`` column.
    """
    if not records:
        raise ValueError("build_insert needs at least one record")
    columns: List[str] = []
    for record in records:
        for key in record:
            if key not in columns:
                columns.append(key)

    parts: List[sql.Composable] = [sql.SQL("INSERT INTO "), identifier(table)]
    params: List[Any] = []
    if not columns and len(records) == 1:
        parts.append(sql.SQL(" DEFAULT VALUES"))
    elif not columns:
        if not returning:
            raise ValueError("Cannot insert several empty records without a returning column")
        parts.append(
            sql.SQL(" ({}) VALUES {}").format(
                sql.Identifier(returning),
                sql.SQL(", ").join(sql.SQL("(DEFAULT)") for _ in records),
            )
        )
    else:
        rows: List[sql.Composable] = []
        for record in records:
            values: List[sql.Composable] = []
            for column in columns:
                if column in record:
                    values.append(sql.Placeholder())
                    params.append(record[column])
                else:
                    values.append(sql.SQL("DEFAULT"))
            rows.append(sql.Composed([sql.SQL("("), sql.SQL(", ").join(values), sql.SQL(")")]))
        parts.append(
            sql.SQL(" ({}) VALUES {}").format(
                sql.SQL(", ").join(sql.Identifier(c) for c in columns),
                sql.SQL(", ").join(rows),
            )
        )
    if returning:
        parts.append(sql.SQL(" RETURNING {}").format(identifier(returning)))
    return sql.Composed(parts), params


def build_update(
    table: str,
    changes: Mapping[str, Any],
    key_column: str,
    key_value: Any,
) -> Statement:
    if not changes:
        raise ValueError("Update requires at least one column to set")
    assignments: List[sql.Composable] = []
    params: List[Any] = []
    for column, value in changes.items():
        assignments.append(sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder()))
        params.append(value)
    params.append(key_value)
    query = sql.SQL("UPDATE {} SET {} WHERE {} = {}").format(
        identifier(table),
        sql.SQL(", ").join(assignments),
        identifier(key_column),
        sql.Placeholder(),
    )
    return query, params


def build_delete(table: str, key_column: str, key_value: Any) -> Statement:
    query = sql.SQL("DELETE FROM {} WHERE {} = {}").format(
        identifier(table), identifier(key_column), sql.Placeholder()
    )
    return query, [key_value]


__all__ = [
    "QueryContext",
    "Statement",
    "compose",
    "identifier",
    "projection",
    "order_direction",
    "build_select",
    "build_count",
    "build_insert",
    "build_update",
    "build_delete",
]
