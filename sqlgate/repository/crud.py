"""
Generic CRUD operations parameterized by table name.

Every method checks out one pooled connection for exactly one statement
(``batch_insert`` may instead join a caller's transaction). Rows come back as
dicts unless a pydantic ``model`` is supplied, in which case they are
validated into it.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Type

from psycopg import AsyncConnection, sql
from pydantic import BaseModel

from sqlgate.domain.models import Record, to_model
from sqlgate.errors import translate_errors
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.query.composer import (
    Field,
    Statement,
    build_count,
    build_delete,
    build_insert,
    build_select,
    build_update,
    compose,
    identifier,
)
from sqlgate.query.predicates import Join, Predicate, Where
from sqlgate.utils.logging import get_logger

log = get_logger(__name__)


class CrudFacade:
    """
    Table-driven create/read/update/delete.

    Parameters
    ----------
    connections : ConnectionManager
        Source of pooled connections.
    id_column : str
        Primary key column used by the ``*_by_id`` style methods.
    soft_delete_column : str
        Timestamp column set by ``soft_delete``.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        id_column: str = "id",
        soft_delete_column: str = "deleted_at",
    ) -> None:
        self._connections = connections
        self.id_column = id_column
        self.soft_delete_column = soft_delete_column

    async def _fetchone(self, operation: str, statement: Statement) -> Optional[Record]:
        query, params = statement
        with translate_errors(operation):
            async with self._connections.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchone()

    async def _rowcount(self, operation: str, statement: Statement) -> int:
        query, params = statement
        with translate_errors(operation):
            async with self._connections.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return max(cur.rowcount, 0)

    async def create(self, table: str, record: Mapping[str, Any]) -> Any:
        """
        Insert one record and return its generated identifier.

        Raises
        ------
        ConstraintError
            On uniqueness/foreign-key/check violations.
        ConnectivityError
            When the store cannot be reached.
        """
        row = await self._fetchone(
            f"create {table}", build_insert(table, [dict(record)], returning=self.id_column)
        )
        return row[self.id_column] if row else None

    async def find_by_id(
        self, table: str, id_value: Any, model: Optional[Type[BaseModel]] = None
    ) -> Any:
        """Return the row or ``None`` when no row has this id."""
        statement = build_select(compose(table, [Where(self.id_column, id_value)]), limit=1)
        row = await self._fetchone(f"find_by_id {table}", statement)
        return to_model(row, model)

    async def update(self, table: str, id_value: Any, changes: Mapping[str, Any]) -> int:
        """Apply ``changes`` to one row; returns affected rows (0 if none matched)."""
        statement = build_update(table, dict(changes), self.id_column, id_value)
        return await self._rowcount(f"update {table}", statement)

    async def delete(self, table: str, id_value: Any) -> int:
        return await self._rowcount(
            f"delete {table}", build_delete(table, self.id_column, id_value)
        )

    async def soft_delete(self, table: str, id_value: Any) -> int:
        """Stamp the deletion column with ``now()``; the row stays readable."""
        query = sql.SQL("UPDATE {} SET {} = now() WHERE {} = {}").format(
            identifier(table),
            sql.Identifier(self.soft_delete_column),
            identifier(self.id_column),
            sql.Placeholder(),
        )
        return await self._rowcount(f"soft_delete {table}", (query, [id_value]))

    async def exists(
        self,
        table: str,
        predicates: Sequence[Predicate] = (),
        joins: Sequence[Join] = (),
    ) -> bool:
        row = await self._fetchone(f"exists {table}", build_count(compose(table, predicates, joins)))
        return bool(row) and int(row["total"]) > 0

    async def find_one_where(
        self,
        table: str,
        fields: Optional[Sequence[Field]] = None,
        predicates: Sequence[Predicate] = (),
        joins: Sequence[Join] = (),
        model: Optional[Type[BaseModel]] = None,
    ) -> Any:
        """First row matching the composed joins and predicates, or ``None``."""
        statement = build_select(compose(table, predicates, joins), fields, limit=1)
        row = await self._fetchone(f"find_one_where {table}", statement)
        return to_model(row, model)

    async def batch_insert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        transaction: Optional[AsyncConnection] = None,
    ) -> List[Any]:
        """
        Insert many records with one statement and return their ids in order.

        With ``transaction`` the insert joins the caller's unit of work;
        otherwise the single statement is atomic on its own.
        """
        if not records:
            return []
        query, params = build_insert(table, [dict(r) for r in records], returning=self.id_column)
        with translate_errors(f"batch_insert {table}"):
            if transaction is not None:
                rows = await self._fetchall(transaction, query, params)
            else:
                async with self._connections.connection() as conn:
                    rows = await self._fetchall(conn, query, params)
        log.debug("Batch insert", extra={"table": table, "rows": len(rows)})
        return [row[self.id_column] for row in rows]

    @staticmethod
    async def _fetchall(conn: AsyncConnection, query: sql.Composed, params: List[Any]) -> List[Record]:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()


__all__ = ["CrudFacade"]
