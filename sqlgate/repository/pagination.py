"""
Offset pagination with concurrent count and data queries.

Both queries are built from one composed :class:`QueryContext`, so ``total``
and ``data`` are always computed over the same joins and filters. They run on
two pooled connections at once and the result is assembled only after both
have finished.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence, Type

from pydantic import BaseModel

from sqlgate.domain.models import Pagination, PaginationResult, Record, to_model
from sqlgate.errors import InvalidPageRequest, translate_errors
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.query.composer import (
    Field,
    Statement,
    build_count,
    build_select,
    compose,
    order_direction,
)
from sqlgate.query.predicates import Join, Predicate
from sqlgate.utils.logging import get_logger

log = get_logger(__name__)


def _validate_page_request(page: int, limit: int, order_dir: Optional[str]) -> None:
    if page < 1:
        raise InvalidPageRequest(f"page must be >= 1, got {page}")
    if limit < 1:
        raise InvalidPageRequest(f"limit must be >= 1, got {limit}")
    if order_dir is not None:
        try:
            order_direction(order_dir)
        except ValueError as exc:
            raise InvalidPageRequest(str(exc)) from None


class PaginationEngine:
    """Offset/limit listing over any table."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    async def _fetch_rows(self, statement: Statement) -> List[Record]:
        query, params = statement
        async with self._connections.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    async def _count(self, statement: Statement) -> int:
        query, params = statement
        async with self._connections.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
        return int(row["total"]) if row else 0

    async def paginate(
        self,
        table: str,
        page: int,
        limit: int,
        fields: Optional[Sequence[Field]] = None,
        predicates: Sequence[Predicate] = (),
        joins: Sequence[Join] = (),
        order_column: Optional[str] = None,
        order_dir: Optional[str] = None,
        model: Optional[Type[BaseModel]] = None,
    ) -> PaginationResult:
        """
        Return page ``page`` of ``limit`` rows plus page metadata.

        Ordering is applied only when both ``order_column`` and ``order_dir``
        are given.

        Raises
        ------
        InvalidPageRequest
            If ``page < 1``, ``limit < 1`` or the direction is not asc/desc.
        """
        _validate_page_request(page, limit, order_dir)
        offset = (page - 1) * limit
        order_by = (order_column, order_dir) if order_column and order_dir else None

        ctx = compose(table, predicates, joins)
        data_statement = build_select(ctx, fields, order_by=order_by, limit=limit, offset=offset)
        count_statement = build_count(ctx)

        with translate_errors(f"paginate {table}"):
            rows, total = await asyncio.gather(
                self._fetch_rows(data_statement),
                self._count(count_statement),
                return_exceptions=True,
            )
            for outcome in (rows, total):
                if isinstance(outcome, BaseException):
                    raise outcome

        log.debug(
            "Paginated query",
            extra={"table": table, "page": page, "limit": limit, "total": total},
        )
        data: List[Any] = [to_model(row, model) for row in rows]
        return PaginationResult(data=data, pagination=Pagination.derive(total, page, limit))


__all__ = ["PaginationEngine"]
