"""
One-stop access object wiring every component over a single pool.

Usage:
    async with DataAccessService() as db:
        user_id = await db.crud.create("users", {"name": "Ada"})
        page = await db.pages.paginate("users", page=1, limit=20)
        async with db.transaction() as trx:
            await db.crud.batch_insert("audit", rows, transaction=trx)
            await db.batches.batch_update("users", changes, transaction=trx)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from psycopg import AsyncConnection

from sqlgate.config import Settings
from sqlgate.errors import translate_errors
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.repository.batch import TransactionalBatchMutator
from sqlgate.repository.crud import CrudFacade
from sqlgate.repository.pagination import PaginationEngine
from sqlgate.schema.orchestrator import SchemaOrchestrator


class DataAccessService:
    """
    Groups the access-layer components around one ConnectionManager.

    Entering the service as an async context manager runs ``init()`` and
    leaving it runs ``shutdown()``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        connections: Optional[ConnectionManager] = None,
    ) -> None:
        self.connections = connections or ConnectionManager(settings)
        self.crud = CrudFacade(self.connections)
        self.pages = PaginationEngine(self.connections)
        self.batches = TransactionalBatchMutator(self.connections)
        self.schema = SchemaOrchestrator(self.connections)

    async def init(self) -> None:
        await self.connections.init()

    async def shutdown(self) -> None:
        await self.connections.shutdown()

    async def health_check(self) -> bool:
        return await self.connections.health_check()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Explicit unit of work; pass the yielded handle to batch operations."""
        with translate_errors("transaction"):
            async with self.connections.transaction() as conn:
                yield conn

    async def __aenter__(self) -> "DataAccessService":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()


__all__ = ["DataAccessService"]
