"""
All-or-nothing keyed batch updates.

Every update of a batch runs sequentially on one transactional connection, so
later statements observe earlier ones and a failure in any single update rolls
back the whole batch (fail-all). Items without a key value are skipped.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from psycopg import AsyncConnection

from sqlgate.errors import translate_errors
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.query.composer import build_update
from sqlgate.utils.logging import get_logger

log = get_logger(__name__)


class TransactionalBatchMutator:
    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    async def batch_update(
        self,
        table: str,
        items: Sequence[Mapping[str, Any]],
        key_field: str = "id",
        transaction: Optional[AsyncConnection] = None,
    ) -> int:
        """
        Update each item's row, matched on ``key_field``, in one transaction.

        Parameters
        ----------
        table : str
            Target table.
        items : sequence of mappings
            Column values per row; each must carry ``key_field`` to be applied.
        key_field : str
            Column identifying the row to update.
        transaction : AsyncConnection | None
            Caller's transaction; the batch then runs in a savepoint on it.

        Returns
        -------
        int
            Sum of affected rows over items whose key was present.
        """
        if not items:
            return 0

        updated = 0
        skipped = 0
        try:
            with translate_errors(f"batch_update {table}"):
                async with self._connections.transaction(transaction) as conn:
                    for item in items:
                        key_value = item.get(key_field)
                        if key_value is None:
                            skipped += 1
                            continue
                        query, params = build_update(table, dict(item), key_field, key_value)
                        async with conn.cursor() as cur:
                            await cur.execute(query, params)
                            updated += max(cur.rowcount, 0)
        except Exception:
            log.warning(
                "Batch update rolled back",
                extra={"table": table, "items": len(items)},
            )
            raise

        log.debug(
            "Batch update committed",
            extra={"table": table, "updated": updated, "skipped": skipped},
        )
        return updated


__all__ = ["TransactionalBatchMutator"]
