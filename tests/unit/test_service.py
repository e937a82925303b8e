from __future__ import annotations

import pytest

from sqlgate.errors import ClosedError
from sqlgate.service import DataAccessService


@pytest.mark.asyncio
async def test_service_context_opens_and_closes_pool(manager, fake_pool) -> None:
    async with DataAccessService(connections=manager) as db:
        assert fake_pool.opened is True
        assert await db.health_check() is True

    assert fake_pool.closed is True
    assert await db.health_check() is False
    with pytest.raises(ClosedError):
        await db.crud.exists("widgets", 1)


@pytest.mark.asyncio
async def test_service_transaction_shares_connection_with_batches(manager, fake_pool) -> None:
    fake_pool.respond("INSERT", rows=[{"id": 1}, {"id": 2}])
    fake_pool.respond("UPDATE", rowcount=1)

    async with DataAccessService(connections=manager) as db:
        fake_pool.checkouts = 0
        async with db.transaction() as trx:
            ids = await db.crud.batch_insert("audit", [{"a": 1}, {"a": 2}], transaction=trx)
            updated = await db.batches.batch_update("widgets", [{"id": 1, "v": "x"}], transaction=trx)

    assert ids == [1, 2]
    assert updated == 1
    assert fake_pool.checkouts == 1
    assert fake_pool.events == ["begin", "savepoint", "commit_savepoint", "commit"]


@pytest.mark.asyncio
async def test_service_transaction_rolls_back_on_error(manager, fake_pool) -> None:
    async with DataAccessService(connections=manager) as db:
        with pytest.raises(RuntimeError):
            async with db.transaction() as trx:
                await trx.execute("SELECT 1")
                raise RuntimeError("abort")

    assert fake_pool.events == ["begin", "rollback"]
