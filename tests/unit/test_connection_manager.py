from __future__ import annotations

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from sqlgate.errors import ClosedError, ConnectivityError, PoolExhaustedError
from sqlgate.infrastructure.db_factory import PROBE_SQL, ConnectionManager

POOL_MIN = 2
POOL_MAX = 10
ACQUIRE_TIMEOUT_SECONDS = 30.0


@pytest.mark.asyncio
async def test_init_opens_pool_sized_from_settings_and_probes(manager, fake_pool) -> None:
    await manager.init()

    assert fake_pool.opened is True
    assert fake_pool.kwargs["min_size"] == POOL_MIN
    assert fake_pool.kwargs["max_size"] == POOL_MAX
    assert fake_pool.kwargs["timeout"] == ACQUIRE_TIMEOUT_SECONDS
    assert fake_pool.kwargs["open"] is False
    assert "host=db.test" in fake_pool.kwargs["conninfo"]
    assert fake_pool.statements == [PROBE_SQL]
    assert manager.is_open is True


@pytest.mark.asyncio
async def test_init_retries_transient_probe_failures(manager, fake_pool) -> None:
    fake_pool.connect_errors = [psycopg.OperationalError("starting up")]

    await manager.init()

    assert manager.is_open is True
    assert fake_pool.statements == [PROBE_SQL]


@pytest.mark.asyncio
async def test_init_raises_connectivity_error_and_closes_pool_when_unreachable(
    manager, fake_pool
) -> None:
    fake_pool.connect_errors = [PoolTimeout("no connection") for _ in range(3)]

    with pytest.raises(ConnectivityError):
        await manager.init()

    assert fake_pool.closed is True
    assert manager.is_open is False


@pytest.mark.asyncio
async def test_operations_before_init_raise_closed_error(manager) -> None:
    with pytest.raises(ClosedError):
        async with manager.connection():
            pass


@pytest.mark.asyncio
async def test_shutdown_closes_pool_and_rejects_later_use(connections, fake_pool) -> None:
    await connections.shutdown()
    await connections.shutdown()

    assert fake_pool.closed is True
    with pytest.raises(ClosedError):
        async with connections.connection():
            pass
    with pytest.raises(ClosedError):
        await connections.init()


@pytest.mark.asyncio
async def test_health_check_reports_true_when_probe_succeeds(connections, fake_pool) -> None:
    assert await connections.health_check() is True
    assert fake_pool.statements == [PROBE_SQL]


@pytest.mark.asyncio
async def test_health_check_swallows_failures(connections, fake_pool) -> None:
    fake_pool.respond(PROBE_SQL, error=psycopg.OperationalError("server gone"))
    assert await connections.health_check() is False


@pytest.mark.asyncio
async def test_health_check_is_false_after_shutdown(connections) -> None:
    await connections.shutdown()
    assert await connections.health_check() is False


@pytest.mark.asyncio
async def test_pool_timeout_maps_to_pool_exhausted(connections, fake_pool) -> None:
    fake_pool.connect_errors = [PoolTimeout("couldn't get a connection after 30.00 sec")]

    with pytest.raises(PoolExhaustedError) as excinfo:
        async with connections.connection():
            pass

    assert isinstance(excinfo.value.__cause__, PoolTimeout)


@pytest.mark.asyncio
async def test_transaction_commits_on_success(connections, fake_pool) -> None:
    async with connections.transaction() as conn:
        await conn.execute("SELECT 1")

    assert fake_pool.events == ["begin", "commit"]
    assert fake_pool.checkouts == 1


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(connections, fake_pool) -> None:
    with pytest.raises(RuntimeError):
        async with connections.transaction():
            raise RuntimeError("boom")

    assert fake_pool.events == ["begin", "rollback"]


@pytest.mark.asyncio
async def test_transaction_with_outer_handle_uses_savepoint(connections, fake_pool) -> None:
    async with connections.transaction() as outer:
        async with connections.transaction(outer) as inner:
            assert inner is outer

    assert fake_pool.events == ["begin", "savepoint", "commit_savepoint", "commit"]
    assert fake_pool.checkouts == 1


def test_manager_defaults_to_real_pool_class(unit_settings) -> None:
    from psycopg_pool import AsyncConnectionPool

    manager = ConnectionManager(unit_settings)
    assert manager._pool_factory is AsyncConnectionPool
    assert manager.is_open is False
