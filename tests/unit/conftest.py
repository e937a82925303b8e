"""
In-memory doubles for unit tests.

``FakePool`` mimics the slice of ``psycopg_pool.AsyncConnectionPool`` that
sqlgate uses: ``open``/``close``/``connection()``, with connections exposing
``cursor()``, ``execute()`` and ``transaction()``. Every executed statement is
rendered with ``as_string`` and recorded so tests can assert on the SQL.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

import pytest
import pytest_asyncio
from psycopg_pool import PoolClosed

from sqlgate.config import Settings
from sqlgate.infrastructure.db_factory import ConnectionManager


class _Response:
    def __init__(
        self,
        fragment: str,
        rows: list[dict[str, Any]],
        rowcount: Optional[int],
        error: Optional[BaseException],
        when: Optional[Callable[[list[Any]], bool]],
    ) -> None:
        self.fragment = fragment
        self.rows = rows
        self.rowcount = rowcount
        self.error = error
        self.when = when

    def matches(self, text: str, params: list[Any]) -> bool:
        if self.fragment not in text:
            return False
        return self.when is None or self.when(params)


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn
        self._rows: list[dict[str, Any]] = []
        self.rowcount = -1

    async def __aenter__(self) -> "FakeCursor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False

    async def execute(self, query: Any, params: Any = None) -> "FakeCursor":
        await self._conn.pool.run(self, query, params)
        return self

    async def fetchone(self) -> Optional[dict[str, Any]]:
        return self._rows[0] if self._rows else None

    async def fetchall(self) -> list[dict[str, Any]]:
        return list(self._rows)


class FakeTransaction:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn

    async def __aenter__(self) -> None:
        self._conn.depth += 1
        self._conn.pool.events.append("begin" if self._conn.depth == 1 else "savepoint")

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc, tb
        nested = self._conn.depth > 1
        self._conn.depth -= 1
        outcome = "rollback" if exc_type is not None else "commit"
        self._conn.pool.events.append(f"{outcome}_savepoint" if nested else outcome)
        return False


class FakeConnection:
    def __init__(self, pool: "FakePool") -> None:
        self.pool = pool
        self.depth = 0

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    async def execute(self, query: Any, params: Any = None) -> FakeCursor:
        cur = FakeCursor(self)
        await cur.execute(query, params)
        return cur


class FakePool:
    def __init__(self) -> None:
        self.kwargs: dict[str, Any] = {}
        self.responses: list[_Response] = []
        self.executed: list[tuple[str, list[Any]]] = []
        self.events: list[str] = []
        self.checkouts = 0
        self.opened = False
        self.closed = False
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.connect_errors: list[BaseException] = []

    def respond(
        self,
        fragment: str,
        rows: Any = (),
        rowcount: Optional[int] = None,
        error: Optional[BaseException] = None,
        when: Optional[Callable[[list[Any]], bool]] = None,
    ) -> None:
        """Script the result of the first statement containing ``fragment``."""
        self.responses.append(_Response(fragment, list(rows), rowcount, error, when))

    @property
    def statements(self) -> list[str]:
        return [text for text, _ in self.executed]

    async def run(self, cursor: FakeCursor, query: Any, params: Any) -> None:
        text = query if isinstance(query, str) else query.as_string(None)
        bound = list(params or [])
        self.executed.append((text, bound))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        for response in self.responses:
            if response.matches(text, bound):
                if response.error is not None:
                    raise response.error
                cursor._rows = list(response.rows)
                cursor.rowcount = (
                    response.rowcount if response.rowcount is not None else len(response.rows)
                )
                return
        cursor._rows = []
        cursor.rowcount = 0

    async def open(self, wait: bool = False, timeout: float = 30.0) -> None:
        del wait, timeout
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = None) -> AsyncIterator[FakeConnection]:
        del timeout
        if self.closed:
            raise PoolClosed("the pool is closed")
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        self.checkouts += 1
        yield FakeConnection(self)


@pytest.fixture
def unit_settings() -> Settings:
    return Settings(
        _env_file=None,
        db_host="db.test",
        db_port=5432,
        db_user="tester",
        db_password="secret",
        db_name="sqlgate_test",
        db_connect_retries=3,
        db_connect_backoff_seconds=0,
    )


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def manager(unit_settings: Settings, fake_pool: FakePool) -> ConnectionManager:
    """A ConnectionManager wired to ``fake_pool``; not yet initialized."""

    def factory(**kwargs: Any) -> FakePool:
        fake_pool.kwargs = kwargs
        return fake_pool

    return ConnectionManager(unit_settings, pool_factory=factory)


@pytest_asyncio.fixture
async def connections(manager: ConnectionManager, fake_pool: FakePool) -> ConnectionManager:
    """Initialized manager; the startup probe is cleared from the pool's records."""
    await manager.init()
    fake_pool.executed.clear()
    fake_pool.checkouts = 0
    return manager
