"""
Connection management for sqlgate.

The ConnectionManager owns one psycopg_pool ``AsyncConnectionPool`` for its
whole lifetime: it is created by ``init()`` (which validates reachability
with a retried startup probe) and destroyed by ``shutdown()``. Components
receive the manager at construction instead of reaching for a global pool,
which keeps multiple isolated pools and test doubles possible in one process.

Handles are lent out per logical operation through ``connection()`` and per
unit of work through ``transaction()``; neither is ever held across
unrelated operations.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

import psycopg
from psycopg import AsyncConnection
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sqlgate.config import Settings, get_settings
from sqlgate.errors import ClosedError, ConnectivityError, translate_errors
from sqlgate.utils.logging import get_logger

log = get_logger(__name__)

PROBE_SQL = "SELECT 1"

PoolFactory = Callable[..., Any]


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a libpq conninfo string from settings."""
    settings = settings or get_settings()
    params: dict[str, Any] = {
        "host": settings.db_host,
        "port": settings.db_port,
        "user": settings.db_user,
        "password": settings.db_password,
        "dbname": settings.db_name,
    }
    if settings.effective_sslmode:
        params["sslmode"] = settings.effective_sslmode
    if settings.db_statement_timeout_ms:
        params["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    return make_conninfo("", **params)


def _log_probe_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    log.warning(
        "Startup probe failed, retrying",
        extra={"attempt": state.attempt_number, "error": str(exc)},
    )


class ConnectionManager:
    """
    Owner of the pooled connection handle.

    Parameters
    ----------
    settings : Settings | None
        Connection and pool configuration. Defaults to ``get_settings()``.
    pool_factory : callable | None
        Builds the pool; receives the same keyword arguments as
        ``AsyncConnectionPool``. Injected by tests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pool_factory: Optional[PoolFactory] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._pool_factory: PoolFactory = pool_factory or AsyncConnectionPool
        self._pool: Any = None
        self._closed = False

    @property
    def acquire_timeout(self) -> float:
        return self.settings.db_pool_acquire_timeout_ms / 1000.0

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._closed

    def _create_pool(self) -> Any:
        s = self.settings
        return self._pool_factory(
            conninfo=build_dsn(s),
            min_size=s.db_pool_min,
            max_size=s.db_pool_max,
            max_idle=s.db_pool_idle_timeout_ms / 1000.0,
            timeout=self.acquire_timeout,
            kwargs={"autocommit": True, "row_factory": dict_row},
            open=False,
            name="sqlgate",
        )

    async def init(self) -> None:
        """
        Open the pool and validate connectivity.

        Raises
        ------
        ConnectivityError
            If the startup probe still fails after the configured retries.
        """
        if self._closed:
            raise ClosedError("Connection manager was shut down and cannot be reopened")
        if self._pool is not None:
            return

        pool = self._create_pool()
        await pool.open(wait=False)
        self._pool = pool
        try:
            await self._probe_with_retry()
        except Exception as exc:
            self._pool = None
            await pool.close()
            if isinstance(exc, psycopg.Error):
                raise ConnectivityError(f"Store unreachable at startup: {exc}") from exc
            raise

        log.info(
            "Connection pool opened",
            extra={
                "host": self.settings.db_host,
                "database": self.settings.db_name,
                "pool_min": self.settings.db_pool_min,
                "pool_max": self.settings.db_pool_max,
            },
        )

    async def _probe_with_retry(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.db_connect_retries),
            wait=wait_exponential(
                multiplier=self.settings.db_connect_backoff_seconds, min=0, max=10
            ),
            retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
            before_sleep=_log_probe_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._probe()

    async def _probe(self) -> None:
        async with self._pool.connection(timeout=self.acquire_timeout) as conn:
            await conn.execute(PROBE_SQL)

    async def shutdown(self) -> None:
        """Drain and close the pool. Later operations raise ClosedError."""
        if self._closed:
            return
        self._closed = True
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()
            log.info("Connection pool closed")

    async def health_check(self) -> bool:
        """Round-trip ``SELECT 1``; never raises."""
        try:
            self._ensure_open()
            await self._probe()
            return True
        except Exception as exc:  # noqa: BLE001 - health checks report, they never raise
            log.warning("Health check failed", extra={"error": str(exc)})
            return False

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedError("Connection manager is shut down")
        if self._pool is None:
            raise ClosedError("Connection manager is not initialized; call init() first")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        """
        Check out one pooled connection for a single logical operation.

        Example
        -------
            async with manager.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
        """
        self._ensure_open()
        with translate_errors("acquire connection"):
            async with self._pool.connection(timeout=self.acquire_timeout) as conn:
                yield conn

    @asynccontextmanager
    async def transaction(
        self, outer: Optional[AsyncConnection] = None
    ) -> AsyncIterator[AsyncConnection]:
        """
        Yield a transaction-scoped connection.

        Commits when the block exits normally and rolls back when it raises.
        When ``outer`` is an already transactional connection the block runs
        in a savepoint on it and no new connection is checked out.
        """
        if outer is not None:
            async with outer.transaction():
                yield outer
            return

        async with self.connection() as conn:
            async with conn.transaction():
                yield conn


__all__ = ["ConnectionManager", "build_dsn", "PROBE_SQL"]
