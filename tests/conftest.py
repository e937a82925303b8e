"""
Pytest configuration shared by the sqlgate test suites.

Provides fixtures for:
- Settings override for integration tests
- Database reachability checks
- A throwaway schema (owners/widgets) for integration tests
"""

from __future__ import annotations

import os
from typing import AsyncIterator, Generator

import psycopg
import pytest
import pytest_asyncio

from sqlgate.config import Settings
from sqlgate.infrastructure.db_factory import build_dsn
from sqlgate.service import DataAccessService

SCHEMA_SQL = """
DROP TABLE IF EXISTS widgets;
DROP TABLE IF EXISTS owners;
CREATE TABLE owners (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    active BOOLEAN NOT NULL DEFAULT TRUE
);
CREATE TABLE widgets (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    color TEXT,
    qty INTEGER NOT NULL DEFAULT 0 CHECK (qty >= 0),
    owner_id INTEGER REFERENCES owners (id),
    deleted_at TIMESTAMPTZ
);
"""


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        _env_file=None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "postgres"),
        db_pool_min=1,
        db_pool_max=4,
        db_pool_acquire_timeout_ms=2000,
        db_connect_retries=1,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1")
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Plain autocommit connection with a fresh owners/widgets schema.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        conn.execute(SCHEMA_SQL)
        yield conn
        conn.execute("DROP TABLE IF EXISTS widgets; DROP TABLE IF EXISTS owners;")
    finally:
        conn.close()


@pytest_asyncio.fixture
async def service(
    test_settings: Settings, db_connection: psycopg.Connection
) -> AsyncIterator[DataAccessService]:
    """Initialized access service over the test schema."""
    async with DataAccessService(test_settings) as db:
        yield db
