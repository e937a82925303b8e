"""
Migration and seed sequencing.

Migration and seed units are opaque: the orchestrator only loads them, runs
them in order inside a transaction and records which migrations were applied.

Units live in directories of Python modules, applied in file-name order:

    # migrations/20240101_create_users.py
    async def up(conn):
        await conn.execute("CREATE TABLE users (id serial PRIMARY KEY, name text)")

    async def down(conn):
        await conn.execute("DROP TABLE users")

    # seeds/01_users.py
    async def seed(conn):
        await conn.execute("INSERT INTO users (name) VALUES ('admin')")

Applied migrations are grouped in batches (one batch per ``migrate_latest``
call); ``migrate_rollback`` reverts the most recent batch.
"""

from __future__ import annotations

import importlib.util
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Set, Union

from psycopg import AsyncConnection, sql

from sqlgate.errors import MigrationError, translate_errors
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.utils.logging import get_logger

log = get_logger(__name__)

UnitFn = Callable[[AsyncConnection], Awaitable[Any]]


@dataclass(frozen=True)
class MigrationUnit:
    name: str
    up: UnitFn
    down: Optional[UnitFn] = None


@dataclass(frozen=True)
class SeedUnit:
    name: str
    run: UnitFn


def _load_module(path: Path) -> Any:
    spec = importlib.util.spec_from_file_location(f"sqlgate_unit_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise MigrationError(f"Cannot load unit from {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise MigrationError(f"Failed to import {path.name}: {exc}") from exc
    return module


def _unit_files(directory: Union[str, Path]) -> List[Path]:
    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(p for p in root.glob("*.py") if not p.name.startswith("_"))


def load_migrations(directory: Union[str, Path]) -> List[MigrationUnit]:
    """Load migration modules exposing ``up`` (required) and ``down``."""
    units: List[MigrationUnit] = []
    for path in _unit_files(directory):
        module = _load_module(path)
        up = getattr(module, "up", None)
        if not callable(up):
            raise MigrationError(f"Migration {path.name} does not define up(conn)")
        units.append(MigrationUnit(name=path.stem, up=up, down=getattr(module, "down", None)))
    return units


def load_seeds(directory: Union[str, Path]) -> List[SeedUnit]:
    units: List[SeedUnit] = []
    for path in _unit_files(directory):
        run = getattr(_load_module(path), "seed", None)
        if not callable(run):
            raise MigrationError(f"Seed {path.name} does not define seed(conn)")
        units.append(SeedUnit(name=path.stem, run=run))
    return units


class SchemaOrchestrator:
    """
    Sequence migration and seed units against the managed store.

    Parameters
    ----------
    connections : ConnectionManager
        Source of transactional connections.
    migrations, seeds : directory path or explicit unit list | None
        Defaults to the ``MIGRATIONS_DIR`` / ``SEEDS_DIR`` settings.
    table : str | None
        Bookkeeping table; defaults to ``MIGRATIONS_TABLE``.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        migrations: Union[str, Path, Sequence[MigrationUnit], None] = None,
        seeds: Union[str, Path, Sequence[SeedUnit], None] = None,
        table: Optional[str] = None,
    ) -> None:
        settings = connections.settings
        self._connections = connections
        self._migrations = migrations if migrations is not None else settings.migrations_dir
        self._seeds = seeds if seeds is not None else settings.seeds_dir
        self.table = table or settings.migrations_table

    def migration_units(self) -> List[MigrationUnit]:
        if isinstance(self._migrations, (str, Path)):
            return load_migrations(self._migrations)
        return list(self._migrations)

    def seed_units(self) -> List[SeedUnit]:
        if isinstance(self._seeds, (str, Path)):
            return load_seeds(self._seeds)
        return list(self._seeds)

    async def _prepare(self, conn: AsyncConnection) -> None:
        """Serialize concurrent runners, then create the bookkeeping table."""
        await conn.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", [self.table])
        await conn.execute(
            sql.SQL(
                "CREATE TABLE IF NOT EXISTS {} ("
                "id serial PRIMARY KEY, "
                "name text NOT NULL UNIQUE, "
                "batch integer NOT NULL, "
                "migration_time timestamptz NOT NULL DEFAULT now())"
            ).format(sql.Identifier(self.table))
        )

    async def _table_exists(self, conn: AsyncConnection) -> bool:
        cur = await conn.execute(
            "SELECT to_regclass(%s) AS relation", [sql.Identifier(self.table).as_string(None)]
        )
        row = await cur.fetchone()
        return bool(row) and row["relation"] is not None

    async def _applied(self, conn: AsyncConnection) -> List[dict]:
        cur = await conn.execute(
            sql.SQL("SELECT name, batch FROM {} ORDER BY id").format(sql.Identifier(self.table))
        )
        return await cur.fetchall()

    async def pending(self) -> List[str]:
        """Names of migrations that have not been applied yet; read-only."""
        units = self.migration_units()
        applied: Set[str] = set()
        with translate_errors("migrate pending"):
            async with self._connections.connection() as conn:
                if await self._table_exists(conn):
                    applied = {row["name"] for row in await self._applied(conn)}
        return [u.name for u in units if u.name not in applied]

    async def migrate_latest(self) -> List[str]:
        """
        Apply every pending migration as one new batch.

        All units of the batch share one transaction: if any unit fails the
        batch is rolled back and nothing is recorded.
        """
        units = self.migration_units()
        with translate_errors("migrate latest"):
            async with self._connections.transaction() as conn:
                await self._prepare(conn)
                applied_rows = await self._applied(conn)
                applied = {row["name"] for row in applied_rows}
                known = {u.name for u in units}
                missing = sorted(applied - known)
                if missing:
                    raise MigrationError(
                        f"Applied migrations are missing from the directory: {', '.join(missing)}"
                    )
                todo = [u for u in units if u.name not in applied]
                if not todo:
                    log.info("Schema already up to date")
                    return []

                batch = max((row["batch"] for row in applied_rows), default=0) + 1
                for unit in todo:
                    log.info("Applying migration", extra={"migration": unit.name, "batch": batch})
                    await self._run_unit(unit.name, unit.up, conn)
                    await conn.execute(
                        sql.SQL("INSERT INTO {} (name, batch) VALUES (%s, %s)").format(
                            sql.Identifier(self.table)
                        ),
                        [unit.name, batch],
                    )
        log.info("Migrations applied", extra={"batch": batch, "count": len(todo)})
        return [u.name for u in todo]

    async def migrate_rollback(self) -> List[str]:
        """Revert the most recent batch, newest unit first."""
        units = {u.name: u for u in self.migration_units()}
        with translate_errors("migrate rollback"):
            async with self._connections.transaction() as conn:
                await self._prepare(conn)
                applied_rows = await self._applied(conn)
                if not applied_rows:
                    log.info("Nothing to roll back")
                    return []
                last_batch = max(row["batch"] for row in applied_rows)
                names = [row["name"] for row in applied_rows if row["batch"] == last_batch]
                names.reverse()
                for name in names:
                    unit = units.get(name)
                    if unit is None or unit.down is None:
                        raise MigrationError(f"Migration {name} has no down(conn) to roll back")
                    log.info("Reverting migration", extra={"migration": name, "batch": last_batch})
                    await self._run_unit(name, unit.down, conn)
                    await conn.execute(
                        sql.SQL("DELETE FROM {} WHERE name = %s").format(sql.Identifier(self.table)),
                        [name],
                    )
        return names

    async def seed_run(self) -> List[str]:
        """Run every seed unit in order inside one transaction."""
        units = self.seed_units()
        if not units:
            return []
        with translate_errors("seed run"):
            async with self._connections.transaction() as conn:
                for unit in units:
                    log.info("Running seed", extra={"seed": unit.name})
                    await self._run_unit(unit.name, unit.run, conn)
        return [u.name for u in units]

    @staticmethod
    async def _run_unit(name: str, fn: UnitFn, conn: AsyncConnection) -> None:
        try:
            await fn(conn)
        except Exception as exc:
            log.error("Unit failed", extra={"unit": name, "error": str(exc)})
            raise


__all__ = [
    "MigrationUnit",
    "SeedUnit",
    "SchemaOrchestrator",
    "load_migrations",
    "load_seeds",
]
