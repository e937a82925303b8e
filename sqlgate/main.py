from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from sqlgate.config import Settings, get_settings
from sqlgate.errors import DataAccessError
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.schema.orchestrator import SchemaOrchestrator
from sqlgate.utils.logging import configure_logging

app = typer.Typer(help="sqlgate relational access layer CLI.")

_SECRET_FIELDS = {"db_password"}


def settings_table(settings: Settings) -> Table:
    """Render effective settings as a rich table, secrets masked."""
    table = Table(title="sqlgate settings", box=box.ROUNDED)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    for name, value in settings.model_dump().items():
        shown = "********" if name in _SECRET_FIELDS and value else str(value)
        table.add_row(name, shown)
    return table


def _run_schema(
    action: Callable[[SchemaOrchestrator], Awaitable[List[str]]],
    migrations_dir: Optional[str],
    seeds_dir: Optional[str],
) -> List[str]:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    async def _go() -> List[str]:
        manager = ConnectionManager(settings)
        await manager.init()
        try:
            orchestrator = SchemaOrchestrator(
                manager, migrations=migrations_dir, seeds=seeds_dir
            )
            return await action(orchestrator)
        finally:
            await manager.shutdown()

    try:
        return asyncio.run(_go())
    except DataAccessError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


def _echo_units(verb: str, names: List[str]) -> None:
    if not names:
        typer.echo(f"Nothing to {verb}.")
        return
    for name in names:
        typer.echo(f"{verb}: {name}")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    Console().print(settings_table(get_settings()))


@app.command()
def health() -> None:
    """
    Probe the database; exit code 1 when it is unreachable.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    async def _probe() -> bool:
        manager = ConnectionManager(settings)
        try:
            await manager.init()
        except DataAccessError:
            return False
        try:
            return await manager.health_check()
        finally:
            await manager.shutdown()

    healthy = asyncio.run(_probe())
    typer.echo("healthy" if healthy else "unhealthy")
    if not healthy:
        raise typer.Exit(code=1)


@app.command()
def migrate(
    migrations_dir: Optional[str] = typer.Option(
        None, "--migrations-dir", "-m", help="Directory of migration modules (default MIGRATIONS_DIR)."
    ),
) -> None:
    """
    Apply all pending migrations as one batch.
    """
    _echo_units("applied", _run_schema(lambda o: o.migrate_latest(), migrations_dir, None))


@app.command()
def rollback(
    migrations_dir: Optional[str] = typer.Option(
        None, "--migrations-dir", "-m", help="Directory of migration modules (default MIGRATIONS_DIR)."
    ),
) -> None:
    """
    Revert the most recent migration batch.
    """
    _echo_units("reverted", _run_schema(lambda o: o.migrate_rollback(), migrations_dir, None))


@app.command()
def seed(
    seeds_dir: Optional[str] = typer.Option(
        None, "--seeds-dir", "-s", help="Directory of seed modules (default SEEDS_DIR)."
    ),
) -> None:
    """
    Run every seed unit.
    """
    _echo_units("seeded", _run_schema(lambda o: o.seed_run(), None, seeds_dir))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
