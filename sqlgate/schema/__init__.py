from sqlgate.schema.orchestrator import (
    MigrationUnit,
    SchemaOrchestrator,
    SeedUnit,
    load_migrations,
    load_seeds,
)

__all__ = [
    "MigrationUnit",
    "SchemaOrchestrator",
    "SeedUnit",
    "load_migrations",
    "load_seeds",
]
