"""
Infrastructure package for sqlgate.

Centralizes database connectivity concerns (pool lifecycle, health probe,
transaction-scoped handles). Keep this layer focused on I/O and resource
management, decoupled from query composition.
"""

from sqlgate.infrastructure.db_factory import ConnectionManager, build_dsn

__all__ = [
    "ConnectionManager",
    "build_dsn",
]
