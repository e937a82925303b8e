"""
sqlgate - a generic asynchronous relational data-access layer for PostgreSQL.

One object through which application code performs:

- CRUD and existence checks parameterized by table name
- Offset pagination with concurrent count and data queries
- All-or-nothing batch inserts and keyed batch updates
- Migration and seed sequencing

without re-implementing connection pooling, query composition or
transaction discipline at every call site.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from sqlgate.config import Settings, get_settings
from sqlgate.domain.models import Pagination, PaginationResult
from sqlgate.errors import (
    ClosedError,
    ConnectivityError,
    ConstraintError,
    DataAccessError,
    InvalidPageRequest,
    MigrationError,
    PoolExhaustedError,
)
from sqlgate.infrastructure.db_factory import ConnectionManager
from sqlgate.query.predicates import AnyOf, Between, InSet, IsNull, Join, JoinKind, Operator, Where
from sqlgate.repository.batch import TransactionalBatchMutator
from sqlgate.repository.crud import CrudFacade
from sqlgate.repository.pagination import PaginationEngine
from sqlgate.schema.orchestrator import SchemaOrchestrator
from sqlgate.service import DataAccessService
from sqlgate.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Components
    "ConnectionManager",
    "CrudFacade",
    "PaginationEngine",
    "TransactionalBatchMutator",
    "SchemaOrchestrator",
    "DataAccessService",
    # Query descriptors
    "Where",
    "Between",
    "InSet",
    "IsNull",
    "AnyOf",
    "Join",
    "JoinKind",
    "Operator",
    # Results
    "Pagination",
    "PaginationResult",
    # Errors
    "DataAccessError",
    "ConnectivityError",
    "ConstraintError",
    "PoolExhaustedError",
    "ClosedError",
    "InvalidPageRequest",
    "MigrationError",
    # Logging
    "configure_logging",
    "get_logger",
]
