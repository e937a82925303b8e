"""
Error taxonomy for sqlgate.

Driver exceptions are translated into this small hierarchy at the boundary of
every public operation so callers can handle failures without importing
psycopg. The original exception is always chained as ``__cause__``.

"Row not found" and "zero rows affected" are not errors: they are reported
as ``None`` and ``0`` respectively.
"""

from __future__ import annotations

import contextlib
from typing import Iterator

import psycopg
from psycopg_pool import PoolClosed, PoolTimeout


class DataAccessError(Exception):
    """Base class for every error raised by sqlgate."""


class ConnectivityError(DataAccessError):
    """The store is unreachable or the connection broke mid-operation."""


class ConstraintError(DataAccessError):
    """A write violated a uniqueness, foreign-key, not-null or check constraint."""


class PoolExhaustedError(DataAccessError):
    """No pooled connection became available within the acquire timeout."""


class ClosedError(DataAccessError):
    """The connection manager is not initialized or was already shut down."""


class InvalidPageRequest(DataAccessError, ValueError):
    """Pagination arguments out of range (page < 1, limit < 1, bad direction)."""


class MigrationError(DataAccessError):
    """A migration or seed unit could not be loaded or applied."""


@contextlib.contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """
    Map driver/pool exceptions raised inside the block to sqlgate errors.

    Order matters: the pool exceptions subclass ``psycopg.OperationalError``.
    Exceptions without a mapping propagate untouched.
    """
    try:
        yield
    except DataAccessError:
        raise
    except psycopg.IntegrityError as exc:
        raise ConstraintError(f"{operation}: {exc}") from exc
    except PoolClosed as exc:
        raise ClosedError(f"{operation}: connection pool is closed") from exc
    except PoolTimeout as exc:
        raise PoolExhaustedError(f"{operation}: {exc}") from exc
    except (psycopg.OperationalError, psycopg.InterfaceError) as exc:
        raise ConnectivityError(f"{operation}: {exc}") from exc


__all__ = [
    "DataAccessError",
    "ConnectivityError",
    "ConstraintError",
    "PoolExhaustedError",
    "ClosedError",
    "InvalidPageRequest",
    "MigrationError",
    "translate_errors",
]
