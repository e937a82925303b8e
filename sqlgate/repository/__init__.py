"""
Repository package for sqlgate: CRUD, pagination and batch mutation.
"""

from sqlgate.repository.batch import TransactionalBatchMutator
from sqlgate.repository.crud import CrudFacade
from sqlgate.repository.pagination import PaginationEngine

__all__ = [
    "CrudFacade",
    "PaginationEngine",
    "TransactionalBatchMutator",
]
