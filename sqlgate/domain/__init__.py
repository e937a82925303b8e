"""
Domain package for sqlgate.

Exports the result envelopes returned by the repository operations.
"""

from sqlgate.domain.models import Pagination, PaginationResult, Record

__all__ = [
    "Pagination",
    "PaginationResult",
    "Record",
]
