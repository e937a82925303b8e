"""
Domain models returned by sqlgate operations.

Rows themselves stay plain dicts (or the caller's pydantic model); these
models only describe the envelopes the access layer builds around them.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field

Record = Dict[str, Any]
ModelT = TypeVar("ModelT", bound=BaseModel)


class Pagination(BaseModel):
    """
    Page metadata derived from the count query.
    """

    total: int = Field(..., ge=0, description="Rows matching the filter.")
    page: int = Field(..., ge=1, description="1-based page number requested.")
    limit: int = Field(..., ge=1, description="Maximum rows per page.")
    total_pages: int = Field(..., ge=0, alias="totalPages", description="ceil(total / limit).")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @classmethod
    def derive(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PaginationResult(BaseModel):
    """
    One page of rows plus its metadata.
    """

    data: List[Any] = Field(default_factory=list)
    pagination: Pagination

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


def to_model(row: Optional[Record], model: Optional[Type[ModelT]]) -> Any:
    """Validate ``row`` into ``model`` when one is given; ``None`` passes through."""
    if row is None or model is None:
        return row
    return model.model_validate(row)


__all__ = ["Record", "Pagination", "PaginationResult", "to_model"]
