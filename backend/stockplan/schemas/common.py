"""
Shapes shared by every router: the error body and paged list envelopes.
"""
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

ItemT = TypeVar("ItemT")


class ErrorResponse(BaseModel):
    """
    Body returned for every handled error.

    ``error`` is one of VALIDATION_ERROR, NOT_FOUND, CONFLICT,
    CONCURRENCY_ERROR, INVALID_STATE_TRANSITION, BUSINESS_RULE_ERROR,
    INSUFFICIENT_STOCK, NEGATIVE_STOCK, UPSTREAM_DEPENDENCY_FAILURE,
    INTEGRATION_ERROR, DATABASE_ERROR or INTERNAL_ERROR.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "INSUFFICIENT_STOCK",
                "message": "Insufficient stock for BOLT-M8: requested 100, available 60",
                "details": {"material": "BOLT-M8", "requested": "100", "available": "60"},
                "timestamp": "2026-03-02T08:15:00Z",
            }
        }
    )

    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=500)


class PaginationMeta(BaseModel):
    total: int = Field(..., description="Rows matching the filters")
    page: int
    page_size: int
    returned: int = Field(..., description="Rows in this page")


class ListResponse(BaseModel, Generic[ItemT]):
    items: List[ItemT]
    pagination: PaginationMeta

    @classmethod
    def build(cls, items: Sequence[Any], total: int, page: int, page_size: int):
        items = list(items)
        meta = PaginationMeta(total=total, page=page, page_size=page_size, returned=len(items))
        return cls(items=items, pagination=meta)
