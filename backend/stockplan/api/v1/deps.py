"""
API Dependencies

Caller identity and common query parameter dependencies shared by the
routers. Authentication is handled by the gateway in front of this service;
the acting user arrives in the ``X-User-Id`` header.
"""
from typing import Optional

from fastapi import Header, Query

from stockplan.schemas.common import PageParams

SYSTEM_ACTOR = "system"


def get_current_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id", max_length=100),
) -> str:
    """User recorded on documents and journal rows (``system`` if absent)."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return SYSTEM_ACTOR


def get_page_params(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(50, ge=1, le=500, description="Records per page (max 500)"),
) -> PageParams:
    """
    Common pagination dependency for list endpoints.

    Usage:
        @router.get("/")
        def list_items(pagination: PageParams = Depends(get_page_params)):
            ...
    """
    return PageParams(page=page, page_size=page_size)
