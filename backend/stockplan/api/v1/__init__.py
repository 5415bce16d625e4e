"""
Version 1 of the StockPlan HTTP API.
"""
from fastapi import APIRouter

from stockplan.api.v1.endpoints import (
    inventory,
    mrp,
    purchasing,
    sales_orders,
    work_orders,
)
from stockplan.schemas.common import ErrorResponse

# Every route can fail with the shared error body; document it once here.
router = APIRouter(
    responses={code: {"model": ErrorResponse} for code in (400, 404, 409, 422, 502)},
)

router.include_router(mrp.router)
router.include_router(inventory.router)
router.include_router(purchasing.requisitions_router)
router.include_router(purchasing.orders_router)
router.include_router(work_orders.router)
router.include_router(sales_orders.router)
