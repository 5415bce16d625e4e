"""
Work Order API Endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockplan.api.v1.deps import get_current_actor, get_page_params
from stockplan.db.session import get_db
from stockplan.schemas.common import ListResponse, PageParams
from stockplan.schemas.work_order import (
    CompleteRequest,
    PickRequest,
    ReportRequest,
    WorkOrderCreate,
    WorkOrderResponse,
)
from stockplan.services.work_order_service import WorkOrderService

router = APIRouter(prefix="/work-orders", tags=["Work Orders"])


@router.post("/", response_model=WorkOrderResponse, status_code=201)
def create_work_order(
    request: WorkOrderCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return WorkOrderService(db).create_wo(request, user_id=actor)


@router.get("/", response_model=ListResponse[WorkOrderResponse])
def list_work_orders(
    status: Optional[str] = Query(None),
    product_id: Optional[int] = Query(None),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    items, total = WorkOrderService(db).list_wos(
        status=status, product_id=product_id, page=pagination.page, page_size=pagination.page_size
    )
    return ListResponse.build(
        [WorkOrderResponse.model_validate(wo) for wo in items],
        total, pagination.page, pagination.page_size,
    )


@router.get("/{wo_id}", response_model=WorkOrderResponse)
def get_work_order(wo_id: int, db: Session = Depends(get_db)):
    return WorkOrderService(db).get_wo(wo_id)


@router.post("/{wo_id}/plan", response_model=WorkOrderResponse)
def plan_work_order(wo_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return WorkOrderService(db).plan(wo_id, user_id=actor)


@router.post("/{wo_id}/release", response_model=WorkOrderResponse)
def release_work_order(wo_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return WorkOrderService(db).release(wo_id, user_id=actor)


@router.post("/{wo_id}/pick", response_model=WorkOrderResponse)
def pick_work_order(
    wo_id: int,
    request: PickRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Issue all outstanding materials; fails without moving stock on any shortage."""
    return WorkOrderService(db).pick(wo_id, request.warehouse_id, user_id=actor)


@router.post("/{wo_id}/report", response_model=WorkOrderResponse)
def report_work_order(
    wo_id: int,
    request: ReportRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return WorkOrderService(db).report(wo_id, request, user_id=actor)


@router.post("/{wo_id}/complete", response_model=WorkOrderResponse)
def complete_work_order(
    wo_id: int,
    request: Optional[CompleteRequest] = None,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    warehouse_id = request.warehouse_id if request else None
    return WorkOrderService(db).complete(wo_id, warehouse_id=warehouse_id, user_id=actor)


@router.post("/{wo_id}/close", response_model=WorkOrderResponse)
def close_work_order(wo_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return WorkOrderService(db).close(wo_id, user_id=actor)
