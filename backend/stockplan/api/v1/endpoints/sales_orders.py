"""
Sales Order API Endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockplan.api.v1.deps import get_current_actor, get_page_params
from stockplan.db.session import get_db
from stockplan.schemas.common import ListResponse, PageParams
from stockplan.schemas.sales_order import SalesOrderCreate, SalesOrderResponse, ShipRequest
from stockplan.services.sales_service import SalesService

router = APIRouter(prefix="/sales-orders", tags=["Sales Orders"])


@router.post("/", response_model=SalesOrderResponse, status_code=201)
def create_sales_order(
    request: SalesOrderCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return SalesService(db).create_so(request, user_id=actor)


@router.get("/", response_model=ListResponse[SalesOrderResponse])
def list_sales_orders(
    status: Optional[str] = Query(None),
    customer: Optional[str] = Query(None, description="Search customer name"),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    items, total = SalesService(db).list_sos(
        status=status, customer=customer, page=pagination.page, page_size=pagination.page_size
    )
    return ListResponse.build(
        [SalesOrderResponse.model_validate(so) for so in items],
        total, pagination.page, pagination.page_size,
    )


@router.get("/{so_id}", response_model=SalesOrderResponse)
def get_sales_order(so_id: int, db: Session = Depends(get_db)):
    return SalesService(db).get_so(so_id)


@router.post("/{so_id}/confirm", response_model=SalesOrderResponse)
def confirm_sales_order(so_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return SalesService(db).confirm(so_id, user_id=actor)


@router.post("/{so_id}/start-picking", response_model=SalesOrderResponse)
def start_picking_sales_order(so_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return SalesService(db).start_picking(so_id, user_id=actor)


@router.post("/{so_id}/ship", response_model=SalesOrderResponse)
def ship_sales_order(
    so_id: int,
    request: Optional[ShipRequest] = None,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    tracking_no = request.tracking_no if request else None
    return SalesService(db).ship(so_id, tracking_no=tracking_no, user_id=actor)


@router.post("/{so_id}/deliver", response_model=SalesOrderResponse)
def deliver_sales_order(so_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return SalesService(db).deliver(so_id, user_id=actor)


@router.post("/{so_id}/complete", response_model=SalesOrderResponse)
def complete_sales_order(so_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return SalesService(db).complete(so_id, user_id=actor)


@router.post("/{so_id}/cancel", response_model=SalesOrderResponse)
def cancel_sales_order(so_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return SalesService(db).cancel(so_id, user_id=actor)
