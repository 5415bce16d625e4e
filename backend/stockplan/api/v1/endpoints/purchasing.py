"""
Purchasing API Endpoints - requisitions and purchase orders
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockplan.api.v1.deps import get_current_actor, get_page_params
from stockplan.db.session import get_db
from stockplan.schemas.common import ListResponse, PageParams
from stockplan.schemas.purchasing import (
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    PurchaseRequisitionCreate,
    PurchaseRequisitionResponse,
    ReceivePurchaseOrderRequest,
)
from stockplan.services.procurement_service import ProcurementService

requisitions_router = APIRouter(prefix="/purchase-requisitions", tags=["Purchase Requisitions"])
orders_router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


# ============================================================================
# Purchase Requisitions
# ============================================================================

@requisitions_router.post("/", response_model=PurchaseRequisitionResponse, status_code=201)
def create_requisition(
    request: PurchaseRequisitionCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return ProcurementService(db).create_pr(request, user_id=actor)


@requisitions_router.get("/", response_model=ListResponse[PurchaseRequisitionResponse])
def list_requisitions(
    status: Optional[str] = Query(None),
    source: Optional[str] = Query(None, description="MANUAL or MRP"),
    source_id: Optional[int] = Query(None, description="MRP run id"),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    items, total = ProcurementService(db).list_prs(
        status=status,
        source=source,
        source_id=source_id,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return ListResponse.build(
        [PurchaseRequisitionResponse.model_validate(pr) for pr in items],
        total, pagination.page, pagination.page_size,
    )


@requisitions_router.get("/{pr_id}", response_model=PurchaseRequisitionResponse)
def get_requisition(pr_id: int, db: Session = Depends(get_db)):
    return ProcurementService(db).get_pr(pr_id)


@requisitions_router.post("/{pr_id}/approve", response_model=PurchaseRequisitionResponse)
def approve_requisition(
    pr_id: int,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return ProcurementService(db).approve_pr(pr_id, user_id=actor)


# ============================================================================
# Purchase Orders
# ============================================================================

@orders_router.post("/", response_model=PurchaseOrderResponse, status_code=201)
def create_purchase_order(
    request: PurchaseOrderCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return ProcurementService(db).create_po(request, user_id=actor)


@orders_router.get("/", response_model=ListResponse[PurchaseOrderResponse])
def list_purchase_orders(
    status: Optional[str] = Query(None),
    supplier: Optional[str] = Query(None, description="Search supplier name"),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    items, total = ProcurementService(db).list_pos(
        status=status, supplier=supplier, page=pagination.page, page_size=pagination.page_size
    )
    return ListResponse.build(
        [PurchaseOrderResponse.model_validate(po) for po in items],
        total, pagination.page, pagination.page_size,
    )


@orders_router.get("/{po_id}", response_model=PurchaseOrderResponse)
def get_purchase_order(po_id: int, db: Session = Depends(get_db)):
    return ProcurementService(db).get_po(po_id)


@orders_router.post("/{po_id}/submit", response_model=PurchaseOrderResponse)
def submit_purchase_order(po_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ProcurementService(db).submit_po(po_id, user_id=actor)


@orders_router.post("/{po_id}/approve", response_model=PurchaseOrderResponse)
def approve_purchase_order(po_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ProcurementService(db).approve_po(po_id, user_id=actor)


@orders_router.post("/{po_id}/reject", response_model=PurchaseOrderResponse)
def reject_purchase_order(po_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ProcurementService(db).reject_po(po_id, user_id=actor)


@orders_router.post("/{po_id}/send", response_model=PurchaseOrderResponse)
def send_purchase_order(po_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ProcurementService(db).send_po(po_id, user_id=actor)


@orders_router.post("/{po_id}/receive", response_model=PurchaseOrderResponse)
def receive_purchase_order(
    po_id: int,
    request: ReceivePurchaseOrderRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Receive items against a SENT or PARTIAL purchase order.

    Each received line posts a PURCHASE_IN journal row into the given
    warehouse; the whole receipt commits or fails together.
    """
    return ProcurementService(db).receive_po(po_id, request.items, user_id=actor)


@orders_router.post("/{po_id}/close", response_model=PurchaseOrderResponse)
def close_purchase_order(po_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ProcurementService(db).close_po(po_id, user_id=actor)


@orders_router.post("/{po_id}/cancel", response_model=PurchaseOrderResponse)
def cancel_purchase_order(po_id: int, actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ProcurementService(db).cancel_po(po_id, user_id=actor)
