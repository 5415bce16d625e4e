"""
Inventory API Endpoints

Stock queries, the transaction journal and direct ledger operations
(inbound, outbound, adjust).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockplan.api.v1.deps import get_current_actor, get_page_params
from stockplan.db.session import get_db
from stockplan.schemas.common import ListResponse, PageParams
from stockplan.schemas.inventory import (
    AdjustRequest,
    InboundRequest,
    InventoryResponse,
    InventoryTransactionResponse,
    OutboundRequest,
    ReconcileResponse,
)
from stockplan.services.inventory_service import InventoryService

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("/", response_model=ListResponse[InventoryResponse])
def list_inventory(
    material_id: Optional[int] = Query(None),
    warehouse_id: Optional[int] = Query(None),
    inventory_type: Optional[str] = Query(None, description="RAW, WIP, FG or SPARE"),
    keyword: Optional[str] = Query(None, description="Search material code or name"),
    low_stock: bool = Query(False, description="Only records below safety stock"),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    items, total = InventoryService(db).list_inventory(
        material_id=material_id,
        warehouse_id=warehouse_id,
        inventory_type=inventory_type,
        keyword=keyword,
        low_stock=low_stock,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return ListResponse.build(
        [InventoryResponse.model_validate(i) for i in items],
        total, pagination.page, pagination.page_size,
    )


@router.get("/material/{material_id}", response_model=List[InventoryResponse])
def get_material_inventory(material_id: int, db: Session = Depends(get_db)):
    return InventoryService(db).get_by_material(material_id)


@router.get("/alerts", response_model=List[InventoryResponse])
def get_low_stock_alerts(db: Session = Depends(get_db)):
    """Stock records whose available quantity is below their safety stock."""
    return InventoryService(db).get_alerts()


@router.get("/transactions", response_model=ListResponse[InventoryTransactionResponse])
def list_transactions(
    material_id: Optional[int] = Query(None),
    warehouse_id: Optional[int] = Query(None),
    transaction_type: Optional[str] = Query(None),
    reference_type: Optional[str] = Query(None),
    reference_id: Optional[int] = Query(None),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    items, total = InventoryService(db).list_transactions(
        material_id=material_id,
        warehouse_id=warehouse_id,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return ListResponse.build(
        [InventoryTransactionResponse.model_validate(t) for t in items],
        total, pagination.page, pagination.page_size,
    )


@router.post("/inbound", response_model=InventoryTransactionResponse, status_code=201)
def inbound(
    request: InboundRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return InventoryService(db).inbound(request, operator=actor)


@router.post("/outbound", response_model=List[InventoryTransactionResponse], status_code=201)
def outbound(
    request: OutboundRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Issue stock oldest-first; one journal row per stock record debited."""
    return InventoryService(db).outbound(request, operator=actor)


@router.post("/adjust", response_model=InventoryTransactionResponse, status_code=201)
def adjust(
    request: AdjustRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return InventoryService(db).adjust(request, operator=actor)


@router.get("/reconcile", response_model=ReconcileResponse)
def reconcile(
    material_id: int = Query(...),
    warehouse_id: int = Query(...),
    db: Session = Depends(get_db),
):
    return InventoryService(db).reconcile(material_id, warehouse_id)
