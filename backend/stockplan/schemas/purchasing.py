"""
Purchasing Pydantic Schemas (requisitions and purchase orders)
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Purchase Requisition
# ============================================================================

class PurchaseRequisitionCreate(BaseModel):
    """Manual purchase requisition"""
    material_id: int
    quantity: Decimal = Field(..., gt=0)
    unit: Optional[str] = Field(None, max_length=20)
    required_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseRequisitionResponse(BaseModel):
    id: int
    pr_code: str
    status: str
    material_id: int
    quantity: Decimal
    unit: Optional[str] = None
    required_date: Optional[date] = None
    source: str
    source_id: Optional[int] = None
    notes: Optional[str] = None
    requested_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Purchase Order
# ============================================================================

class PurchaseOrderLineCreate(BaseModel):
    """PO line; ``pr_id`` links the line to an APPROVED requisition"""
    material_id: int
    quantity: Decimal = Field(..., gt=0)
    unit: Optional[str] = Field(None, max_length=20)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    pr_id: Optional[int] = None


class PurchaseOrderCreate(BaseModel):
    supplier_name: str = Field(..., min_length=1, max_length=200)
    expected_date: Optional[date] = None
    currency: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None
    items: List[PurchaseOrderLineCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def unique_requisitions(self):
        pr_ids = [item.pr_id for item in self.items if item.pr_id is not None]
        if len(pr_ids) != len(set(pr_ids)):
            raise ValueError("A requisition can only be referenced by one line")
        return self


class ReceiveLine(BaseModel):
    """Quantity received against one PO line"""
    item_id: int
    quantity: Decimal = Field(..., gt=0)
    warehouse_id: int
    batch_no: Optional[str] = Field(None, max_length=50)


class ReceivePurchaseOrderRequest(BaseModel):
    items: List[ReceiveLine] = Field(..., min_length=1)


class PurchaseOrderItemResponse(BaseModel):
    id: int
    line_number: int
    material_id: int
    pr_id: Optional[int] = None
    quantity: Decimal
    unit: Optional[str] = None
    unit_price: Decimal
    amount: Decimal
    received_qty: Decimal
    status: str

    class Config:
        from_attributes = True


class PurchaseOrderResponse(BaseModel):
    id: int
    po_code: str
    supplier_name: str
    status: str
    total_amount: Decimal
    currency: str
    expected_date: Optional[date] = None
    received_date: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    items: List[PurchaseOrderItemResponse] = []

    class Config:
        from_attributes = True
