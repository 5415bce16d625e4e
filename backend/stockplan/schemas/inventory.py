"""
Inventory Pydantic Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Requests
# ============================================================================

class InboundRequest(BaseModel):
    """Receive stock into a warehouse"""
    material_id: int
    warehouse_id: int
    quantity: Decimal = Field(..., gt=0)
    batch_no: Optional[str] = Field(None, max_length=50)
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    inventory_type: Literal["RAW", "WIP", "FG", "SPARE"] = "RAW"
    reference_type: Literal["PO", "WO", "RETURN"]
    reference_id: Optional[int] = None
    reference_code: Optional[str] = Field(None, max_length=50)


class OutboundRequest(BaseModel):
    """Issue stock from a warehouse"""
    material_id: int
    warehouse_id: int
    quantity: Decimal = Field(..., gt=0)
    batch_no: Optional[str] = Field(None, max_length=50)
    reference_type: Literal["WO", "SO", "SCRAP"]
    reference_id: Optional[int] = None
    reference_code: Optional[str] = Field(None, max_length=50)


class AdjustRequest(BaseModel):
    """Signed stock correction"""
    material_id: int
    warehouse_id: int
    quantity: Decimal = Field(..., description="Signed: positive adds, negative removes")
    reason: str = Field(..., min_length=1, max_length=500)
    batch_no: Optional[str] = Field(None, max_length=50)

    @field_validator("quantity")
    @classmethod
    def non_zero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("quantity cannot be zero")
        return v


# ============================================================================
# Responses
# ============================================================================

class InventoryResponse(BaseModel):
    id: int
    material_id: int
    material_code: Optional[str] = None
    material_name: Optional[str] = None
    warehouse_id: int
    batch_no: str
    inventory_type: str
    quantity: Decimal
    reserved_qty: Decimal
    available_qty: Decimal
    unit: str
    unit_cost: Decimal
    safety_stock: Decimal
    max_stock: Decimal
    last_moved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryTransactionResponse(BaseModel):
    id: int
    transaction_code: str
    material_id: int
    warehouse_id: int
    batch_no: str
    transaction_type: str
    quantity: Decimal
    unit: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_code: Optional[str] = None
    reason: Optional[str] = None
    operator: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReconcileResponse(BaseModel):
    """Journal vs. stock record comparison for one material and warehouse"""
    material_id: int
    warehouse_id: int
    record_quantity: Decimal
    journal_quantity: Decimal
    discrepancy: Decimal
    balanced: bool
