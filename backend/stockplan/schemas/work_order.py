"""
Work Order Pydantic Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class WorkOrderCreate(BaseModel):
    """Create a work order from a product's BOM"""
    product_id: int
    planned_qty: Decimal = Field(..., gt=0)
    bom_header_id: Optional[int] = Field(None, description="Defaults to the latest released BOM")
    priority: int = Field(3, ge=1, le=5)
    warehouse_id: Optional[int] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    notes: Optional[str] = None


class PickRequest(BaseModel):
    warehouse_id: int


class ReportRequest(BaseModel):
    quantity: Decimal = Field(..., gt=0)
    scrap_qty: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None


class CompleteRequest(BaseModel):
    warehouse_id: Optional[int] = Field(None, description="Defaults to the work order's warehouse")


class WorkOrderMaterialResponse(BaseModel):
    id: int
    material_id: int
    material_code: Optional[str] = None
    material_name: Optional[str] = None
    unit: Optional[str] = None
    required_qty: Decimal
    issued_qty: Decimal

    class Config:
        from_attributes = True


class WorkOrderReportResponse(BaseModel):
    id: int
    quantity: Decimal
    scrap_qty: Decimal
    notes: Optional[str] = None
    reported_by: Optional[str] = None
    reported_at: datetime

    class Config:
        from_attributes = True


class WorkOrderResponse(BaseModel):
    id: int
    wo_code: str
    product_id: int
    material_id: int
    bom_header_id: Optional[int] = None
    planned_qty: Decimal
    completed_qty: Decimal
    scrap_qty: Decimal
    unit: Optional[str] = None
    status: str
    priority: int
    warehouse_id: Optional[int] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    source_type: str
    source_id: Optional[int] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    materials: List[WorkOrderMaterialResponse] = []
    reports: List[WorkOrderReportResponse] = []

    class Config:
        from_attributes = True
