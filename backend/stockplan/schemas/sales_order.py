"""
Sales Order Pydantic Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class SalesOrderLineCreate(BaseModel):
    product_id: int
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(Decimal("0"), ge=0)


class SalesOrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=200)
    channel: str = Field("DIRECT", max_length=30)
    currency: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None
    items: List[SalesOrderLineCreate] = Field(..., min_length=1)


class ShipRequest(BaseModel):
    tracking_no: Optional[str] = Field(None, max_length=100)


class SalesOrderItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    shipped_qty: Decimal
    status: str

    class Config:
        from_attributes = True


class SalesOrderResponse(BaseModel):
    id: int
    so_code: str
    customer_name: str
    channel: str
    status: str
    total_amount: Decimal
    currency: str
    tracking_no: Optional[str] = None
    shipping_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    items: List[SalesOrderItemResponse] = []

    class Config:
        from_attributes = True
