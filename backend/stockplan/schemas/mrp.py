"""
MRP Pydantic Schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MRPRunRequest(BaseModel):
    """Start an MRP run"""
    product_id: Optional[int] = Field(None, description="Plan a single product; all active products if omitted")
    planning_horizon_days: Optional[int] = Field(
        None, description="Days ahead to plan; zero or omitted uses the configured default"
    )


class MRPRunResponse(BaseModel):
    id: int
    run_code: str
    status: str
    product_id: Optional[int] = None
    planning_horizon: int
    total_items: int
    prs_generated: int
    wos_generated: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    error_message: Optional[str] = None
    diagnostics: Optional[List[Dict[str, Any]]] = None
    created_by: Optional[str] = None
    applied_by: Optional[str] = None

    class Config:
        from_attributes = True


class MRPResultResponse(BaseModel):
    id: int
    mrp_run_id: int
    material_id: int
    material_code: str
    material_name: str
    unit: Optional[str] = None
    gross_requirement: Decimal
    on_hand_stock: Decimal
    in_transit_qty: Decimal
    in_production_qty: Decimal
    safety_stock: Decimal
    net_requirement: Decimal
    planned_order_qty: Decimal
    action_type: str
    required_date: Optional[date] = None
    lead_time_days: int
    order_date: Optional[date] = None
    applied: bool

    class Config:
        from_attributes = True
