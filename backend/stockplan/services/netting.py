"""
Netting Calculator

gross = bom gross + safety stock
net = max(0, gross - on hand - in transit - in production)
planned order qty = net (no lot sizing or minimum-order rounding)
required date = today + horizon, order date = required date - lead time
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from stockplan.services.bom_explosion import MaterialRequirement
from stockplan.services.inventory_helpers import ZERO
from stockplan.services.supply import SupplyPosition


@dataclass
class NetRequirement:
    """One netted material; becomes an MRPResult row"""
    material_id: int
    material_code: str
    material_name: str
    unit: Optional[str]
    gross_requirement: Decimal
    on_hand: Decimal
    in_transit: Decimal
    in_production: Decimal
    safety_stock: Decimal
    net_requirement: Decimal
    planned_order_qty: Decimal
    action_type: str
    required_date: date
    lead_time_days: int
    order_date: date


def calculate_net_requirement(
    requirement: MaterialRequirement,
    supply: SupplyPosition,
    horizon_days: int,
    today: Optional[date] = None,
) -> NetRequirement:
    today = today or datetime.utcnow().date()
    gross = requirement.gross_requirement + requirement.safety_stock
    net = gross - supply.on_hand - supply.in_transit - supply.in_production
    if net < ZERO:
        net = ZERO

    required_date = today + timedelta(days=horizon_days)
    order_date = required_date - timedelta(days=requirement.lead_time_days)

    return NetRequirement(
        material_id=requirement.material_id,
        material_code=requirement.material_code,
        material_name=requirement.material_name,
        unit=requirement.unit,
        gross_requirement=gross,
        on_hand=supply.on_hand,
        in_transit=supply.in_transit,
        in_production=supply.in_production,
        safety_stock=requirement.safety_stock,
        net_requirement=net,
        planned_order_qty=net,
        action_type=requirement.action_type,
        required_date=required_date,
        lead_time_days=requirement.lead_time_days,
        order_date=order_date,
    )
