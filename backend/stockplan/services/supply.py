"""
Supply Position Resolver

On-hand, in-transit and in-production quantities per material. A failed
query degrades to zero so one bad lookup does not abort an MRP run, but it
is logged and kept in ``diagnostics`` for the run record: zero supply
inflates the shortage the run reports.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockplan.core.status_config import (
    PO_IN_TRANSIT_STATUSES,
    WO_ACTIVE_STATUSES,
    POItemStatus,
)
from stockplan.logging_config import get_logger
from stockplan.models.inventory import Inventory
from stockplan.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from stockplan.models.work_order import WorkOrder
from stockplan.services.inventory_helpers import ZERO, to_decimal

logger = get_logger(__name__)


@dataclass
class SupplyPosition:
    on_hand: Decimal = ZERO
    in_transit: Decimal = ZERO
    in_production: Decimal = ZERO


class SupplyPositionResolver:

    def __init__(self, db: Session):
        self.db = db
        self.diagnostics: List[Dict[str, Any]] = []

    def on_hand(self, material_id: int) -> Decimal:
        """Available (unreserved) stock across every warehouse and batch."""
        return self.db.query(
            func.coalesce(func.sum(Inventory.available_qty), 0)
        ).filter(Inventory.material_id == material_id).scalar()

    def in_transit(self, material_id: int) -> Decimal:
        """Unreceived quantity on open lines of approved/sent/partial POs."""
        return (
            self.db.query(
                func.coalesce(
                    func.sum(PurchaseOrderItem.quantity - PurchaseOrderItem.received_qty), 0
                )
            )
            .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.po_id)
            .filter(
                PurchaseOrderItem.material_id == material_id,
                PurchaseOrder.status.in_(PO_IN_TRANSIT_STATUSES),
                PurchaseOrderItem.status != POItemStatus.CLOSED.value,
            )
            .scalar()
        )

    def in_production(self, material_id: int) -> Decimal:
        """Remaining quantity on active work orders producing the material.

        An over-reported order contributes zero, never a negative remainder.
        """
        remaining = case(
            (WorkOrder.completed_qty >= WorkOrder.planned_qty, 0),
            else_=WorkOrder.planned_qty - WorkOrder.completed_qty,
        )
        return (
            self.db.query(func.coalesce(func.sum(remaining), 0))
            .filter(
                WorkOrder.material_id == material_id,
                WorkOrder.status.in_(WO_ACTIVE_STATUSES),
            )
            .scalar()
        )

    def resolve(self, material_id: int) -> SupplyPosition:
        return SupplyPosition(
            on_hand=self._safe("on_hand", self.on_hand, material_id),
            in_transit=self._safe("in_transit", self.in_transit, material_id),
            in_production=self._safe("in_production", self.in_production, material_id),
        )

    def _safe(self, name: str, query: Callable[[int], Any], material_id: int) -> Decimal:
        try:
            # A failed statement only rolls back its own savepoint
            with self.db.begin_nested():
                value = query(material_id)
            return to_decimal(value)
        except SQLAlchemyError as e:
            logger.warning(
                f"Supply lookup '{name}' failed for material {material_id}; treating as zero",
                exc_info=True,
                extra={"material_id": material_id, "query": name},
            )
            self.diagnostics.append(
                {"material_id": material_id, "query": name, "error": str(e)}
            )
            return ZERO
