"""
Demand Aggregator

Open sales-order quantity per product: the unshipped remainder of every line
that is not closed, on orders that are still PENDING, CONFIRMED or PICKING.
"""
from decimal import Decimal
from typing import Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockplan.core.status_config import SO_DEMAND_STATUSES, SOItemStatus
from stockplan.models.sales_order import SalesOrder, SalesOrderItem
from stockplan.services.inventory_helpers import ZERO, to_decimal


class DemandAggregator:

    def __init__(self, db: Session):
        self.db = db

    def pending_demand(self) -> Dict[int, Decimal]:
        """Return {product_id: open quantity}; empty when nothing is open."""
        rows = (
            self.db.query(
                SalesOrderItem.product_id,
                func.sum(SalesOrderItem.quantity - SalesOrderItem.shipped_qty),
            )
            .join(SalesOrder, SalesOrder.id == SalesOrderItem.sales_order_id)
            .filter(
                SalesOrder.status.in_(SO_DEMAND_STATUSES),
                SalesOrderItem.status != SOItemStatus.CLOSED.value,
            )
            .group_by(SalesOrderItem.product_id)
            .all()
        )

        demand: Dict[int, Decimal] = {}
        for product_id, open_qty in rows:
            qty = to_decimal(open_qty)
            if qty > ZERO:
                demand[product_id] = qty
        return demand
