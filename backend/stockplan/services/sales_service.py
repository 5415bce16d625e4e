"""
Sales Order Service

Open sales orders (PENDING, CONFIRMED, PICKING) are the demand MRP plans
against. Shipping records the shipment on the order only; stock is not
issued here.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload

from stockplan.core.settings import settings
from stockplan.core.status_config import (
    SO_ACTIONS,
    SalesOrderStatus,
    SOItemStatus,
    guard_transition,
)
from stockplan.db.session import transaction_scope
from stockplan.exceptions import NotFoundError
from stockplan.logging_config import get_logger
from stockplan.models.product import Product
from stockplan.models.sales_order import SalesOrder, SalesOrderItem
from stockplan.schemas.sales_order import SalesOrderCreate
from stockplan.services.inventory_helpers import ZERO, next_document_code, to_decimal

logger = get_logger(__name__)


class SalesService:

    def __init__(self, db: Session):
        self.db = db

    def create_so(self, request: SalesOrderCreate, user_id: Optional[str] = None) -> SalesOrder:
        with transaction_scope(self.db):
            so = SalesOrder(
                so_code=next_document_code(self.db, SalesOrder.so_code, "SO"),
                customer_name=request.customer_name,
                channel=request.channel,
                status=SalesOrderStatus.PENDING.value,
                currency=request.currency or settings.DEFAULT_CURRENCY,
                notes=request.notes,
                created_by=user_id,
            )
            total = ZERO
            for line in request.items:
                if not self.db.query(Product.id).filter(Product.id == line.product_id).first():
                    raise NotFoundError("Product", line.product_id)
                amount = to_decimal(line.quantity) * to_decimal(line.unit_price)
                so.items.append(
                    SalesOrderItem(
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        amount=amount,
                        shipped_qty=ZERO,
                        status=SOItemStatus.OPEN.value,
                    )
                )
                total += amount
            so.total_amount = total
            self.db.add(so)

        logger.info(
            f"Created SO {so.so_code} for {so.customer_name}",
            extra={"so_id": so.id, "lines": len(request.items), "total_amount": str(total)},
        )
        return so

    def list_sos(
        self,
        *,
        status: Optional[str] = None,
        customer: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[SalesOrder], int]:
        query = self.db.query(SalesOrder).options(selectinload(SalesOrder.items))
        if status:
            query = query.filter(SalesOrder.status == status)
        if customer:
            query = query.filter(SalesOrder.customer_name.ilike(f"%{customer}%"))

        total = query.count()
        items = (
            query.order_by(desc(SalesOrder.created_at), desc(SalesOrder.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def get_so(self, so_id: int, *, lock: bool = False) -> SalesOrder:
        query = self.db.query(SalesOrder).filter(SalesOrder.id == so_id)
        if lock:
            query = query.with_for_update().populate_existing()
        so = query.first()
        if not so:
            raise NotFoundError("SalesOrder", so_id)
        return so

    def confirm(self, so_id: int, user_id: Optional[str] = None) -> SalesOrder:
        return self._simple_transition(so_id, "confirm", user_id)

    def start_picking(self, so_id: int, user_id: Optional[str] = None) -> SalesOrder:
        with transaction_scope(self.db):
            so = self.get_so(so_id, lock=True)
            self._transition(so, "start_picking")
            for item in so.items:
                if item.status == SOItemStatus.OPEN.value:
                    item.status = SOItemStatus.PICKING.value
        self._log_transition(so, "start_picking", user_id)
        return so

    def ship(self, so_id: int, tracking_no: Optional[str] = None, user_id: Optional[str] = None) -> SalesOrder:
        # TODO: issue finished goods through InventoryLedger.outbound(reference_type="SO")
        # once sales orders carry a shipping warehouse
        with transaction_scope(self.db):
            so = self.get_so(so_id, lock=True)
            self._transition(so, "ship")
            so.tracking_no = tracking_no
            so.shipping_date = datetime.utcnow()
            for item in so.items:
                if item.status != SOItemStatus.CLOSED.value:
                    item.shipped_qty = item.quantity
                    item.status = SOItemStatus.SHIPPED.value
        self._log_transition(so, "ship", user_id)
        return so

    def deliver(self, so_id: int, user_id: Optional[str] = None) -> SalesOrder:
        return self._simple_transition(so_id, "deliver", user_id)

    def complete(self, so_id: int, user_id: Optional[str] = None) -> SalesOrder:
        return self._simple_transition(so_id, "complete", user_id)

    def cancel(self, so_id: int, user_id: Optional[str] = None) -> SalesOrder:
        """Cancel before shipment; closed lines stop counting as demand."""
        with transaction_scope(self.db):
            so = self.get_so(so_id, lock=True)
            self._transition(so, "cancel")
            for item in so.items:
                item.status = SOItemStatus.CLOSED.value
        self._log_transition(so, "cancel", user_id)
        return so

    def _simple_transition(self, so_id: int, action: str, user_id: Optional[str]) -> SalesOrder:
        with transaction_scope(self.db):
            so = self.get_so(so_id, lock=True)
            self._transition(so, action)
        self._log_transition(so, action, user_id)
        return so

    def _transition(self, so: SalesOrder, action: str) -> None:
        so.status = guard_transition(SO_ACTIONS, "SalesOrder", so.id, so.status, action)

    @staticmethod
    def _log_transition(so: SalesOrder, action: str, user_id: Optional[str]) -> None:
        logger.info(
            f"SO {so.so_code} {action} -> {so.status}",
            extra={"so_id": so.id, "action": action, "user": user_id},
        )
