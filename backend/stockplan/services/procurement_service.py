"""
Procurement Service - purchase requisitions and purchase orders

Every public mutation is one transaction. Status changes go through
``guard_transition`` first, so a rejected action leaves the document and
the ledger untouched.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload

from stockplan.core.settings import settings
from stockplan.core.status_config import (
    PO_ACTIONS,
    PR_ACTIONS,
    POItemStatus,
    POStatus,
    PRSource,
    PRStatus,
    guard_transition,
)
from stockplan.db.session import transaction_scope
from stockplan.exceptions import NotFoundError, ValidationError
from stockplan.logging_config import get_logger
from stockplan.models.product import Material
from stockplan.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseRequisition,
)
from stockplan.schemas.purchasing import (
    PurchaseOrderCreate,
    PurchaseRequisitionCreate,
    ReceiveLine,
)
from stockplan.services.inventory_helpers import ZERO, next_document_code, to_decimal
from stockplan.services.inventory_ledger import InventoryLedger

logger = get_logger(__name__)


class ProcurementService:
    """Requisition and purchase order workflows."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Purchase Requisitions
    # =========================================================================

    def create_pr(self, request: PurchaseRequisitionCreate, user_id: Optional[str] = None) -> PurchaseRequisition:
        with transaction_scope(self.db):
            material = self._get_material(request.material_id)
            requisition = PurchaseRequisition(
                pr_code=next_document_code(self.db, PurchaseRequisition.pr_code, "PR"),
                status=PRStatus.DRAFT.value,
                material_id=material.id,
                quantity=request.quantity,
                unit=request.unit or material.unit,
                required_date=request.required_date,
                source=PRSource.MANUAL.value,
                notes=request.notes,
                requested_by=user_id,
            )
            self.db.add(requisition)

        logger.info(f"Created PR {requisition.pr_code}", extra={"pr_id": requisition.id})
        return requisition

    def list_prs(
        self,
        *,
        status: Optional[str] = None,
        source: Optional[str] = None,
        source_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[PurchaseRequisition], int]:
        query = self.db.query(PurchaseRequisition)
        if status:
            query = query.filter(PurchaseRequisition.status == status)
        if source:
            query = query.filter(PurchaseRequisition.source == source)
        if source_id is not None:
            query = query.filter(PurchaseRequisition.source_id == source_id)

        total = query.count()
        items = (
            query.order_by(desc(PurchaseRequisition.created_at), desc(PurchaseRequisition.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def get_pr(self, pr_id: int, *, lock: bool = False) -> PurchaseRequisition:
        query = self.db.query(PurchaseRequisition).filter(PurchaseRequisition.id == pr_id)
        if lock:
            query = query.with_for_update().populate_existing()
        requisition = query.first()
        if not requisition:
            raise NotFoundError("PurchaseRequisition", pr_id)
        return requisition

    def approve_pr(self, pr_id: int, user_id: Optional[str] = None) -> PurchaseRequisition:
        with transaction_scope(self.db):
            requisition = self.get_pr(pr_id, lock=True)
            requisition.status = guard_transition(
                PR_ACTIONS, "PurchaseRequisition", pr_id, requisition.status, "approve"
            )
            requisition.approved_by = user_id
            requisition.approved_at = datetime.utcnow()

        logger.info(f"Approved PR {requisition.pr_code}", extra={"pr_id": pr_id, "user": user_id})
        return requisition

    # =========================================================================
    # Purchase Orders
    # =========================================================================

    def create_po(self, request: PurchaseOrderCreate, user_id: Optional[str] = None) -> PurchaseOrder:
        """
        Create a DRAFT purchase order. Lines that reference a requisition
        move it APPROVED -> ORDERED in the same transaction.
        """
        with transaction_scope(self.db):
            po = PurchaseOrder(
                po_code=next_document_code(self.db, PurchaseOrder.po_code, "PO"),
                supplier_name=request.supplier_name,
                status=POStatus.DRAFT.value,
                currency=request.currency or settings.DEFAULT_CURRENCY,
                expected_date=request.expected_date,
                notes=request.notes,
                created_by=user_id,
            )

            total = ZERO
            for line_number, line in enumerate(request.items, start=1):
                material = self._get_material(line.material_id)
                if line.pr_id is not None:
                    requisition = self.get_pr(line.pr_id, lock=True)
                    if requisition.material_id != material.id:
                        raise ValidationError(
                            f"Requisition {requisition.pr_code} is for a different material",
                            field="pr_id",
                            value=line.pr_id,
                        )
                    requisition.status = guard_transition(
                        PR_ACTIONS, "PurchaseRequisition", requisition.id, requisition.status, "order"
                    )

                amount = to_decimal(line.quantity) * to_decimal(line.unit_price)
                po.items.append(
                    PurchaseOrderItem(
                        line_number=line_number,
                        material_id=material.id,
                        pr_id=line.pr_id,
                        quantity=line.quantity,
                        unit=line.unit or material.unit,
                        unit_price=line.unit_price,
                        amount=amount,
                        received_qty=ZERO,
                        status=POItemStatus.OPEN.value,
                    )
                )
                total += amount

            po.total_amount = total
            self.db.add(po)

        logger.info(
            f"Created PO {po.po_code} for {po.supplier_name}",
            extra={"po_id": po.id, "lines": len(request.items), "total_amount": str(total)},
        )
        return po

    def list_pos(
        self,
        *,
        status: Optional[str] = None,
        supplier: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[PurchaseOrder], int]:
        query = self.db.query(PurchaseOrder).options(selectinload(PurchaseOrder.items))
        if status:
            query = query.filter(PurchaseOrder.status == status)
        if supplier:
            query = query.filter(PurchaseOrder.supplier_name.ilike(f"%{supplier}%"))

        total = query.count()
        items = (
            query.order_by(desc(PurchaseOrder.created_at), desc(PurchaseOrder.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def get_po(self, po_id: int, *, lock: bool = False) -> PurchaseOrder:
        query = self.db.query(PurchaseOrder).filter(PurchaseOrder.id == po_id)
        if lock:
            query = query.with_for_update().populate_existing()
        po = query.first()
        if not po:
            raise NotFoundError("PurchaseOrder", po_id)
        return po

    def submit_po(self, po_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            if not po.items:
                raise ValidationError("Cannot submit a purchase order with no lines", field="items")
            self._transition(po, "submit")
        self._log_transition(po, "submit", user_id)
        return po

    def approve_po(self, po_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            self._transition(po, "approve")
            po.approved_by = user_id
            po.approved_at = datetime.utcnow()
        self._log_transition(po, "approve", user_id)
        return po

    def reject_po(self, po_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            self._transition(po, "reject")
        self._log_transition(po, "reject", user_id)
        return po

    def send_po(self, po_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            self._transition(po, "send")
            po.sent_at = datetime.utcnow()
        self._log_transition(po, "send", user_id)
        return po

    def receive_po(self, po_id: int, lines: List[ReceiveLine], user_id: Optional[str] = None) -> PurchaseOrder:
        """
        Receive goods against a SENT or PARTIAL purchase order.

        Each line is validated (belongs to this PO, quantity within what is
        still outstanding) before any stock moves. Stock is posted through
        the ledger as PURCHASE_IN at the line's unit price. The PO becomes
        RECEIVED only when every line is fully received, otherwise PARTIAL.
        """
        if not lines:
            raise ValidationError("At least one line must be received", field="items")

        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            guard_transition(PO_ACTIONS, "PurchaseOrder", po_id, po.status, "receive")

            po_items: Dict[int, PurchaseOrderItem] = {item.id: item for item in po.items}
            pending: Dict[int, Decimal] = {}
            for line in lines:
                item = po_items.get(line.item_id)
                if item is None:
                    raise NotFoundError(
                        "PurchaseOrderItem", line.item_id, details={"po_id": str(po_id)}
                    )
                if item.status == POItemStatus.CLOSED.value:
                    raise ValidationError(
                        f"Line {item.line_number} is closed", field="item_id", value=line.item_id
                    )
                qty = to_decimal(line.quantity)
                if qty <= ZERO:
                    raise ValidationError("quantity must be greater than zero", field="quantity", value=qty)
                outstanding = to_decimal(item.quantity) - to_decimal(item.received_qty)
                already = pending.get(item.id, ZERO)
                if already + qty > outstanding:
                    raise ValidationError(
                        f"Line {item.line_number}: receiving {already + qty} exceeds outstanding {outstanding}",
                        field="quantity",
                        value=qty,
                        details={"item_id": item.id, "outstanding": str(outstanding)},
                    )
                pending[item.id] = already + qty

            ledger = InventoryLedger(self.db, operator=user_id)
            for line in lines:
                item = po_items[line.item_id]
                ledger.inbound(
                    material_id=item.material_id,
                    warehouse_id=line.warehouse_id,
                    quantity=line.quantity,
                    batch_no=line.batch_no,
                    unit_cost=item.unit_price,
                    unit=item.unit,
                    reference_type="PO",
                    reference_id=po.id,
                    reference_code=po.po_code,
                )
                item.received_qty = to_decimal(item.received_qty) + to_decimal(line.quantity)
                if to_decimal(item.received_qty) >= to_decimal(item.quantity):
                    item.status = POItemStatus.RECEIVED.value
                else:
                    item.status = POItemStatus.PARTIAL.value

            if all(item.status == POItemStatus.RECEIVED.value for item in po.items):
                po.status = POStatus.RECEIVED.value
                po.received_date = datetime.utcnow()
            else:
                po.status = POStatus.PARTIAL.value

        logger.info(
            f"Received {len(lines)} line(s) on PO {po.po_code}",
            extra={"po_id": po_id, "status": po.status, "user": user_id},
        )
        return po

    def close_po(self, po_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        """Close a RECEIVED PO together with its lines and linked requisitions."""
        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            self._transition(po, "close")
            for item in po.items:
                item.status = POItemStatus.CLOSED.value
                requisition = item.requisition
                if requisition is not None and requisition.status == PRStatus.ORDERED.value:
                    requisition.status = guard_transition(
                        PR_ACTIONS, "PurchaseRequisition", requisition.id, requisition.status, "close"
                    )
        self._log_transition(po, "close", user_id)
        return po

    def cancel_po(self, po_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        with transaction_scope(self.db):
            po = self.get_po(po_id, lock=True)
            self._transition(po, "cancel")
            for item in po.items:
                item.status = POItemStatus.CLOSED.value
        self._log_transition(po, "cancel", user_id)
        return po

    # =========================================================================
    # Helpers
    # =========================================================================

    def _transition(self, po: PurchaseOrder, action: str) -> None:
        po.status = guard_transition(PO_ACTIONS, "PurchaseOrder", po.id, po.status, action)

    @staticmethod
    def _log_transition(po: PurchaseOrder, action: str, user_id: Optional[str]) -> None:
        logger.info(
            f"PO {po.po_code} {action} -> {po.status}",
            extra={"po_id": po.id, "action": action, "user": user_id},
        )

    def _get_material(self, material_id: int) -> Material:
        material = self.db.query(Material).filter(Material.id == material_id).first()
        if not material:
            raise NotFoundError("Material", material_id)
        return material
