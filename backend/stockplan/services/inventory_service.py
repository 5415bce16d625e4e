"""
Inventory Service

Read side of the ledger (stock lists, alerts, journal, reconciliation) plus
the stand-alone inbound/outbound/adjust entry points, each committed as its
own unit of work. Order workflows call ``InventoryLedger`` directly inside
their own transaction instead.
"""
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from stockplan.db.session import transaction_scope
from stockplan.exceptions import NotFoundError
from stockplan.logging_config import get_logger
from stockplan.models.inventory import Inventory, InventoryTransaction
from stockplan.models.product import Material
from stockplan.schemas.inventory import AdjustRequest, InboundRequest, OutboundRequest
from stockplan.services.inventory_helpers import ZERO, to_decimal
from stockplan.services.inventory_ledger import InventoryLedger

logger = get_logger(__name__)


class InventoryService:
    """Inventory queries and committed ledger operations."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Ledger operations (one transaction each)
    # =========================================================================

    def inbound(self, request: InboundRequest, operator: Optional[str] = None) -> InventoryTransaction:
        with transaction_scope(self.db):
            entry = InventoryLedger(self.db, operator).inbound(
                material_id=request.material_id,
                warehouse_id=request.warehouse_id,
                quantity=request.quantity,
                batch_no=request.batch_no,
                unit_cost=request.unit_cost,
                inventory_type=request.inventory_type,
                reference_type=request.reference_type,
                reference_id=request.reference_id,
                reference_code=request.reference_code,
            )
        return entry

    def outbound(self, request: OutboundRequest, operator: Optional[str] = None) -> List[InventoryTransaction]:
        with transaction_scope(self.db):
            entries = InventoryLedger(self.db, operator).outbound(
                material_id=request.material_id,
                warehouse_id=request.warehouse_id,
                quantity=request.quantity,
                batch_no=request.batch_no,
                reference_type=request.reference_type,
                reference_id=request.reference_id,
                reference_code=request.reference_code,
            )
        return entries

    def adjust(self, request: AdjustRequest, operator: Optional[str] = None) -> InventoryTransaction:
        with transaction_scope(self.db):
            entry = InventoryLedger(self.db, operator).adjust(
                material_id=request.material_id,
                warehouse_id=request.warehouse_id,
                quantity=request.quantity,
                reason=request.reason,
                batch_no=request.batch_no,
            )
        return entry

    # =========================================================================
    # Queries
    # =========================================================================

    def list_inventory(
        self,
        *,
        material_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        inventory_type: Optional[str] = None,
        keyword: Optional[str] = None,
        low_stock: bool = False,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Inventory], int]:
        """Stock records with optional filters, ordered by material code."""
        query = (
            self.db.query(Inventory)
            .join(Material, Material.id == Inventory.material_id)
            .options(joinedload(Inventory.material))
        )

        if material_id is not None:
            query = query.filter(Inventory.material_id == material_id)
        if warehouse_id is not None:
            query = query.filter(Inventory.warehouse_id == warehouse_id)
        if inventory_type:
            query = query.filter(Inventory.inventory_type == inventory_type)
        if keyword:
            pattern = f"%{keyword}%"
            query = query.filter(or_(Material.code.ilike(pattern), Material.name.ilike(pattern)))
        if low_stock:
            query = query.filter(
                Inventory.safety_stock > 0,
                Inventory.available_qty < Inventory.safety_stock,
            )

        total = query.count()
        items = (
            query.order_by(Material.code, Inventory.warehouse_id, Inventory.batch_no)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def get_by_material(self, material_id: int) -> List[Inventory]:
        """Every stock record of one material across warehouses and batches."""
        if not self.db.query(Material.id).filter(Material.id == material_id).first():
            raise NotFoundError("Material", material_id)
        return (
            self.db.query(Inventory)
            .options(joinedload(Inventory.material))
            .filter(Inventory.material_id == material_id)
            .order_by(Inventory.warehouse_id, Inventory.created_at, Inventory.id)
            .all()
        )

    def get_alerts(self) -> List[Inventory]:
        """Records whose available stock is under their (non-zero) safety stock."""
        return (
            self.db.query(Inventory)
            .options(joinedload(Inventory.material))
            .filter(
                Inventory.safety_stock > 0,
                Inventory.available_qty < Inventory.safety_stock,
            )
            .order_by(Inventory.material_id, Inventory.warehouse_id)
            .all()
        )

    def list_transactions(
        self,
        *,
        material_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        transaction_type: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[InventoryTransaction], int]:
        """Journal rows, newest first."""
        query = self.db.query(InventoryTransaction)

        if material_id is not None:
            query = query.filter(InventoryTransaction.material_id == material_id)
        if warehouse_id is not None:
            query = query.filter(InventoryTransaction.warehouse_id == warehouse_id)
        if transaction_type:
            query = query.filter(InventoryTransaction.transaction_type == transaction_type)
        if reference_type:
            query = query.filter(InventoryTransaction.reference_type == reference_type)
        if reference_id is not None:
            query = query.filter(InventoryTransaction.reference_id == reference_id)

        total = query.count()
        items = (
            query.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def reconcile(self, material_id: int, warehouse_id: int) -> dict:
        """
        Compare the journal total with the stock records for a material and
        warehouse. A non-zero discrepancy means a quantity was written
        outside the ledger.
        """
        record_qty = (
            self.db.query(func.coalesce(func.sum(Inventory.quantity), 0))
            .filter(Inventory.material_id == material_id, Inventory.warehouse_id == warehouse_id)
            .scalar()
        )
        journal_qty = (
            self.db.query(func.coalesce(func.sum(InventoryTransaction.quantity), 0))
            .filter(
                InventoryTransaction.material_id == material_id,
                InventoryTransaction.warehouse_id == warehouse_id,
            )
            .scalar()
        )
        record_qty = to_decimal(record_qty)
        journal_qty = to_decimal(journal_qty)
        discrepancy = record_qty - journal_qty

        if discrepancy != ZERO:
            logger.warning(
                "Inventory journal does not match stock records",
                extra={
                    "material_id": material_id,
                    "warehouse_id": warehouse_id,
                    "record_quantity": str(record_qty),
                    "journal_quantity": str(journal_qty),
                },
            )

        return {
            "material_id": material_id,
            "warehouse_id": warehouse_id,
            "record_quantity": record_qty,
            "journal_quantity": journal_qty,
            "discrepancy": discrepancy,
            "balanced": discrepancy == ZERO,
        }
