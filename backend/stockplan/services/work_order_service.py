"""
Work Order Service - production execution

Lifecycle: CREATED -> (PLANNED) -> RELEASED -> IN_PROGRESS -> COMPLETED -> CLOSED

Pick issues the material lines from stock, report records output, complete
posts the finished output into stock. Stock moves go through the ledger in
the same transaction as the status change.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session, selectinload

from stockplan.core.status_config import (
    WO_ACTIONS,
    InventoryType,
    WorkOrderStatus,
    guard_transition,
)
from stockplan.db.session import transaction_scope
from stockplan.exceptions import InsufficientStockError, NotFoundError, ValidationError
from stockplan.logging_config import get_logger
from stockplan.models.bom import BOMHeader, BOMItem
from stockplan.models.inventory import Inventory
from stockplan.models.product import Material, Product, Warehouse
from stockplan.models.work_order import WorkOrder, WorkOrderMaterial, WorkOrderReport
from stockplan.schemas.work_order import ReportRequest, WorkOrderCreate
from stockplan.services.bom_explosion import BOMExplosionEngine
from stockplan.services.inventory_helpers import ZERO, next_document_code, to_decimal
from stockplan.services.inventory_ledger import InventoryLedger

logger = get_logger(__name__)


class WorkOrderService:
    """Work order creation and shop-floor transitions."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Create / Query
    # =========================================================================

    def create_wo(self, request: WorkOrderCreate, user_id: Optional[str] = None) -> WorkOrder:
        """
        Create a work order for a product.

        Material lines are the BOM's first-level items merged per material;
        sub-assemblies are built by their own work orders.
        """
        with transaction_scope(self.db):
            product = self.db.query(Product).filter(Product.id == request.product_id).first()
            if not product:
                raise NotFoundError("Product", request.product_id)
            if product.material_id is None:
                raise ValidationError(
                    f"Product {product.code} has no stock material to produce into",
                    field="product_id",
                    value=product.id,
                )
            if request.warehouse_id is not None:
                self._get_warehouse(request.warehouse_id)

            bom = self._resolve_bom(product, request.bom_header_id)
            planned_qty = to_decimal(request.planned_qty)

            wo = WorkOrder(
                wo_code=next_document_code(self.db, WorkOrder.wo_code, "WO"),
                product_id=product.id,
                material_id=product.material_id,
                bom_header_id=bom.id,
                planned_qty=planned_qty,
                completed_qty=ZERO,
                scrap_qty=ZERO,
                unit=product.material.unit if product.material else None,
                status=WorkOrderStatus.CREATED.value,
                priority=request.priority,
                warehouse_id=request.warehouse_id,
                planned_start=request.planned_start,
                planned_end=request.planned_end,
                source_type="MANUAL",
                notes=request.notes,
                created_by=user_id,
            )
            for material, required in self._material_lines(bom, planned_qty):
                wo.materials.append(
                    WorkOrderMaterial(
                        material_id=material.id,
                        material_code=material.code,
                        material_name=material.name,
                        unit=material.unit,
                        required_qty=required,
                        issued_qty=ZERO,
                    )
                )
            self.db.add(wo)

        logger.info(
            f"Created WO {wo.wo_code} for {product.code}",
            extra={"wo_id": wo.id, "planned_qty": str(planned_qty), "bom_header_id": bom.id},
        )
        return wo

    def list_wos(
        self,
        *,
        status: Optional[str] = None,
        product_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[WorkOrder], int]:
        query = self.db.query(WorkOrder).options(
            selectinload(WorkOrder.materials), selectinload(WorkOrder.reports)
        )
        if status:
            query = query.filter(WorkOrder.status == status)
        if product_id is not None:
            query = query.filter(WorkOrder.product_id == product_id)

        total = query.count()
        items = (
            query.order_by(WorkOrder.priority, desc(WorkOrder.created_at), desc(WorkOrder.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def get_wo(self, wo_id: int, *, lock: bool = False) -> WorkOrder:
        query = self.db.query(WorkOrder).filter(WorkOrder.id == wo_id)
        if lock:
            query = query.with_for_update().populate_existing()
        wo = query.first()
        if not wo:
            raise NotFoundError("WorkOrder", wo_id)
        return wo

    # =========================================================================
    # Transitions
    # =========================================================================

    def plan(self, wo_id: int, user_id: Optional[str] = None) -> WorkOrder:
        with transaction_scope(self.db):
            wo = self.get_wo(wo_id, lock=True)
            self._transition(wo, "plan")
        self._log_transition(wo, "plan", user_id)
        return wo

    def release(self, wo_id: int, user_id: Optional[str] = None) -> WorkOrder:
        with transaction_scope(self.db):
            wo = self.get_wo(wo_id, lock=True)
            self._transition(wo, "release")
        self._log_transition(wo, "release", user_id)
        return wo

    def pick(self, wo_id: int, warehouse_id: int, user_id: Optional[str] = None) -> WorkOrder:
        """
        Issue every outstanding material line from ``warehouse_id``.

        All lines are checked against available stock first; a single
        shortage raises InsufficientStockError before anything is issued.
        """
        with transaction_scope(self.db):
            wo = self.get_wo(wo_id, lock=True)
            target = guard_transition(WO_ACTIONS, "WorkOrder", wo_id, wo.status, "pick")
            self._get_warehouse(warehouse_id)

            outstanding: List[Tuple[WorkOrderMaterial, Decimal]] = []
            for line in wo.materials:
                remaining = to_decimal(line.required_qty) - to_decimal(line.issued_qty)
                if remaining > ZERO:
                    outstanding.append((line, remaining))
            if not outstanding:
                raise ValidationError(
                    f"Work order {wo.wo_code} has no outstanding material to pick",
                    details={"wo_id": str(wo_id)},
                )

            needed: Dict[int, Decimal] = {}
            for line, remaining in outstanding:
                needed[line.material_id] = needed.get(line.material_id, ZERO) + remaining
            for material_id, qty in needed.items():
                available = self._available(material_id, warehouse_id)
                if available < qty:
                    code = next(
                        ln.material_code for ln, _ in outstanding if ln.material_id == material_id
                    )
                    raise InsufficientStockError(
                        code, requested=qty, available=available, warehouse_id=warehouse_id
                    )

            ledger = InventoryLedger(self.db, operator=user_id)
            for line, remaining in outstanding:
                ledger.outbound(
                    material_id=line.material_id,
                    warehouse_id=warehouse_id,
                    quantity=remaining,
                    reference_type="WO",
                    reference_id=wo.id,
                    reference_code=wo.wo_code,
                )
                line.issued_qty = to_decimal(line.issued_qty) + remaining

            self._start(wo, target)

        logger.info(
            f"Picked {len(outstanding)} material line(s) for WO {wo.wo_code}",
            extra={"wo_id": wo_id, "warehouse_id": warehouse_id, "user": user_id},
        )
        return wo

    def report(self, wo_id: int, request: ReportRequest, user_id: Optional[str] = None) -> WorkOrder:
        """Append a production report; repeatable while the order is open."""
        qty = to_decimal(request.quantity)
        scrap = to_decimal(request.scrap_qty)
        if qty <= ZERO:
            raise ValidationError("quantity must be greater than zero", field="quantity", value=qty)
        if scrap < ZERO:
            raise ValidationError("scrap_qty cannot be negative", field="scrap_qty", value=scrap)

        with transaction_scope(self.db):
            wo = self.get_wo(wo_id, lock=True)
            target = guard_transition(WO_ACTIONS, "WorkOrder", wo_id, wo.status, "report")

            wo.reports.append(
                WorkOrderReport(
                    quantity=qty,
                    scrap_qty=scrap,
                    notes=request.notes,
                    reported_by=user_id,
                    reported_at=datetime.utcnow(),
                )
            )
            wo.completed_qty = to_decimal(wo.completed_qty) + qty
            wo.scrap_qty = to_decimal(wo.scrap_qty) + scrap
            self._start(wo, target)

        logger.info(
            f"Reported {qty} (scrap {scrap}) on WO {wo.wo_code}",
            extra={"wo_id": wo_id, "completed_qty": str(wo.completed_qty), "user": user_id},
        )
        return wo

    def complete(self, wo_id: int, warehouse_id: Optional[int] = None, user_id: Optional[str] = None) -> WorkOrder:
        """Post the reported output into stock as finished goods and complete the order."""
        with transaction_scope(self.db):
            wo = self.get_wo(wo_id, lock=True)
            target = guard_transition(WO_ACTIONS, "WorkOrder", wo_id, wo.status, "complete")

            completed = to_decimal(wo.completed_qty)
            if completed <= ZERO:
                raise ValidationError(
                    f"Work order {wo.wo_code} has no reported output",
                    field="completed_qty",
                    value=completed,
                )
            target_warehouse = warehouse_id if warehouse_id is not None else wo.warehouse_id
            if target_warehouse is None:
                raise ValidationError(
                    "A warehouse is required to receive the output", field="warehouse_id"
                )

            InventoryLedger(self.db, operator=user_id).inbound(
                material_id=wo.material_id,
                warehouse_id=target_warehouse,
                quantity=completed,
                inventory_type=InventoryType.FG.value,
                unit=wo.unit,
                reference_type="WO",
                reference_id=wo.id,
                reference_code=wo.wo_code,
            )
            wo.actual_end = datetime.utcnow()
            wo.status = target

        logger.info(
            f"Completed WO {wo.wo_code}",
            extra={"wo_id": wo_id, "completed_qty": str(completed), "warehouse_id": target_warehouse},
        )
        return wo

    def close(self, wo_id: int, user_id: Optional[str] = None) -> WorkOrder:
        with transaction_scope(self.db):
            wo = self.get_wo(wo_id, lock=True)
            self._transition(wo, "close")
        self._log_transition(wo, "close", user_id)
        return wo

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_bom(self, product: Product, bom_header_id: Optional[int]) -> BOMHeader:
        if bom_header_id is None:
            bom = BOMExplosionEngine(self.db).latest_released_bom(product.id)
            if bom is None:
                raise ValidationError(
                    f"Product {product.code} has no released BOM",
                    field="product_id",
                    value=product.id,
                )
            return bom

        bom = self.db.query(BOMHeader).filter(BOMHeader.id == bom_header_id).first()
        if not bom:
            raise NotFoundError("BOMHeader", bom_header_id)
        if bom.product_id != product.id:
            raise ValidationError(
                f"BOM {bom_header_id} does not belong to product {product.code}",
                field="bom_header_id",
                value=bom_header_id,
            )
        if bom.status != "released":
            raise ValidationError(
                f"BOM {bom_header_id} is {bom.status}, only released BOMs can be produced",
                field="bom_header_id",
                value=bom_header_id,
            )
        return bom

    def _material_lines(self, bom: BOMHeader, planned_qty: Decimal) -> List[Tuple[Material, Decimal]]:
        items = (
            self.db.query(BOMItem)
            .filter(BOMItem.bom_header_id == bom.id, BOMItem.parent_item_id.is_(None))
            .order_by(BOMItem.sequence, BOMItem.id)
            .all()
        )
        merged: Dict[int, Decimal] = {}
        materials: Dict[int, Material] = {}
        for item in items:
            material = item.material
            if material is None:
                raise NotFoundError("Material", item.material_id)
            materials[material.id] = material
            merged[material.id] = merged.get(material.id, ZERO) + to_decimal(item.quantity) * planned_qty
        return [(materials[mid], qty) for mid, qty in merged.items()]

    def _available(self, material_id: int, warehouse_id: int) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(Inventory.available_qty), 0))
            .filter(Inventory.material_id == material_id, Inventory.warehouse_id == warehouse_id)
            .scalar()
        )
        return to_decimal(total)

    def _get_warehouse(self, warehouse_id: int) -> Warehouse:
        warehouse = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
        if not warehouse:
            raise NotFoundError("Warehouse", warehouse_id)
        return warehouse

    @staticmethod
    def _start(wo: WorkOrder, target: str) -> None:
        if wo.status != WorkOrderStatus.IN_PROGRESS.value:
            wo.actual_start = wo.actual_start or datetime.utcnow()
        wo.status = target

    def _transition(self, wo: WorkOrder, action: str) -> None:
        wo.status = guard_transition(WO_ACTIONS, "WorkOrder", wo.id, wo.status, action)

    @staticmethod
    def _log_transition(wo: WorkOrder, action: str, user_id: Optional[str]) -> None:
        logger.info(
            f"WO {wo.wo_code} {action} -> {wo.status}",
            extra={"wo_id": wo.id, "action": action, "user": user_id},
        )
