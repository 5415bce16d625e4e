"""
Inventory Ledger

The only writer of inventory quantities. Every operation:

1. validates its input and the referenced material/warehouse,
2. changes the stock record with a conditional UPDATE (the non-negative guard lives
   in the WHERE clause and the affected-row count tells whether it held),
3. appends an immutable InventoryTransaction with the signed quantity.

Steps 2 and 3 run inside a SAVEPOINT so a failed operation leaves no trace
even when the caller keeps using the session. This service does NOT commit;
the owning workflow commits once (see ``transaction_scope``).
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import inspect, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockplan.core.settings import settings
from stockplan.core.status_config import (
    INBOUND_TRANSACTION_TYPES,
    OUTBOUND_TRANSACTION_TYPES,
    InventoryType,
    TransactionType,
)
from stockplan.exceptions import (
    ConcurrencyError,
    InsufficientStockError,
    NegativeStockError,
    NotFoundError,
    ValidationError,
)
from stockplan.logging_config import get_logger
from stockplan.models.inventory import Inventory, InventoryTransaction
from stockplan.models.product import Material, Warehouse
from stockplan.services.inventory_helpers import (
    ZERO,
    new_transaction_code,
    require_positive,
    to_decimal,
)

logger = get_logger(__name__)


class InventoryLedger:
    """Atomic inbound / outbound / adjust against (material, warehouse, batch) records."""

    def __init__(self, db: Session, operator: Optional[str] = None):
        self.db = db
        self.operator = operator

    # =========================================================================
    # Public operations
    # =========================================================================

    def inbound(
        self,
        *,
        material_id: int,
        warehouse_id: int,
        quantity,
        reference_type: str,
        reference_id: Optional[int] = None,
        reference_code: Optional[str] = None,
        batch_no: Optional[str] = None,
        unit_cost=None,
        inventory_type: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> InventoryTransaction:
        """
        Receive stock. Reference PO -> PURCHASE_IN, WO -> PRODUCTION_IN,
        RETURN -> RETURN_IN.
        """
        qty = require_positive(quantity)
        transaction_type = INBOUND_TRANSACTION_TYPES.get(reference_type)
        if transaction_type is None:
            raise ValidationError(
                f"Invalid inbound reference type: {reference_type}",
                field="reference_type",
                value=reference_type,
                details={"allowed": sorted(INBOUND_TRANSACTION_TYPES)},
            )
        material = self._get_material(material_id)
        self._get_warehouse(warehouse_id)
        batch_no = batch_no or ""
        cost = to_decimal(unit_cost) if unit_cost is not None else None

        with self.db.begin_nested():
            self._add_stock(
                material,
                warehouse_id,
                batch_no,
                qty,
                unit_cost=cost,
                inventory_type=inventory_type,
                unit=unit,
            )
            entry = self._journal(
                material,
                warehouse_id,
                batch_no,
                transaction_type,
                qty,
                unit=unit,
                unit_cost=cost,
                reference_type=reference_type,
                reference_id=reference_id,
                reference_code=reference_code,
            )

        logger.info(
            "Inventory inbound",
            extra={
                "material_id": material_id,
                "warehouse_id": warehouse_id,
                "quantity": str(qty),
                "transaction_type": transaction_type.value,
                "reference": f"{reference_type}:{reference_id}",
            },
        )
        return entry

    def outbound(
        self,
        *,
        material_id: int,
        warehouse_id: int,
        quantity,
        reference_type: str,
        reference_id: Optional[int] = None,
        reference_code: Optional[str] = None,
        batch_no: Optional[str] = None,
    ) -> List[InventoryTransaction]:
        """
        Issue stock, oldest record first. Reference WO -> PRODUCTION_OUT,
        SO -> SALES_OUT, SCRAP -> SCRAP_OUT.

        Raises InsufficientStockError, without changing anything, when the
        available quantity across the candidate records is below ``quantity``.
        Returns one journal row per record debited.
        """
        qty = require_positive(quantity)
        transaction_type = OUTBOUND_TRANSACTION_TYPES.get(reference_type)
        if transaction_type is None:
            raise ValidationError(
                f"Invalid outbound reference type: {reference_type}",
                field="reference_type",
                value=reference_type,
                details={"allowed": sorted(OUTBOUND_TRANSACTION_TYPES)},
            )
        material = self._get_material(material_id)
        self._get_warehouse(warehouse_id)

        records = self._lock_records(material_id, warehouse_id, batch_no)
        available = sum((to_decimal(r.available_qty) for r in records), ZERO)
        if available < qty:
            raise InsufficientStockError(
                material.code,
                requested=qty,
                available=available,
                warehouse_id=warehouse_id,
            )

        entries = []
        with self.db.begin_nested():
            remaining = qty
            for record in records:
                if remaining <= ZERO:
                    break
                take = min(to_decimal(record.available_qty), remaining)
                if take <= ZERO:
                    continue
                if not self._remove_stock(record.id, take):
                    # Another request consumed this record after we read it
                    raise InsufficientStockError(
                        material.code,
                        requested=qty,
                        available=available - (qty - remaining),
                        warehouse_id=warehouse_id,
                    )
                entries.append(
                    self._journal(
                        material,
                        warehouse_id,
                        record.batch_no,
                        transaction_type,
                        -take,
                        unit=record.unit,
                        unit_cost=record.unit_cost,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        reference_code=reference_code,
                    )
                )
                remaining -= take

        for record in records:
            self.db.expire(record)

        logger.info(
            "Inventory outbound",
            extra={
                "material_id": material_id,
                "warehouse_id": warehouse_id,
                "quantity": str(qty),
                "transaction_type": transaction_type.value,
                "reference": f"{reference_type}:{reference_id}",
                "records": len(entries),
            },
        )
        return entries

    def adjust(
        self,
        *,
        material_id: int,
        warehouse_id: int,
        quantity,
        reason: str,
        batch_no: Optional[str] = None,
    ) -> InventoryTransaction:
        """
        Apply a signed correction (cycle count, damage, found stock).

        A negative adjustment that would drive stock below zero raises
        NegativeStockError and changes nothing.
        """
        qty = to_decimal(quantity)
        if qty == ZERO:
            raise ValidationError("Adjustment quantity cannot be zero", field="quantity", value=quantity)
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for inventory adjustments", field="reason")
        material = self._get_material(material_id)
        self._get_warehouse(warehouse_id)
        batch_no = batch_no or ""

        with self.db.begin_nested():
            if qty > ZERO:
                self._add_stock(material, warehouse_id, batch_no, qty)
            else:
                record = self._find_record(material_id, warehouse_id, batch_no)
                if record is None or not self._remove_stock(record.id, -qty):
                    current = to_decimal(record.available_qty) if record is not None else ZERO
                    raise NegativeStockError(
                        material.code,
                        adjustment=qty,
                        current=current,
                        warehouse_id=warehouse_id,
                    )
                self.db.expire(record)
            entry = self._journal(
                material,
                warehouse_id,
                batch_no,
                TransactionType.ADJUST,
                qty,
                reference_type="ADJUST",
                reason=reason.strip(),
            )

        logger.info(
            "Inventory adjusted",
            extra={
                "material_id": material_id,
                "warehouse_id": warehouse_id,
                "quantity": str(qty),
                "reason": reason,
            },
        )
        return entry

    # =========================================================================
    # Lookups
    # =========================================================================

    def _get_material(self, material_id: int) -> Material:
        material = self.db.query(Material).filter(Material.id == material_id).first()
        if not material:
            raise NotFoundError("Material", material_id)
        return material

    def _get_warehouse(self, warehouse_id: int) -> Warehouse:
        warehouse = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
        if not warehouse:
            raise NotFoundError("Warehouse", warehouse_id)
        return warehouse

    def _find_record(self, material_id: int, warehouse_id: int, batch_no: str) -> Optional[Inventory]:
        return (
            self.db.query(Inventory)
            .populate_existing()
            .filter(
                Inventory.material_id == material_id,
                Inventory.warehouse_id == warehouse_id,
                Inventory.batch_no == batch_no,
            )
            .first()
        )

    def _lock_records(
        self, material_id: int, warehouse_id: int, batch_no: Optional[str]
    ) -> List[Inventory]:
        """Candidate records for an outbound, FIFO, locked FOR UPDATE."""
        query = self.db.query(Inventory).filter(
            Inventory.material_id == material_id,
            Inventory.warehouse_id == warehouse_id,
            Inventory.available_qty > 0,
        )
        if batch_no is not None:
            query = query.filter(Inventory.batch_no == batch_no)
        return (
            query.order_by(Inventory.created_at, Inventory.id)
            .with_for_update()
            .populate_existing()
            .all()
        )

    # =========================================================================
    # Conditional updates
    # =========================================================================

    def _increment(
        self,
        material_id: int,
        warehouse_id: int,
        batch_no: str,
        qty: Decimal,
        unit_cost: Optional[Decimal] = None,
    ) -> bool:
        now = datetime.utcnow()
        values = {
            "quantity": Inventory.quantity + qty,
            "available_qty": Inventory.available_qty + qty,
            "last_moved_at": now,
            "updated_at": now,
        }
        if unit_cost is not None:
            values["unit_cost"] = unit_cost
        stmt = (
            update(Inventory)
            .where(
                Inventory.material_id == material_id,
                Inventory.warehouse_id == warehouse_id,
                Inventory.batch_no == batch_no,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if self.db.execute(stmt).rowcount == 0:
            return False
        self._expire_cached(material_id, warehouse_id, batch_no)
        return True

    def _expire_cached(self, material_id: int, warehouse_id: int, batch_no: str) -> None:
        """Drop stale in-session copies of a record changed by a bulk UPDATE."""
        for obj in list(self.db.identity_map.values()):
            if not isinstance(obj, Inventory):
                continue
            state = inspect(obj).dict
            if (
                state.get("material_id") == material_id
                and state.get("warehouse_id") == warehouse_id
                and state.get("batch_no") == batch_no
            ):
                self.db.expire(obj)

    def _remove_stock(self, record_id: int, qty: Decimal) -> bool:
        """Subtract ``qty`` only if that much is available."""
        now = datetime.utcnow()
        stmt = (
            update(Inventory)
            .where(
                Inventory.id == record_id,
                Inventory.available_qty >= qty,
                Inventory.quantity >= qty,
            )
            .values(
                quantity=Inventory.quantity - qty,
                available_qty=Inventory.available_qty - qty,
                last_moved_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def _add_stock(
        self,
        material: Material,
        warehouse_id: int,
        batch_no: str,
        qty: Decimal,
        unit_cost: Optional[Decimal] = None,
        inventory_type: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> None:
        """Increment the record for the key, creating it on first receipt."""
        if self._increment(material.id, warehouse_id, batch_no, qty, unit_cost):
            return

        now = datetime.utcnow()
        record = Inventory(
            material_id=material.id,
            warehouse_id=warehouse_id,
            batch_no=batch_no,
            inventory_type=inventory_type or InventoryType.RAW.value,
            quantity=qty,
            reserved_qty=ZERO,
            available_qty=qty,
            unit=unit or material.unit or settings.INVENTORY_DEFAULT_UNIT,
            unit_cost=unit_cost if unit_cost is not None else to_decimal(material.standard_cost),
            safety_stock=to_decimal(material.safety_stock),
            last_moved_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(record)
        except IntegrityError:
            # Lost the insert race on (material, warehouse, batch); the row exists now
            logger.info(
                "Inventory record created concurrently, retrying as update",
                extra={"material_id": material.id, "warehouse_id": warehouse_id, "batch_no": batch_no},
            )
            if not self._increment(material.id, warehouse_id, batch_no, qty, unit_cost):
                raise ConcurrencyError(
                    "Inventory record could not be created or updated",
                    details={"material_id": material.id, "warehouse_id": warehouse_id, "batch_no": batch_no},
                )

    def _journal(
        self,
        material: Material,
        warehouse_id: int,
        batch_no: str,
        transaction_type: TransactionType,
        signed_qty: Decimal,
        *,
        unit: Optional[str] = None,
        unit_cost=None,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        reference_code: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> InventoryTransaction:
        entry = InventoryTransaction(
            transaction_code=new_transaction_code(),
            material_id=material.id,
            warehouse_id=warehouse_id,
            batch_no=batch_no,
            transaction_type=transaction_type.value,
            quantity=signed_qty,
            unit=unit or material.unit,
            unit_cost=unit_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            reference_code=reference_code,
            reason=reason,
            operator=self.operator,
        )
        self.db.add(entry)
        self.db.flush()
        return entry
