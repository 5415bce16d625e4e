"""
Inventory ledger models

``Inventory`` is the cached per-(material, warehouse, batch) projection;
``InventoryTransaction`` is the append-only journal it is reconciled against.
Quantity columns are written only by ``InventoryLedger``.
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Text,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class Inventory(Base):
    """Inventory record - one row per material, warehouse and batch"""
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("material_id", "warehouse_id", "batch_no", name="uq_inventory_material_warehouse_batch"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_nonneg"),
        CheckConstraint("reserved_qty >= 0", name="ck_inventory_reserved_nonneg"),
        CheckConstraint("available_qty >= 0", name="ck_inventory_available_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Key
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    batch_no = Column(String(50), default="", nullable=False)  # "" = unbatched

    # RAW, WIP, FG, SPARE
    inventory_type = Column(String(20), default="RAW", nullable=False)

    # Quantities (available_qty == quantity - reserved_qty)
    quantity = Column(Numeric(18, 4), default=0, nullable=False)
    reserved_qty = Column(Numeric(18, 4), default=0, nullable=False)
    available_qty = Column(Numeric(18, 4), default=0, nullable=False)

    unit = Column(String(20), default="pcs", nullable=False)
    unit_cost = Column(Numeric(18, 4), default=0, nullable=False)

    # Alert thresholds
    safety_stock = Column(Numeric(18, 4), default=0, nullable=False)
    max_stock = Column(Numeric(18, 4), default=0, nullable=False)

    last_moved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    material = relationship("Material")
    warehouse = relationship("Warehouse")

    @property
    def material_code(self):
        return self.material.code if self.material else None

    @property
    def material_name(self):
        return self.material.name if self.material else None

    def __repr__(self):
        return (
            f"<Inventory material={self.material_id} warehouse={self.warehouse_id} "
            f"batch={self.batch_no!r}: {self.available_qty}>"
        )


class InventoryTransaction(Base):
    """Inventory journal row - immutable once written"""
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_transactions_material_warehouse", "material_id", "warehouse_id"),
        Index("ix_inventory_transactions_reference", "reference_type", "reference_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    transaction_code = Column(String(50), unique=True, nullable=False)

    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    batch_no = Column(String(50), default="", nullable=False)

    # PURCHASE_IN, PRODUCTION_IN, RETURN_IN, PRODUCTION_OUT, SALES_OUT,
    # SCRAP_OUT, ADJUST, TRANSFER
    transaction_type = Column(String(30), nullable=False)

    # Signed: positive = inbound, negative = outbound
    quantity = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=True)
    unit_cost = Column(Numeric(18, 4), nullable=True)

    # PO, WO, SO, RETURN, SCRAP, ADJUST
    reference_type = Column(String(20), nullable=True)
    reference_id = Column(Integer, nullable=True)
    reference_code = Column(String(50), nullable=True)

    reason = Column(Text, nullable=True)
    operator = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    material = relationship("Material")

    def __repr__(self):
        return f"<InventoryTransaction {self.transaction_code}: {self.transaction_type} {self.quantity}>"
