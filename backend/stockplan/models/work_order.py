"""
Work Order models for production execution
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class WorkOrder(Base):
    """
    Work Order (WO-2025-0001).

    ``material_id`` is the output material posted to inventory on completion
    and the key used for in-production supply during MRP.
    """
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    wo_code = Column(String(50), unique=True, nullable=False, index=True)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    bom_header_id = Column(Integer, ForeignKey("bom_headers.id"), nullable=True)

    planned_qty = Column(Numeric(18, 4), nullable=False)
    completed_qty = Column(Numeric(18, 4), default=0, nullable=False)
    scrap_qty = Column(Numeric(18, 4), default=0, nullable=False)
    unit = Column(String(20), nullable=True)

    # CREATED -> PLANNED -> RELEASED -> IN_PROGRESS -> COMPLETED -> CLOSED
    status = Column(String(20), default="CREATED", nullable=False, index=True)
    priority = Column(Integer, default=3, nullable=False)  # 1 (urgent) .. 5 (low)

    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=True)

    planned_start = Column(DateTime, nullable=True)
    planned_end = Column(DateTime, nullable=True)
    actual_start = Column(DateTime, nullable=True)
    actual_end = Column(DateTime, nullable=True)

    source_type = Column(String(20), default="MANUAL", nullable=False)
    source_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    product = relationship("Product")
    materials = relationship(
        "WorkOrderMaterial",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderMaterial.id",
    )
    reports = relationship(
        "WorkOrderReport",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderReport.id",
    )

    def __repr__(self):
        return f"<WorkOrder {self.wo_code} ({self.status})>"


class WorkOrderMaterial(Base):
    """Material required by a work order and how much has been issued"""
    __tablename__ = "work_order_materials"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False)
    material_code = Column(String(50), nullable=True)
    material_name = Column(String(255), nullable=True)
    unit = Column(String(20), nullable=True)

    required_qty = Column(Numeric(18, 4), nullable=False)
    issued_qty = Column(Numeric(18, 4), default=0, nullable=False)

    work_order = relationship("WorkOrder", back_populates="materials")

    def __repr__(self):
        return f"<WorkOrderMaterial {self.material_code}: {self.issued_qty}/{self.required_qty}>"


class WorkOrderReport(Base):
    """Immutable production report against a work order"""
    __tablename__ = "work_order_reports"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity = Column(Numeric(18, 4), nullable=False)
    scrap_qty = Column(Numeric(18, 4), default=0, nullable=False)
    notes = Column(Text, nullable=True)

    reported_by = Column(String(100), nullable=True)
    reported_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    work_order = relationship("WorkOrder", back_populates="reports")

    def __repr__(self):
        return f"<WorkOrderReport wo={self.work_order_id} qty={self.quantity}>"
