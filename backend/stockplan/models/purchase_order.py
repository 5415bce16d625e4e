"""
Purchasing models: requisitions, purchase orders and their lines
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey, Date, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class PurchaseRequisition(Base):
    """Purchase Requisition (PR-2025-0001)"""
    __tablename__ = "purchase_requisitions"

    id = Column(Integer, primary_key=True, index=True)
    pr_code = Column(String(50), unique=True, nullable=False, index=True)

    # DRAFT -> PENDING -> APPROVED -> ORDERED -> CLOSED
    status = Column(String(20), default="DRAFT", nullable=False, index=True)

    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=True)
    required_date = Column(Date, nullable=True)

    # MANUAL or MRP; source_id is the MRP run id for MRP requisitions
    source = Column(String(20), default="MANUAL", nullable=False)
    source_id = Column(Integer, nullable=True, index=True)

    notes = Column(Text, nullable=True)

    requested_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    material = relationship("Material")

    def __repr__(self):
        return f"<PurchaseRequisition {self.pr_code} ({self.status})>"


class PurchaseOrder(Base):
    """Purchase Order header model"""
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)

    # PO Number - auto-generated (PO-2025-0001)
    po_code = Column(String(50), unique=True, nullable=False, index=True)

    supplier_name = Column(String(200), nullable=False)

    # DRAFT -> PENDING -> APPROVED -> SENT -> PARTIAL/RECEIVED -> CLOSED
    # Also: CANCELLED
    status = Column(String(20), default="DRAFT", nullable=False, index=True)

    total_amount = Column(Numeric(18, 4), default=0, nullable=False)
    currency = Column(String(10), default="CNY", nullable=False)

    # Dates
    expected_date = Column(Date, nullable=True)
    received_date = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)

    # Audit
    created_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.line_number",
    )

    def __repr__(self):
        return f"<PurchaseOrder {self.po_code} ({self.status})>"


class PurchaseOrderItem(Base):
    """Purchase Order line; tracks its own receipt status"""
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        CheckConstraint("received_qty >= 0", name="ck_po_item_received_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    po_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)

    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    pr_id = Column(Integer, ForeignKey("purchase_requisitions.id"), nullable=True)

    quantity = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Numeric(18, 4), default=0, nullable=False)
    amount = Column(Numeric(18, 4), default=0, nullable=False)

    received_qty = Column(Numeric(18, 4), default=0, nullable=False)

    # OPEN -> PARTIAL -> RECEIVED -> CLOSED
    status = Column(String(20), default="OPEN", nullable=False)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    material = relationship("Material")
    requisition = relationship("PurchaseRequisition")

    def __repr__(self):
        return f"<PurchaseOrderItem {self.po_id}:{self.line_number} {self.received_qty}/{self.quantity}>"
