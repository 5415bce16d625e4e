"""
Sales Order models
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class SalesOrder(Base):
    """Sales Order header (SO-2025-0001)"""
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True, index=True)
    so_code = Column(String(50), unique=True, nullable=False, index=True)

    customer_name = Column(String(200), nullable=False)
    channel = Column(String(30), default="DIRECT", nullable=False)

    # PENDING -> CONFIRMED -> PICKING -> SHIPPED -> DELIVERED -> COMPLETED
    # Also: CANCELLED (before shipment)
    status = Column(String(20), default="PENDING", nullable=False, index=True)

    total_amount = Column(Numeric(18, 4), default=0, nullable=False)
    currency = Column(String(10), default="CNY", nullable=False)

    tracking_no = Column(String(100), nullable=True)
    shipping_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship(
        "SalesOrderItem",
        back_populates="sales_order",
        cascade="all, delete-orphan",
        order_by="SalesOrderItem.id",
    )

    def __repr__(self):
        return f"<SalesOrder {self.so_code} ({self.status})>"


class SalesOrderItem(Base):
    """Sales Order line; unshipped quantity is MRP demand while open"""
    __tablename__ = "sales_order_items"

    id = Column(Integer, primary_key=True, index=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    quantity = Column(Numeric(18, 4), nullable=False)
    unit_price = Column(Numeric(18, 4), default=0, nullable=False)
    amount = Column(Numeric(18, 4), default=0, nullable=False)
    shipped_qty = Column(Numeric(18, 4), default=0, nullable=False)

    # OPEN, PICKING, SHIPPED, CLOSED
    status = Column(String(20), default="OPEN", nullable=False)

    sales_order = relationship("SalesOrder", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<SalesOrderItem so={self.sales_order_id} product={self.product_id} {self.shipped_qty}/{self.quantity}>"
