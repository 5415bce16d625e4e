"""
Bill of Materials models
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class BOMHeader(Base):
    """BOM header; only ``released`` headers are visible to planning"""
    __tablename__ = "bom_headers"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    version = Column(String(20), default="1.0", nullable=False)

    # draft, released, obsolete
    status = Column(String(20), default="draft", nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="boms")
    items = relationship(
        "BOMItem",
        back_populates="bom_header",
        cascade="all, delete-orphan",
        order_by="BOMItem.sequence",
    )

    def __repr__(self):
        return f"<BOMHeader product={self.product_id} v{self.version} ({self.status})>"


class BOMItem(Base):
    """
    BOM line. Items form a forest through ``parent_item_id``: an item with
    children is a sub-assembly produced from those children.
    """
    __tablename__ = "bom_items"

    id = Column(Integer, primary_key=True, index=True)
    bom_header_id = Column(Integer, ForeignKey("bom_headers.id"), nullable=False, index=True)
    parent_item_id = Column(Integer, ForeignKey("bom_items.id"), nullable=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False)

    level = Column(Integer, default=1, nullable=False)
    sequence = Column(Integer, default=0, nullable=False)

    # Quantity per one unit of the parent
    quantity = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=True)

    bom_header = relationship("BOMHeader", back_populates="items")
    material = relationship("Material")

    def __repr__(self):
        return f"<BOMItem {self.id} material={self.material_id} qty={self.quantity}>"
