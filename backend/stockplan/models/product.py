"""
Master data models: materials, products and warehouses

These tables are maintained by the master-data service; planning and the
ledger only read them.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class Material(Base):
    """Stock-keeping material (raw material, sub-assembly or finished good)"""
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), default="pcs", nullable=False)

    # Planning parameters
    lead_time_days = Column(Integer, default=0, nullable=False)
    safety_stock = Column(Numeric(18, 4), default=0, nullable=False)
    min_order_qty = Column(Numeric(18, 4), default=0, nullable=False)
    standard_cost = Column(Numeric(18, 4), default=0, nullable=False)

    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Material {self.code}: {self.name}>"


class Product(Base):
    """Sellable product; ``material_id`` is its finished-good stock material"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # active products are planned when an MRP run has no product scope
    status = Column(String(20), default="active", nullable=False, index=True)

    material_id = Column(Integer, ForeignKey("materials.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    material = relationship("Material")
    boms = relationship("BOMHeader", back_populates="product")

    def __repr__(self):
        return f"<Product {self.code}: {self.name}>"


class Warehouse(Base):
    """Physical stock location"""
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Warehouse {self.code}: {self.name}>"
