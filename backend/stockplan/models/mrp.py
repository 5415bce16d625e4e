"""
MRP (Material Requirements Planning) models
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, Boolean, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from stockplan.db.base import Base


class MRPRun(Base):
    """
    One MRP invocation.

    Status: RUNNING -> COMPLETED | FAILED, COMPLETED -> APPLIED.
    A FAILED run never has result rows.
    """
    __tablename__ = "mrp_runs"

    id = Column(Integer, primary_key=True, index=True)
    run_code = Column(String(30), unique=True, nullable=False)

    status = Column(String(20), default="RUNNING", nullable=False, index=True)

    # Scope
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    planning_horizon = Column(Integer, default=30, nullable=False)

    # Counters
    total_items = Column(Integer, default=0, nullable=False)
    prs_generated = Column(Integer, default=0, nullable=False)
    wos_generated = Column(Integer, default=0, nullable=False)

    # Timestamps
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    applied_at = Column(DateTime, nullable=True)

    error_message = Column(Text, nullable=True)

    # Degraded supply lookups: [{"material_id": .., "query": .., "error": ..}]
    diagnostics = Column(JSON, nullable=True)

    created_by = Column(String(100), nullable=True)
    applied_by = Column(String(100), nullable=True)

    results = relationship(
        "MRPResult",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="MRPResult.material_code",
    )

    def __repr__(self):
        return f"<MRPRun {self.run_code} ({self.status})>"


class MRPResult(Base):
    """Netted requirement for one material within one run"""
    __tablename__ = "mrp_results"
    __table_args__ = (
        UniqueConstraint("mrp_run_id", "material_id", name="uq_mrp_results_run_material"),
    )

    id = Column(Integer, primary_key=True, index=True)
    mrp_run_id = Column(Integer, ForeignKey("mrp_runs.id", ondelete="CASCADE"), nullable=False, index=True)

    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False)
    material_code = Column(String(50), nullable=True)
    material_name = Column(String(255), nullable=True)
    unit = Column(String(20), nullable=True)

    # Quantities
    gross_requirement = Column(Numeric(18, 4), default=0, nullable=False)
    on_hand_stock = Column(Numeric(18, 4), default=0, nullable=False)
    in_transit_qty = Column(Numeric(18, 4), default=0, nullable=False)
    in_production_qty = Column(Numeric(18, 4), default=0, nullable=False)
    safety_stock = Column(Numeric(18, 4), default=0, nullable=False)
    net_requirement = Column(Numeric(18, 4), default=0, nullable=False)
    planned_order_qty = Column(Numeric(18, 4), default=0, nullable=False)

    # PURCHASE or PRODUCE
    action_type = Column(String(20), nullable=False)

    required_date = Column(Date, nullable=True)
    lead_time_days = Column(Integer, default=0, nullable=False)
    order_date = Column(Date, nullable=True)

    applied = Column(Boolean, default=False, nullable=False)

    run = relationship("MRPRun", back_populates="results")

    def __repr__(self):
        return f"<MRPResult run={self.mrp_run_id} {self.material_code}: net={self.net_requirement}>"
