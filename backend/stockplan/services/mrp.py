"""
MRP (Material Requirements Planning) Service

Run lifecycle:
1. Create the run record (RUNNING) and commit it so it is visible while computing
2. Demand - open sales-order quantity per product
3. BOM Explosion - gross requirements per material across all planned products
4. Netting - subtract on-hand, in-transit and in-production supply
5. Persist every result in one batch and mark the run COMPLETED

Any failure rolls back the partial results and leaves the run FAILED with its
error message; a FAILED run never has result rows.

Apply converts unapplied PURCHASE results with a positive net requirement
into draft Purchase Requisitions, all in one transaction.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockplan.core.settings import settings
from stockplan.core.status_config import (
    MRP_RUN_ACTIONS,
    MRPActionType,
    MRPRunStatus,
    PRSource,
    PRStatus,
    guard_transition,
)
from stockplan.db.session import transaction_scope
from stockplan.exceptions import DatabaseError, NotFoundError, StockPlanException, ValidationError
from stockplan.integrations.messaging import notify_mrp_run
from stockplan.logging_config import get_logger
from stockplan.models.mrp import MRPResult, MRPRun
from stockplan.models.product import Product
from stockplan.models.purchase_order import PurchaseRequisition
from stockplan.services.bom_explosion import BOMExplosionEngine, MaterialRequirement
from stockplan.services.demand import DemandAggregator
from stockplan.services.inventory_helpers import ZERO, next_document_code
from stockplan.services.netting import NetRequirement, calculate_net_requirement
from stockplan.services.supply import SupplyPositionResolver

logger = get_logger(__name__)


class MRPService:
    """
    MRP calculation engine.

    Usage:
        mrp = MRPService(db)
        run = mrp.run_mrp(planning_horizon_days=30, user_id="planner")
        mrp.apply_run(run.id, user_id="planner")
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Run
    # =========================================================================

    def run_mrp(
        self,
        product_id: Optional[int] = None,
        planning_horizon_days: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> MRPRun:
        """
        Run a full MRP calculation, optionally scoped to one product.

        Returns the COMPLETED run. On failure the run is stored as FAILED and
        the error is raised with ``mrp_run_id`` in its details (database and
        unexpected errors are wrapped so they carry it too).
        """
        horizon = self._resolve_horizon(planning_horizon_days)
        if product_id is not None:
            if not self.db.query(Product.id).filter(Product.id == product_id).first():
                raise NotFoundError("Product", product_id)

        mrp_run = MRPRun(
            run_code=self._next_run_code(),
            status=MRPRunStatus.RUNNING.value,
            product_id=product_id,
            planning_horizon=horizon,
            started_at=datetime.utcnow(),
            created_by=user_id,
        )
        self.db.add(mrp_run)
        self.db.commit()
        run_id = mrp_run.id
        logger.info(
            f"MRP run {mrp_run.run_code} started",
            extra={"mrp_run_id": run_id, "product_id": product_id, "planning_horizon": horizon},
        )

        supply = SupplyPositionResolver(self.db)
        try:
            net_requirements = self._calculate(mrp_run, supply)

            self.db.add_all(
                [self._to_result(run_id, requirement) for requirement in net_requirements]
            )
            mrp_run.status = guard_transition(
                MRP_RUN_ACTIONS, "MRPRun", run_id, mrp_run.status, "complete"
            )
            mrp_run.total_items = len(net_requirements)
            mrp_run.completed_at = datetime.utcnow()
            mrp_run.diagnostics = supply.diagnostics or None
            self.db.commit()

        except Exception as e:
            # Drop any partially added results before recording the failure
            self.db.rollback()
            mrp_run = self.db.get(MRPRun, run_id)
            mrp_run.status = MRPRunStatus.FAILED.value
            mrp_run.error_message = str(e)
            mrp_run.completed_at = datetime.utcnow()
            mrp_run.diagnostics = supply.diagnostics or None
            self.db.commit()
            logger.error(
                f"MRP run {mrp_run.run_code} failed: {str(e)}",
                exc_info=True,
                extra={"mrp_run_id": run_id},
            )
            notify_mrp_run(mrp_run)
            if isinstance(e, StockPlanException):
                e.details.setdefault("mrp_run_id", run_id)
                raise
            if isinstance(e, SQLAlchemyError):
                raise DatabaseError(
                    f"MRP run {mrp_run.run_code} failed on a database error",
                    details={"mrp_run_id": run_id},
                ) from e
            raise StockPlanException(
                f"MRP run {mrp_run.run_code} failed", details={"mrp_run_id": run_id}
            ) from e

        shortages = sum(1 for r in net_requirements if r.net_requirement > ZERO)
        logger.info(
            f"MRP run {mrp_run.run_code} completed",
            extra={
                "mrp_run_id": run_id,
                "total_items": mrp_run.total_items,
                "shortages": shortages,
                "degraded_lookups": len(supply.diagnostics),
            },
        )
        notify_mrp_run(mrp_run)
        return mrp_run

    def _calculate(self, mrp_run: MRPRun, supply: SupplyPositionResolver) -> List[NetRequirement]:
        demand = DemandAggregator(self.db).pending_demand()

        products_query = self.db.query(Product)
        if mrp_run.product_id is not None:
            # A scoped run still plans safety stock when there is no demand
            demand = {mrp_run.product_id: demand.get(mrp_run.product_id, ZERO)}
            products_query = products_query.filter(Product.id == mrp_run.product_id)
        else:
            products_query = products_query.filter(Product.status == "active")
        products = products_query.order_by(Product.id).all()

        engine = BOMExplosionEngine(self.db)
        accumulator: Dict[int, MaterialRequirement] = {}
        for product in products:
            bom = engine.latest_released_bom(product.id)
            if bom is None:
                logger.debug(
                    f"Product {product.code} has no released BOM, skipping",
                    extra={"product_id": product.id},
                )
                continue
            engine.explode_bom(bom, demand.get(product.id, ZERO), accumulator)

        today = datetime.utcnow().date()
        return [
            calculate_net_requirement(
                requirement,
                supply.resolve(material_id),
                mrp_run.planning_horizon,
                today=today,
            )
            for material_id, requirement in sorted(accumulator.items())
        ]

    @staticmethod
    def _to_result(run_id: int, requirement: NetRequirement) -> MRPResult:
        return MRPResult(
            mrp_run_id=run_id,
            material_id=requirement.material_id,
            material_code=requirement.material_code,
            material_name=requirement.material_name,
            unit=requirement.unit,
            gross_requirement=requirement.gross_requirement,
            on_hand_stock=requirement.on_hand,
            in_transit_qty=requirement.in_transit,
            in_production_qty=requirement.in_production,
            safety_stock=requirement.safety_stock,
            net_requirement=requirement.net_requirement,
            planned_order_qty=requirement.planned_order_qty,
            action_type=requirement.action_type,
            required_date=requirement.required_date,
            lead_time_days=requirement.lead_time_days,
            order_date=requirement.order_date,
            applied=False,
        )

    def _resolve_horizon(self, planning_horizon_days: Optional[int]) -> int:
        if planning_horizon_days is None or planning_horizon_days <= 0:
            return settings.MRP_DEFAULT_PLANNING_HORIZON_DAYS
        if planning_horizon_days > settings.MRP_MAX_PLANNING_HORIZON_DAYS:
            raise ValidationError(
                f"Planning horizon cannot exceed {settings.MRP_MAX_PLANNING_HORIZON_DAYS} days",
                field="planning_horizon_days",
                value=planning_horizon_days,
            )
        return planning_horizon_days

    def _next_run_code(self) -> str:
        """MRP-YYYYMMDD-NNNN, sequential within the day"""
        prefix = f"MRP-{datetime.utcnow().strftime('%Y%m%d')}"
        last = (
            self.db.query(MRPRun.run_code)
            .filter(MRPRun.run_code.like(f"{prefix}-%"))
            .order_by(desc(MRPRun.run_code))
            .first()
        )
        next_num = 1
        if last:
            try:
                next_num = int(last[0].rsplit("-", 1)[1]) + 1
            except (IndexError, ValueError):
                pass
        return f"{prefix}-{next_num:04d}"

    # =========================================================================
    # Queries
    # =========================================================================

    def get_run(self, run_id: int) -> MRPRun:
        mrp_run = self.db.query(MRPRun).filter(MRPRun.id == run_id).first()
        if not mrp_run:
            raise NotFoundError("MRPRun", run_id)
        return mrp_run

    def get_latest_run(self) -> Optional[MRPRun]:
        return (
            self.db.query(MRPRun)
            .order_by(desc(MRPRun.started_at), desc(MRPRun.id))
            .first()
        )

    def list_runs(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[str] = None,
    ) -> Tuple[List[MRPRun], int]:
        query = self.db.query(MRPRun)
        if status:
            query = query.filter(MRPRun.status == status)
        total = query.count()
        runs = (
            query.order_by(desc(MRPRun.started_at), desc(MRPRun.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return runs, total

    def get_results(
        self,
        run_id: int,
        action_type: Optional[str] = None,
        shortages_only: bool = False,
    ) -> List[MRPResult]:
        self.get_run(run_id)
        query = self.db.query(MRPResult).filter(MRPResult.mrp_run_id == run_id)
        if action_type:
            query = query.filter(MRPResult.action_type == action_type)
        if shortages_only:
            query = query.filter(MRPResult.net_requirement > 0)
        return query.order_by(MRPResult.material_code, MRPResult.id).all()

    # =========================================================================
    # Apply
    # =========================================================================

    def apply_run(self, run_id: int, user_id: Optional[str] = None) -> MRPRun:
        """
        Turn a COMPLETED run's shortages into draft Purchase Requisitions.

        PRODUCE results are marked applied without generating a work order.
        Marking results applied, creating the requisitions and moving the run
        to APPLIED commit together; the run row is locked so two concurrent
        applies cannot both pass the status guard.
        """
        with transaction_scope(self.db):
            mrp_run = (
                self.db.query(MRPRun)
                .filter(MRPRun.id == run_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not mrp_run:
                raise NotFoundError("MRPRun", run_id)
            target_status = guard_transition(
                MRP_RUN_ACTIONS, "MRPRun", run_id, mrp_run.status, "apply"
            )

            pending = (
                self.db.query(MRPResult)
                .filter(
                    MRPResult.mrp_run_id == run_id,
                    MRPResult.applied.is_(False),
                    MRPResult.net_requirement > 0,
                )
                .order_by(MRPResult.id)
                .all()
            )

            prs_generated = 0
            produce_skipped = 0
            for result in pending:
                if result.action_type == MRPActionType.PURCHASE.value:
                    self._create_requisition(mrp_run, result, user_id)
                    prs_generated += 1
                else:
                    # TODO: generate work orders for PRODUCE shortages once the
                    # routing/capacity inputs exist; until then they are only counted
                    produce_skipped += 1
                    logger.info(
                        f"MRP run {mrp_run.run_code}: produce requirement for "
                        f"{result.material_code} not converted to a work order",
                        extra={
                            "mrp_run_id": run_id,
                            "material_id": result.material_id,
                            "planned_order_qty": str(result.planned_order_qty),
                        },
                    )
                result.applied = True

            mrp_run.status = target_status
            mrp_run.applied_at = datetime.utcnow()
            mrp_run.applied_by = user_id
            mrp_run.prs_generated = prs_generated
            mrp_run.wos_generated = 0

        logger.info(
            f"MRP run {mrp_run.run_code} applied",
            extra={
                "mrp_run_id": run_id,
                "prs_generated": prs_generated,
                "produce_skipped": produce_skipped,
            },
        )
        return mrp_run

    def _create_requisition(
        self, mrp_run: MRPRun, result: MRPResult, user_id: Optional[str]
    ) -> PurchaseRequisition:
        requisition = PurchaseRequisition(
            pr_code=next_document_code(self.db, PurchaseRequisition.pr_code, "PR"),
            status=PRStatus.DRAFT.value,
            material_id=result.material_id,
            quantity=Decimal(result.planned_order_qty),
            unit=result.unit,
            required_date=result.required_date,
            source=PRSource.MRP.value,
            source_id=mrp_run.id,
            notes=f"Generated by MRP run {mrp_run.run_code}",
            requested_by=user_id,
        )
        self.db.add(requisition)
        # Flush so the next PR code sees this one
        self.db.flush()
        return requisition
