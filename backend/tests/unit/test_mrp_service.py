"""
Unit Tests for MRP Service

Tests the run lifecycle end to end on SQLite:
1. Demand -> explosion -> netting -> persisted results
2. FAILED runs keep no results
3. Apply creates draft purchase requisitions exactly once
4. Degraded supply lookups are recorded on the run
"""
import pytest
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stockplan.core.settings import settings
from stockplan.exceptions import (
    DatabaseError,
    InvalidStateTransitionError,
    NotFoundError,
    StockPlanException,
    UpstreamDependencyError,
    ValidationError,
)
from stockplan.models.bom import BOMItem
from stockplan.models.mrp import MRPResult, MRPRun
from stockplan.models.purchase_order import PurchaseRequisition
from stockplan.services.demand import DemandAggregator
from stockplan.services.mrp import MRPService
from stockplan.services.supply import SupplyPositionResolver

from tests.factories import (
    create_test_bom,
    create_test_bom_item,
    create_test_inventory,
    create_test_material,
    create_test_product,
    create_test_purchase_order,
    create_test_sales_order,
    create_test_warehouse,
    create_test_work_order,
)


@pytest.fixture
def mrp_service(db_session):
    return MRPService(db_session)


@pytest.fixture
def shortage_scenario(db_session):
    """
    Product P needs 2 x M. M has safety stock 10 and 5 on hand.
    An open sales order for 20 x P gives gross 2*20 + 10 = 50, net 45.
    """
    material = create_test_material(db_session, code="M", safety_stock=Decimal("10"), lead_time_days=3)
    product = create_test_product(db_session, code="P")
    bom = create_test_bom(db_session, product)
    create_test_bom_item(db_session, bom, material, Decimal("2"))
    warehouse = create_test_warehouse(db_session)
    create_test_inventory(db_session, material, warehouse, Decimal("5"))
    create_test_sales_order(db_session, product, Decimal("20"))
    db_session.commit()
    return {"material": material, "product": product, "bom": bom, "warehouse": warehouse}


class TestRunMRP:

    def test_shortage_produces_purchase_result(self, db_session, mrp_service, shortage_scenario):
        run = mrp_service.run_mrp(user_id="planner")

        assert run.status == "COMPLETED"
        assert run.total_items == 1
        assert run.completed_at is not None
        assert run.run_code.startswith("MRP-")
        assert run.created_by == "planner"

        results = mrp_service.get_results(run.id)
        assert len(results) == 1
        result = results[0]
        assert result.material_id == shortage_scenario["material"].id
        assert result.gross_requirement == Decimal("50")
        assert result.on_hand_stock == Decimal("5")
        assert result.net_requirement == Decimal("45")
        assert result.planned_order_qty == Decimal("45")
        assert result.action_type == "PURCHASE"
        assert result.applied is False
        assert (result.required_date - result.order_date).days == 3

    def test_open_purchase_order_counts_as_in_transit(self, db_session, mrp_service, shortage_scenario):
        create_test_purchase_order(
            db_session, shortage_scenario["material"], Decimal("30"), status="SENT"
        )
        # Draft POs are not supply yet
        create_test_purchase_order(
            db_session, shortage_scenario["material"], Decimal("1000"), status="DRAFT"
        )
        db_session.commit()

        run = mrp_service.run_mrp()
        result = mrp_service.get_results(run.id)[0]

        assert result.in_transit_qty == Decimal("30")
        assert result.net_requirement == Decimal("15")

    def test_active_work_order_counts_as_in_production(self, db_session, mrp_service, shortage_scenario):
        material_id = shortage_scenario["material"].id
        create_test_work_order(
            db_session, shortage_scenario["product"], Decimal("20"),
            status="RELEASED", material_id=material_id, completed_qty=Decimal("5"),
        )
        create_test_work_order(
            db_session, shortage_scenario["product"], Decimal("100"),
            status="COMPLETED", material_id=material_id,
        )
        db_session.commit()

        run = mrp_service.run_mrp()
        result = mrp_service.get_results(run.id)[0]

        assert result.in_production_qty == Decimal("15")
        assert result.net_requirement == Decimal("30")

    def test_over_reported_work_order_adds_no_supply(self, db_session, mrp_service, shortage_scenario):
        create_test_work_order(
            db_session, shortage_scenario["product"], Decimal("10"),
            status="IN_PROGRESS", material_id=shortage_scenario["material"].id,
            completed_qty=Decimal("25"),
        )
        db_session.commit()

        run = mrp_service.run_mrp()
        result = mrp_service.get_results(run.id)[0]

        assert result.in_production_qty == Decimal("0")
        assert result.net_requirement == Decimal("45")

    def test_shipped_orders_are_not_demand(self, db_session, mrp_service):
        material = create_test_material(db_session, code="M")
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        create_test_bom_item(db_session, bom, material, Decimal("1"))
        create_test_sales_order(db_session, product, Decimal("8"), status="SHIPPED")
        create_test_sales_order(db_session, product, Decimal("3"), status="CONFIRMED")
        db_session.commit()

        run = mrp_service.run_mrp()
        result = mrp_service.get_results(run.id)[0]

        assert result.gross_requirement == Decimal("3")

    def test_only_released_bom_is_exploded(self, db_session, mrp_service):
        released_mat = create_test_material(db_session, code="REL")
        draft_mat = create_test_material(db_session, code="DRF")
        product = create_test_product(db_session)
        released = create_test_bom(db_session, product, status="released")
        create_test_bom_item(db_session, released, released_mat, Decimal("1"))
        draft = create_test_bom(db_session, product, status="draft")
        create_test_bom_item(db_session, draft, draft_mat, Decimal("1"))
        create_test_sales_order(db_session, product, Decimal("4"))
        db_session.commit()

        run = mrp_service.run_mrp()

        assert [r.material_code for r in mrp_service.get_results(run.id)] == ["REL"]

    def test_scoped_run_only_plans_that_product(self, db_session, mrp_service, shortage_scenario):
        other_mat = create_test_material(db_session, code="OTHER")
        other = create_test_product(db_session)
        bom = create_test_bom(db_session, other)
        create_test_bom_item(db_session, bom, other_mat, Decimal("1"))
        create_test_sales_order(db_session, other, Decimal("9"))
        db_session.commit()

        run = mrp_service.run_mrp(product_id=shortage_scenario["product"].id)

        codes = [r.material_code for r in mrp_service.get_results(run.id)]
        assert codes == ["M"]
        assert run.product_id == shortage_scenario["product"].id

    def test_sub_assembly_is_produce(self, db_session, mrp_service):
        screw = create_test_material(db_session, code="SCREW")
        sub = create_test_material(db_session, code="SUB")
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        sub_item = create_test_bom_item(db_session, bom, sub, Decimal("2"))
        create_test_bom_item(db_session, bom, screw, Decimal("3"), parent=sub_item)
        create_test_sales_order(db_session, product, Decimal("5"))
        db_session.commit()

        run = mrp_service.run_mrp()
        by_code = {r.material_code: r for r in mrp_service.get_results(run.id)}

        assert by_code["SUB"].action_type == "PRODUCE"
        assert by_code["SUB"].gross_requirement == Decimal("10")
        assert by_code["SCREW"].gross_requirement == Decimal("30")

    def test_failed_run_keeps_no_results(self, db_session, mrp_service):
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        db_session.add(BOMItem(bom_header_id=bom.id, material_id=424242, quantity=Decimal("1")))
        create_test_sales_order(db_session, product, Decimal("1"))
        db_session.commit()

        with pytest.raises(UpstreamDependencyError) as exc_info:
            mrp_service.run_mrp()

        run_id = exc_info.value.details["mrp_run_id"]
        run = db_session.get(MRPRun, run_id)
        assert run.status == "FAILED"
        assert run.error_message
        assert run.completed_at is not None
        assert db_session.query(MRPResult).filter(MRPResult.mrp_run_id == run_id).count() == 0

    def test_one_result_row_per_material(self, db_session, mrp_service, shortage_scenario):
        run = mrp_service.run_mrp()

        db_session.add(
            MRPResult(
                mrp_run_id=run.id,
                material_id=shortage_scenario["material"].id,
                action_type="PURCHASE",
            )
        )
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()

        assert len(mrp_service.get_results(run.id)) == 1

    def test_database_failure_carries_run_id(self, db_session, mrp_service, monkeypatch):
        def broken_demand(self):
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(DemandAggregator, "pending_demand", broken_demand)

        with pytest.raises(DatabaseError) as exc_info:
            mrp_service.run_mrp()

        run = db_session.get(MRPRun, exc_info.value.details["mrp_run_id"])
        assert run.status == "FAILED"
        assert "connection reset" in run.error_message
        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)

    def test_unexpected_failure_carries_run_id(self, db_session, mrp_service, monkeypatch):
        def broken_demand(self):
            raise KeyError("product")

        monkeypatch.setattr(DemandAggregator, "pending_demand", broken_demand)

        with pytest.raises(StockPlanException) as exc_info:
            mrp_service.run_mrp()

        run = db_session.get(MRPRun, exc_info.value.details["mrp_run_id"])
        assert run.status == "FAILED"

    def test_degraded_supply_lookup_is_recorded(self, db_session, mrp_service, shortage_scenario, monkeypatch):
        def broken_in_transit(self, material_id):
            raise SQLAlchemyError("relation purchase_order_items is unavailable")

        monkeypatch.setattr(SupplyPositionResolver, "in_transit", broken_in_transit)

        run = mrp_service.run_mrp()

        assert run.status == "COMPLETED"
        assert run.diagnostics[0]["query"] == "in_transit"
        assert run.diagnostics[0]["material_id"] == shortage_scenario["material"].id
        # The failed lookup counts as zero supply
        assert mrp_service.get_results(run.id)[0].net_requirement == Decimal("45")

    def test_no_products_completes_empty(self, mrp_service):
        run = mrp_service.run_mrp()
        assert run.status == "COMPLETED"
        assert run.total_items == 0

    @pytest.mark.parametrize("horizon", [None, 0, -3])
    def test_non_positive_horizon_uses_default(self, mrp_service, horizon):
        run = mrp_service.run_mrp(planning_horizon_days=horizon)
        assert run.planning_horizon == settings.MRP_DEFAULT_PLANNING_HORIZON_DAYS

    def test_horizon_above_maximum_rejected(self, db_session, mrp_service):
        with pytest.raises(ValidationError):
            mrp_service.run_mrp(planning_horizon_days=settings.MRP_MAX_PLANNING_HORIZON_DAYS + 1)
        assert db_session.query(MRPRun).count() == 0

    def test_unknown_product_rejected(self, mrp_service):
        with pytest.raises(NotFoundError):
            mrp_service.run_mrp(product_id=999)

    def test_run_codes_are_sequential(self, mrp_service):
        first = mrp_service.run_mrp()
        second = mrp_service.run_mrp()
        assert int(second.run_code[-4:]) == int(first.run_code[-4:]) + 1


class TestQueries:

    def test_latest_run_and_listing(self, mrp_service):
        assert mrp_service.get_latest_run() is None
        mrp_service.run_mrp()
        latest = mrp_service.run_mrp()

        assert mrp_service.get_latest_run().id == latest.id
        runs, total = mrp_service.list_runs(page=1, page_size=1)
        assert total == 2
        assert len(runs) == 1

    def test_list_runs_filtered_by_status(self, mrp_service):
        mrp_service.run_mrp()
        runs, total = mrp_service.list_runs(status="FAILED")
        assert total == 0
        assert runs == []

    def test_shortages_only_filter(self, db_session, mrp_service, shortage_scenario):
        plenty = create_test_material(db_session, code="PLENTY")
        create_test_bom_item(db_session, shortage_scenario["bom"], plenty, Decimal("1"))
        create_test_inventory(db_session, plenty, shortage_scenario["warehouse"], Decimal("1000"))
        db_session.commit()

        run = mrp_service.run_mrp()

        assert len(mrp_service.get_results(run.id)) == 2
        shortages = mrp_service.get_results(run.id, shortages_only=True)
        assert [r.material_code for r in shortages] == ["M"]

    def test_get_unknown_run(self, mrp_service):
        with pytest.raises(NotFoundError):
            mrp_service.get_run(12345)


class TestApplyRun:

    def test_apply_creates_draft_requisitions(self, db_session, mrp_service, shortage_scenario):
        run = mrp_service.run_mrp()

        applied = mrp_service.apply_run(run.id, user_id="planner")

        assert applied.status == "APPLIED"
        assert applied.prs_generated == 1
        assert applied.applied_by == "planner"
        pr = db_session.query(PurchaseRequisition).one()
        assert pr.status == "DRAFT"
        assert pr.source == "MRP"
        assert pr.source_id == run.id
        assert pr.quantity == Decimal("45")
        assert pr.material_id == shortage_scenario["material"].id
        assert pr.pr_code.startswith("PR-")
        assert all(r.applied for r in mrp_service.get_results(run.id))

    def test_second_apply_is_rejected(self, db_session, mrp_service, shortage_scenario):
        run = mrp_service.run_mrp()
        mrp_service.apply_run(run.id)

        with pytest.raises(InvalidStateTransitionError):
            mrp_service.apply_run(run.id)

        assert db_session.query(PurchaseRequisition).count() == 1
        assert mrp_service.get_run(run.id).status == "APPLIED"

    def test_failed_run_cannot_be_applied(self, db_session, mrp_service):
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        db_session.add(BOMItem(bom_header_id=bom.id, material_id=424242, quantity=Decimal("1")))
        db_session.commit()
        with pytest.raises(UpstreamDependencyError) as exc_info:
            mrp_service.run_mrp()

        with pytest.raises(InvalidStateTransitionError):
            mrp_service.apply_run(exc_info.value.details["mrp_run_id"])
        assert db_session.query(PurchaseRequisition).count() == 0

    def test_produce_shortage_creates_no_requisition(self, db_session, mrp_service):
        screw = create_test_material(db_session, code="SCREW")
        sub = create_test_material(db_session, code="SUB")
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        sub_item = create_test_bom_item(db_session, bom, sub, Decimal("1"))
        create_test_bom_item(db_session, bom, screw, Decimal("1"), parent=sub_item)
        create_test_sales_order(db_session, product, Decimal("2"))
        db_session.commit()

        run = mrp_service.run_mrp()
        applied = mrp_service.apply_run(run.id)

        assert applied.prs_generated == 1
        assert applied.wos_generated == 0
        pr = db_session.query(PurchaseRequisition).one()
        assert pr.material_id == screw.id

    def test_apply_unknown_run(self, mrp_service):
        with pytest.raises(NotFoundError):
            mrp_service.apply_run(777)
