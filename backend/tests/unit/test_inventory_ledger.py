"""
Unit Tests for the Inventory Ledger

Covers:
1. Inbound/outbound/adjust keep the journal sum equal to the stock record
2. Failed outbound and negative adjustment leave everything unchanged
3. FIFO issue across batches
4. Reference type validation
"""
import pytest
from decimal import Decimal

from sqlalchemy import func

from stockplan.exceptions import (
    ConcurrencyError,
    InsufficientStockError,
    NegativeStockError,
    NotFoundError,
    ValidationError,
)
from stockplan.models.inventory import Inventory, InventoryTransaction
from stockplan.services.inventory_ledger import InventoryLedger
from stockplan.services.inventory_service import InventoryService

from tests.factories import create_test_material, create_test_warehouse


@pytest.fixture
def material(db_session):
    return create_test_material(db_session, code="M-BOLT", safety_stock=Decimal("10"))


@pytest.fixture
def warehouse(db_session):
    return create_test_warehouse(db_session, code="WH-MAIN")


@pytest.fixture
def ledger(db_session):
    return InventoryLedger(db_session, operator="tester")


def _stock(db, material, warehouse):
    return (
        db.query(func.coalesce(func.sum(Inventory.available_qty), 0))
        .filter(Inventory.material_id == material.id, Inventory.warehouse_id == warehouse.id)
        .scalar()
    )


def _journal_total(db, material, warehouse):
    return (
        db.query(func.coalesce(func.sum(InventoryTransaction.quantity), 0))
        .filter(
            InventoryTransaction.material_id == material.id,
            InventoryTransaction.warehouse_id == warehouse.id,
        )
        .scalar()
    )


class TestInbound:

    def test_first_inbound_creates_record_and_journal_row(self, db_session, ledger, material, warehouse):
        entry = ledger.inbound(
            material_id=material.id,
            warehouse_id=warehouse.id,
            quantity=Decimal("25"),
            reference_type="PO",
            reference_id=7,
            reference_code="PO-2026-0007",
            unit_cost=Decimal("1.50"),
        )
        db_session.commit()

        record = db_session.query(Inventory).one()
        assert record.quantity == Decimal("25")
        assert record.available_qty == Decimal("25")
        assert record.batch_no == ""
        assert record.safety_stock == Decimal("10")
        assert entry.transaction_type == "PURCHASE_IN"
        assert entry.quantity == Decimal("25")
        assert entry.transaction_code.startswith("TX-")
        assert entry.operator == "tester"

    def test_second_inbound_increments_same_record(self, db_session, ledger, material, warehouse):
        for qty in (Decimal("10"), Decimal("15")):
            ledger.inbound(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=qty, reference_type="RETURN",
            )
        db_session.commit()

        assert db_session.query(Inventory).count() == 1
        assert _stock(db_session, material, warehouse) == Decimal("25")
        assert db_session.query(InventoryTransaction).count() == 2

    def test_work_order_reference_is_production_in(self, db_session, ledger, material, warehouse):
        entry = ledger.inbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("1"), reference_type="WO",
        )
        assert entry.transaction_type == "PRODUCTION_IN"

    def test_invalid_reference_type_rejected(self, ledger, material, warehouse):
        with pytest.raises(ValidationError):
            ledger.inbound(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("1"), reference_type="SO",
            )

    @pytest.mark.parametrize("qty", [Decimal("0"), Decimal("-5")])
    def test_non_positive_quantity_rejected(self, ledger, material, warehouse, qty):
        with pytest.raises(ValidationError):
            ledger.inbound(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=qty, reference_type="PO",
            )

    def test_unknown_warehouse(self, ledger, material):
        with pytest.raises(NotFoundError):
            ledger.inbound(
                material_id=material.id, warehouse_id=999,
                quantity=Decimal("1"), reference_type="PO",
            )


class TestOutbound:

    def test_outbound_exceeding_available_changes_nothing(self, db_session, ledger, material, warehouse):
        ledger.inbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("60"), reference_type="PO",
        )
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.outbound(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("100"), reference_type="SO",
            )
        db_session.rollback()

        assert Decimal(exc_info.value.details["available"]) == Decimal("60")
        assert _stock(db_session, material, warehouse) == Decimal("60")
        assert db_session.query(InventoryTransaction).count() == 1

    def test_outbound_is_fifo_across_batches(self, db_session, ledger, material, warehouse):
        ledger.inbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("10"), batch_no="B1", reference_type="PO",
        )
        ledger.inbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("10"), batch_no="B2", reference_type="PO",
        )
        db_session.commit()

        entries = ledger.outbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("15"), reference_type="WO",
        )
        db_session.commit()

        assert [(e.batch_no, e.quantity) for e in entries] == [
            ("B1", Decimal("-10")),
            ("B2", Decimal("-5")),
        ]
        assert all(e.transaction_type == "PRODUCTION_OUT" for e in entries)
        by_batch = {r.batch_no: r.available_qty for r in db_session.query(Inventory).all()}
        assert by_batch == {"B1": Decimal("0"), "B2": Decimal("5")}

    def test_outbound_restricted_to_batch(self, db_session, ledger, material, warehouse):
        ledger.inbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("10"), batch_no="B1", reference_type="PO",
        )
        db_session.commit()

        with pytest.raises(InsufficientStockError):
            ledger.outbound(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("1"), batch_no="B2", reference_type="SCRAP",
            )

    def test_invalid_reference_type_rejected(self, ledger, material, warehouse):
        with pytest.raises(ValidationError):
            ledger.outbound(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("1"), reference_type="PO",
            )


class TestAdjust:

    def test_positive_adjust_creates_stock(self, db_session, ledger, material, warehouse):
        entry = ledger.adjust(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("4"), reason="found in cycle count",
        )
        db_session.commit()

        assert entry.transaction_type == "ADJUST"
        assert entry.reference_type == "ADJUST"
        assert entry.reason == "found in cycle count"
        assert _stock(db_session, material, warehouse) == Decimal("4")

    def test_negative_adjust_below_zero_rejected(self, db_session, ledger, material, warehouse):
        ledger.inbound(
            material_id=material.id, warehouse_id=warehouse.id,
            quantity=Decimal("3"), reference_type="PO",
        )
        db_session.commit()

        with pytest.raises(NegativeStockError):
            ledger.adjust(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("-5"), reason="damaged",
            )
        db_session.rollback()

        assert _stock(db_session, material, warehouse) == Decimal("3")
        assert db_session.query(InventoryTransaction).count() == 1

    def test_negative_adjust_without_record_rejected(self, ledger, material, warehouse):
        with pytest.raises(NegativeStockError):
            ledger.adjust(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("-1"), reason="damaged",
            )

    def test_reason_required(self, ledger, material, warehouse):
        with pytest.raises(ValidationError):
            ledger.adjust(
                material_id=material.id, warehouse_id=warehouse.id,
                quantity=Decimal("1"), reason="  ",
            )


class TestJournalBalance:

    def test_journal_sum_matches_stock_after_mixed_operations(self, db_session, ledger, material, warehouse):
        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("50"), reference_type="PO")
        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("20"), batch_no="LOT-2", reference_type="PO")
        ledger.outbound(material_id=material.id, warehouse_id=warehouse.id,
                        quantity=Decimal("55"), reference_type="WO")
        ledger.adjust(material_id=material.id, warehouse_id=warehouse.id,
                      quantity=Decimal("-5"), reason="damaged", batch_no="LOT-2")
        ledger.adjust(material_id=material.id, warehouse_id=warehouse.id,
                      quantity=Decimal("2"), reason="recount")
        db_session.commit()

        assert _stock(db_session, material, warehouse) == Decimal("12")
        assert _journal_total(db_session, material, warehouse) == Decimal("12")
        assert all(r.available_qty >= 0 for r in db_session.query(Inventory).all())

        report = InventoryService(db_session).reconcile(material.id, warehouse.id)
        assert report["balanced"] is True
        assert report["discrepancy"] == Decimal("0")


class TestConcurrencyGuards:
    """Conditional UPDATE and insert-race branches, forced through stubs."""

    def test_lost_race_on_later_record_rolls_back_earlier_debit(
        self, db_session, ledger, material, warehouse, monkeypatch
    ):
        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("5"), batch_no="B1", reference_type="PO")
        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("5"), batch_no="B2", reference_type="PO")
        db_session.commit()

        real_remove = ledger._remove_stock
        calls = []

        def remove_then_lose(record_id, qty):
            calls.append(record_id)
            if len(calls) == 2:
                return False
            return real_remove(record_id, qty)

        monkeypatch.setattr(ledger, "_remove_stock", remove_then_lose)

        with pytest.raises(InsufficientStockError):
            ledger.outbound(material_id=material.id, warehouse_id=warehouse.id,
                            quantity=Decimal("8"), reference_type="WO")
        db_session.commit()

        assert len(calls) == 2
        assert _stock(db_session, material, warehouse) == Decimal("10")
        assert _journal_total(db_session, material, warehouse) == Decimal("10")
        assert db_session.query(InventoryTransaction).count() == 2
        b1 = db_session.query(Inventory).filter(Inventory.batch_no == "B1").one()
        assert b1.available_qty == Decimal("5")

    def test_insert_race_retries_as_update(self, db_session, ledger, material, warehouse, monkeypatch):
        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("5"), reference_type="PO")
        db_session.commit()

        real_increment = ledger._increment
        calls = []

        def miss_first(*args, **kwargs):
            # The first UPDATE runs before the competing insert is visible
            calls.append(args)
            if len(calls) == 1:
                return False
            return real_increment(*args, **kwargs)

        monkeypatch.setattr(ledger, "_increment", miss_first)

        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("3"), reference_type="PO")
        db_session.commit()

        assert len(calls) == 2
        record = db_session.query(Inventory).one()
        assert record.available_qty == Decimal("8")
        assert _journal_total(db_session, material, warehouse) == Decimal("8")

    def test_insert_race_without_visible_row_is_concurrency_error(
        self, db_session, ledger, material, warehouse, monkeypatch
    ):
        ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                       quantity=Decimal("5"), reference_type="PO")
        db_session.commit()

        monkeypatch.setattr(ledger, "_increment", lambda *args, **kwargs: False)

        with pytest.raises(ConcurrencyError) as exc_info:
            ledger.inbound(material_id=material.id, warehouse_id=warehouse.id,
                           quantity=Decimal("3"), reference_type="PO")
        db_session.rollback()

        assert exc_info.value.details["material_id"] == material.id
        assert _stock(db_session, material, warehouse) == Decimal("5")
        assert _journal_total(db_session, material, warehouse) == Decimal("5")
