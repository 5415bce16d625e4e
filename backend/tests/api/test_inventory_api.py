"""
Tests for the inventory ledger endpoints.
"""
import pytest
from decimal import Decimal

from tests.factories import create_test_material, create_test_warehouse


@pytest.fixture
def stock_setup(db_session):
    material = create_test_material(db_session, code="NUT-M6", safety_stock=Decimal("50"))
    warehouse = create_test_warehouse(db_session, code="WH-A")
    db_session.commit()
    return {"material_id": material.id, "warehouse_id": warehouse.id}


def _inbound(client, setup, quantity, **extra):
    payload = {
        "material_id": setup["material_id"],
        "warehouse_id": setup["warehouse_id"],
        "quantity": quantity,
        "reference_type": "PO",
        **extra,
    }
    return client.post("/api/v1/inventory/inbound", json=payload, headers={"X-User-Id": "clerk"})


class TestLedgerEndpoints:
    """Tests for POST /api/v1/inventory/{inbound,outbound,adjust}"""

    @pytest.mark.api
    def test_inbound_records_operator(self, client, stock_setup):
        response = _inbound(client, stock_setup, "60", unit_cost="1.25")

        assert response.status_code == 201
        body = response.json()
        assert body["transaction_type"] == "PURCHASE_IN"
        assert body["operator"] == "clerk"
        assert Decimal(str(body["quantity"])) == Decimal("60")

    @pytest.mark.api
    def test_outbound_over_available_is_422(self, client, stock_setup):
        _inbound(client, stock_setup, "60")

        response = client.post(
            "/api/v1/inventory/outbound",
            json={**stock_setup, "quantity": "100", "reference_type": "SO"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "INSUFFICIENT_STOCK"
        stock = client.get(f"/api/v1/inventory/material/{stock_setup['material_id']}").json()
        assert Decimal(str(stock[0]["available_qty"])) == Decimal("60")

    @pytest.mark.api
    def test_outbound_returns_journal_rows(self, client, stock_setup):
        _inbound(client, stock_setup, "10", batch_no="B1")
        _inbound(client, stock_setup, "10", batch_no="B2")

        response = client.post(
            "/api/v1/inventory/outbound",
            json={**stock_setup, "quantity": "15", "reference_type": "SCRAP"},
        )

        assert response.status_code == 201
        rows = response.json()
        assert [r["batch_no"] for r in rows] == ["B1", "B2"]
        assert all(r["transaction_type"] == "SCRAP_OUT" for r in rows)

    @pytest.mark.api
    def test_unknown_reference_type_is_422(self, client, stock_setup):
        response = client.post(
            "/api/v1/inventory/inbound",
            json={**stock_setup, "quantity": "1", "reference_type": "GIFT"},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.api
    def test_negative_adjust_below_zero_is_422(self, client, stock_setup):
        _inbound(client, stock_setup, "3")

        response = client.post(
            "/api/v1/inventory/adjust",
            json={**stock_setup, "quantity": "-5", "reason": "damaged"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "NEGATIVE_STOCK"

    @pytest.mark.api
    def test_unknown_warehouse_is_404(self, client, stock_setup):
        response = client.post(
            "/api/v1/inventory/inbound",
            json={**stock_setup, "warehouse_id": 999, "quantity": "1", "reference_type": "PO"},
        )
        assert response.status_code == 404


class TestQueries:
    """Tests for GET /api/v1/inventory/..."""

    @pytest.mark.api
    def test_list_paginates(self, client, stock_setup):
        _inbound(client, stock_setup, "5", batch_no="B1")
        _inbound(client, stock_setup, "5", batch_no="B2")

        body = client.get("/api/v1/inventory/", params={"page_size": 1}).json()

        assert body["pagination"]["total"] == 2
        assert body["pagination"]["returned"] == 1

    @pytest.mark.api
    def test_alerts_below_safety_stock(self, client, stock_setup):
        _inbound(client, stock_setup, "20")

        alerts = client.get("/api/v1/inventory/alerts").json()

        assert len(alerts) == 1
        assert alerts[0]["material_code"] == "NUT-M6"

    @pytest.mark.api
    def test_transactions_and_reconcile(self, client, stock_setup):
        _inbound(client, stock_setup, "40")
        client.post(
            "/api/v1/inventory/adjust",
            json={**stock_setup, "quantity": "-4", "reason": "cycle count"},
        )

        journal = client.get(
            "/api/v1/inventory/transactions", params={"material_id": stock_setup["material_id"]}
        ).json()
        assert journal["pagination"]["total"] == 2

        report = client.get("/api/v1/inventory/reconcile", params=stock_setup).json()
        assert report["balanced"] is True
        assert Decimal(str(report["record_quantity"])) == Decimal("36")
