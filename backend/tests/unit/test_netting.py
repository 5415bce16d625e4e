"""
Unit Tests for net requirement calculation
"""
from datetime import date
from decimal import Decimal

import pytest

from stockplan.services.bom_explosion import MaterialRequirement
from stockplan.services.netting import calculate_net_requirement
from stockplan.services.supply import SupplyPosition


TODAY = date(2026, 3, 2)


def _requirement(gross="50", safety="10", lead_time=7, action="PURCHASE"):
    return MaterialRequirement(
        material_id=1,
        material_code="M-001",
        material_name="Steel plate",
        unit="pcs",
        safety_stock=Decimal(safety),
        lead_time_days=lead_time,
        gross_requirement=Decimal(gross),
        action_type=action,
    )


class TestNetRequirement:

    def test_safety_stock_added_to_gross(self):
        result = calculate_net_requirement(
            _requirement(gross="40", safety="10"),
            SupplyPosition(on_hand=Decimal("5")),
            30,
            today=TODAY,
        )
        assert result.gross_requirement == Decimal("50")
        assert result.net_requirement == Decimal("45")
        assert result.planned_order_qty == Decimal("45")

    def test_all_supply_kinds_subtracted(self):
        result = calculate_net_requirement(
            _requirement(gross="100", safety="0"),
            SupplyPosition(
                on_hand=Decimal("10"),
                in_transit=Decimal("20"),
                in_production=Decimal("30"),
            ),
            30,
            today=TODAY,
        )
        assert result.net_requirement == Decimal("40")
        assert result.in_transit == Decimal("20")
        assert result.in_production == Decimal("30")

    def test_surplus_floors_at_zero(self):
        result = calculate_net_requirement(
            _requirement(gross="5", safety="0"),
            SupplyPosition(on_hand=Decimal("500")),
            30,
            today=TODAY,
        )
        assert result.net_requirement == Decimal("0")
        assert result.planned_order_qty == Decimal("0")

    @pytest.mark.parametrize("on_hand", ["0", "10", "45", "60"])
    def test_more_supply_never_raises_net(self, on_hand):
        base = calculate_net_requirement(
            _requirement(), SupplyPosition(), 30, today=TODAY
        )
        with_stock = calculate_net_requirement(
            _requirement(), SupplyPosition(on_hand=Decimal(on_hand)), 30, today=TODAY
        )
        assert with_stock.net_requirement <= base.net_requirement

    def test_dates_from_horizon_and_lead_time(self):
        result = calculate_net_requirement(
            _requirement(lead_time=7), SupplyPosition(), 30, today=TODAY
        )
        assert result.required_date == date(2026, 4, 1)
        assert result.order_date == date(2026, 3, 25)
        assert result.lead_time_days == 7

    def test_action_type_carried_through(self):
        result = calculate_net_requirement(
            _requirement(action="PRODUCE"), SupplyPosition(), 30, today=TODAY
        )
        assert result.action_type == "PRODUCE"
