"""
Unit Tests for BOM Explosion

Tests:
1. Single-level and multi-level explosion
2. Accumulation of a material used in several positions
3. PRODUCE marking for sub-assemblies
4. Cycle detection and missing master data
"""
import pytest
from decimal import Decimal

from stockplan.exceptions import UpstreamDependencyError, ValidationError
from stockplan.services.bom_explosion import BOMExplosionEngine

from tests.factories import (
    create_test_bom,
    create_test_bom_item,
    create_test_material,
    create_test_product,
)


@pytest.fixture
def engine(db_session):
    return BOMExplosionEngine(db_session)


@pytest.fixture
def multilevel_bom(db_session):
    """
    Product P:
        2 x SUB (sub-assembly)
            3 x SCREW
            1 x PANEL
        4 x SCREW
    """
    screw = create_test_material(db_session, code="SCREW", lead_time_days=5)
    panel = create_test_material(db_session, code="PANEL")
    sub = create_test_material(db_session, code="SUB")
    product = create_test_product(db_session, code="P")
    bom = create_test_bom(db_session, product)

    sub_item = create_test_bom_item(db_session, bom, sub, Decimal("2"))
    create_test_bom_item(db_session, bom, screw, Decimal("3"), parent=sub_item)
    create_test_bom_item(db_session, bom, panel, Decimal("1"), parent=sub_item)
    create_test_bom_item(db_session, bom, screw, Decimal("4"))
    db_session.commit()
    return {"bom": bom, "product": product, "screw": screw, "panel": panel, "sub": sub}


class TestBOMExplosion:

    def test_single_level_bom_explosion(self, db_session, engine):
        material = create_test_material(db_session, code="M")
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        create_test_bom_item(db_session, bom, material, Decimal("2"))

        result = engine.explode_bom(bom, Decimal("20"))

        assert list(result) == [material.id]
        assert result[material.id].gross_requirement == Decimal("40")
        assert result[material.id].action_type == "PURCHASE"

    def test_multi_level_bom_explosion(self, engine, multilevel_bom):
        result = engine.explode_bom(multilevel_bom["bom"], Decimal("10"))

        screw, panel, sub = multilevel_bom["screw"], multilevel_bom["panel"], multilevel_bom["sub"]
        # SCREW: 10 * 2 * 3 via SUB + 10 * 4 direct
        assert result[screw.id].gross_requirement == Decimal("100")
        assert result[panel.id].gross_requirement == Decimal("20")
        assert result[sub.id].gross_requirement == Decimal("20")
        assert result[sub.id].action_type == "PRODUCE"
        assert result[screw.id].action_type == "PURCHASE"
        assert result[screw.id].lead_time_days == 5

    def test_explosion_is_deterministic(self, db_session, multilevel_bom):
        first = BOMExplosionEngine(db_session).explode_bom(multilevel_bom["bom"], Decimal("7"))
        second = BOMExplosionEngine(db_session).explode_bom(multilevel_bom["bom"], Decimal("7"))

        assert list(first) == list(second)
        assert {k: v.gross_requirement for k, v in first.items()} == {
            k: v.gross_requirement for k, v in second.items()
        }

    def test_shared_accumulator_across_products(self, db_session, engine):
        shared = create_test_material(db_session, code="SHARED")
        p1 = create_test_product(db_session)
        p2 = create_test_product(db_session)
        bom1 = create_test_bom(db_session, p1)
        bom2 = create_test_bom(db_session, p2)
        create_test_bom_item(db_session, bom1, shared, Decimal("1"))
        create_test_bom_item(db_session, bom2, shared, Decimal("3"))

        accumulator = {}
        engine.explode_bom(bom1, Decimal("5"), accumulator)
        engine.explode_bom(bom2, Decimal("2"), accumulator)

        assert accumulator[shared.id].gross_requirement == Decimal("11")

    def test_zero_quantity_explosion(self, engine, multilevel_bom):
        result = engine.explode_bom(multilevel_bom["bom"], Decimal("0"))
        assert all(r.gross_requirement == 0 for r in result.values())
        assert len(result) == 3

    def test_latest_released_bom_ignores_draft(self, db_session, engine):
        product = create_test_product(db_session)
        released = create_test_bom(db_session, product, status="released")
        create_test_bom(db_session, product, status="draft")

        assert engine.latest_released_bom(product.id).id == released.id

    def test_product_without_released_bom(self, db_session, engine):
        product = create_test_product(db_session)
        create_test_bom(db_session, product, status="obsolete")
        assert engine.latest_released_bom(product.id) is None


class TestBOMValidation:

    def test_circular_reference_detection(self, db_session, engine):
        a = create_test_material(db_session, code="A")
        b = create_test_material(db_session, code="B")
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        item_a = create_test_bom_item(db_session, bom, a, Decimal("1"))
        item_b = create_test_bom_item(db_session, bom, b, Decimal("1"), parent=item_a)
        item_a.parent_item_id = item_b.id
        db_session.flush()

        with pytest.raises(ValidationError) as exc_info:
            engine.explode_bom(bom, Decimal("1"))
        assert exc_info.value.details["bom_header_id"] == bom.id

    def test_cycle_in_item_list_detected_during_recursion(self, db_session, engine):
        """explode() over a raw item list guards its own path."""
        a = create_test_material(db_session, code="A")
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        root = create_test_bom_item(db_session, bom, a, Decimal("1"))

        # root lists itself as its own child
        with pytest.raises(ValidationError):
            engine.explode([root], Decimal("1"), {}, children={root.id: [root]}, bom_id=bom.id)

    def test_missing_material_is_upstream_failure(self, db_session, engine):
        product = create_test_product(db_session)
        bom = create_test_bom(db_session, product)
        from stockplan.models.bom import BOMItem
        db_session.add(BOMItem(bom_header_id=bom.id, material_id=99999, quantity=Decimal("1")))
        db_session.flush()

        with pytest.raises(UpstreamDependencyError):
            engine.explode_bom(bom, Decimal("1"))
