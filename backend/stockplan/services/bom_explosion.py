"""
BOM Explosion Engine

Expands a released BOM for an output quantity into a flat map of gross
requirements per material. Items with children are sub-assemblies (PRODUCE);
leaves are bought (PURCHASE). A material reached through several positions
accumulates additively and is PRODUCE if any occurrence has children.
"""
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from stockplan.core.status_config import MRPActionType
from stockplan.exceptions import UpstreamDependencyError, ValidationError
from stockplan.logging_config import get_logger
from stockplan.models.bom import BOMHeader, BOMItem
from stockplan.models.product import Material
from stockplan.services.inventory_helpers import ZERO, to_decimal

logger = get_logger(__name__)


@dataclass
class MaterialRequirement:
    """Accumulated gross requirement for one material across all BOM positions"""
    material_id: int
    material_code: str
    material_name: str
    unit: Optional[str]
    safety_stock: Decimal
    lead_time_days: int
    gross_requirement: Decimal = ZERO
    action_type: str = MRPActionType.PURCHASE.value


class BOMExplosionEngine:
    """Depth-first explosion with cycle detection on the parent chain."""

    def __init__(self, db: Session):
        self.db = db
        self._materials: Dict[int, Material] = {}

    def latest_released_bom(self, product_id: int) -> Optional[BOMHeader]:
        """Newest released header for a product; draft/obsolete are invisible."""
        return (
            self.db.query(BOMHeader)
            .filter(BOMHeader.product_id == product_id, BOMHeader.status == "released")
            .order_by(BOMHeader.created_at.desc(), BOMHeader.id.desc())
            .first()
        )

    def explode_bom(
        self,
        bom: BOMHeader,
        quantity: Decimal,
        accumulator: Optional[Dict[int, MaterialRequirement]] = None,
    ) -> Dict[int, MaterialRequirement]:
        """Explode every root item of ``bom`` for ``quantity`` output units."""
        if accumulator is None:
            accumulator = {}
        items = (
            self.db.query(BOMItem)
            .filter(BOMItem.bom_header_id == bom.id)
            .order_by(BOMItem.sequence, BOMItem.id)
            .all()
        )
        children: Dict[int, List[BOMItem]] = defaultdict(list)
        roots: List[BOMItem] = []
        for item in items:
            if item.parent_item_id is None:
                roots.append(item)
            else:
                children[item.parent_item_id].append(item)

        self._check_cycles(items, bom.id)

        self.explode(roots, to_decimal(quantity), accumulator, children=children, bom_id=bom.id)
        return accumulator

    def explode(
        self,
        bom_items: Iterable[BOMItem],
        parent_quantity: Decimal,
        accumulator: Dict[int, MaterialRequirement],
        children: Optional[Dict[int, List[BOMItem]]] = None,
        *,
        bom_id: Optional[int] = None,
        _path: Optional[Set[int]] = None,
    ) -> None:
        """
        Add ``item.quantity * parent_quantity`` for each item to the
        accumulator and recurse into sub-assemblies.

        ``_path`` holds the item ids on the current branch; meeting one again
        means parent_item_id loops back and the BOM is rejected.

        Called without ``children``, ``bom_items`` is taken as a whole BOM:
        the child map is built from it and traversal starts at its roots.
        """
        if children is None:
            items = list(bom_items)
            children = defaultdict(list)
            for item in items:
                if item.parent_item_id is not None:
                    children[item.parent_item_id].append(item)
            bom_items = [item for item in items if item.parent_item_id is None]

        path = _path if _path is not None else set()
        for item in bom_items:
            if item.id in path:
                raise ValidationError(
                    f"BOM {bom_id} contains a cycle at item {item.id}",
                    field="parent_item_id",
                    value=item.id,
                    details={"bom_header_id": bom_id, "path": sorted(path)},
                )

            required_qty = to_decimal(item.quantity) * parent_quantity
            requirement = accumulator.get(item.material_id)
            if requirement is None:
                material = self._get_material(item.material_id, bom_id)
                requirement = MaterialRequirement(
                    material_id=material.id,
                    material_code=material.code,
                    material_name=material.name,
                    unit=item.unit or material.unit,
                    safety_stock=to_decimal(material.safety_stock),
                    lead_time_days=material.lead_time_days or 0,
                )
                accumulator[item.material_id] = requirement
            requirement.gross_requirement += required_qty

            sub_items = children.get(item.id)
            if sub_items:
                requirement.action_type = MRPActionType.PRODUCE.value
                path.add(item.id)
                try:
                    self.explode(
                        sub_items,
                        required_qty,
                        accumulator,
                        children=children,
                        bom_id=bom_id,
                        _path=path,
                    )
                finally:
                    path.discard(item.id)

    def _check_cycles(self, items: List[BOMItem], bom_id: int) -> None:
        """Walk each item's parent chain; a repeat means parent_item_id loops."""
        by_id = {item.id: item for item in items}
        for item in items:
            seen: Set[int] = set()
            current = item
            while current is not None and current.parent_item_id is not None:
                if current.id in seen:
                    raise ValidationError(
                        f"BOM {bom_id} contains a parent_item_id cycle at item {current.id}",
                        field="parent_item_id",
                        value=current.id,
                        details={"bom_header_id": bom_id, "items": sorted(seen)},
                    )
                seen.add(current.id)
                current = by_id.get(current.parent_item_id)

    def _get_material(self, material_id: int, bom_id: Optional[int]) -> Material:
        material = self._materials.get(material_id)
        if material is None:
            material = self.db.query(Material).filter(Material.id == material_id).first()
            if material is None:
                raise UpstreamDependencyError(
                    "Material",
                    f"material {material_id} referenced by BOM {bom_id} not found",
                    details={"material_id": material_id, "bom_header_id": bom_id},
                )
            self._materials[material_id] = material
        return material
