"""Status Configuration and Transition Rules

This module defines valid status values and the actions allowed from each
status for MRP runs, Purchase Requisitions, Purchase Orders, Work Orders and
Sales Orders. Services call ``guard_transition`` before mutating a document
so an invalid action fails before anything is written.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Tuple

from stockplan.exceptions import InvalidStateTransitionError


# action -> (statuses the action may start from, resulting status)
ActionTable = Dict[str, Tuple[FrozenSet[str], str]]


# =============================================================================
# MRP Run Status
# =============================================================================

class MRPRunStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    APPLIED = "APPLIED"


MRP_RUN_ACTIONS: ActionTable = {
    "complete": (frozenset({MRPRunStatus.RUNNING}), MRPRunStatus.COMPLETED),
    "fail": (frozenset({MRPRunStatus.RUNNING}), MRPRunStatus.FAILED),
    "apply": (frozenset({MRPRunStatus.COMPLETED}), MRPRunStatus.APPLIED),
}


class MRPActionType(str, Enum):
    PURCHASE = "PURCHASE"
    PRODUCE = "PRODUCE"


# =============================================================================
# Purchase Requisition Status
# =============================================================================

class PRStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ORDERED = "ORDERED"
    CLOSED = "CLOSED"


class PRSource(str, Enum):
    MANUAL = "MANUAL"
    MRP = "MRP"


PR_ACTIONS: ActionTable = {
    "approve": (frozenset({PRStatus.DRAFT, PRStatus.PENDING}), PRStatus.APPROVED),
    "order": (frozenset({PRStatus.APPROVED}), PRStatus.ORDERED),
    "close": (frozenset({PRStatus.ORDERED}), PRStatus.CLOSED),
}


# =============================================================================
# Purchase Order Status
# =============================================================================

class POStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SENT = "SENT"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class POItemStatus(str, Enum):
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CLOSED = "CLOSED"


# "receive" resolves to PARTIAL or RECEIVED depending on the lines
PO_ACTIONS: ActionTable = {
    "submit": (frozenset({POStatus.DRAFT}), POStatus.PENDING),
    "approve": (frozenset({POStatus.PENDING}), POStatus.APPROVED),
    "reject": (frozenset({POStatus.PENDING}), POStatus.DRAFT),
    "send": (frozenset({POStatus.APPROVED}), POStatus.SENT),
    "receive": (frozenset({POStatus.SENT, POStatus.PARTIAL}), POStatus.PARTIAL),
    "close": (frozenset({POStatus.RECEIVED}), POStatus.CLOSED),
    "cancel": (
        frozenset({POStatus.DRAFT, POStatus.PENDING, POStatus.APPROVED}),
        POStatus.CANCELLED,
    ),
}

# PO statuses whose open lines count as in-transit supply
PO_IN_TRANSIT_STATUSES = (
    POStatus.APPROVED.value,
    POStatus.SENT.value,
    POStatus.PARTIAL.value,
)


# =============================================================================
# Work Order Status
# =============================================================================

class WorkOrderStatus(str, Enum):
    CREATED = "CREATED"
    PLANNED = "PLANNED"
    RELEASED = "RELEASED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"


WO_ACTIONS: ActionTable = {
    "plan": (frozenset({WorkOrderStatus.CREATED}), WorkOrderStatus.PLANNED),
    "release": (
        frozenset({WorkOrderStatus.CREATED, WorkOrderStatus.PLANNED}),
        WorkOrderStatus.RELEASED,
    ),
    "pick": (
        frozenset({WorkOrderStatus.RELEASED, WorkOrderStatus.IN_PROGRESS}),
        WorkOrderStatus.IN_PROGRESS,
    ),
    "report": (
        frozenset({WorkOrderStatus.RELEASED, WorkOrderStatus.IN_PROGRESS}),
        WorkOrderStatus.IN_PROGRESS,
    ),
    "complete": (frozenset({WorkOrderStatus.IN_PROGRESS}), WorkOrderStatus.COMPLETED),
    "close": (frozenset({WorkOrderStatus.COMPLETED}), WorkOrderStatus.CLOSED),
}

# Work orders whose remaining quantity counts as in-production supply
WO_ACTIVE_STATUSES = (
    WorkOrderStatus.CREATED.value,
    WorkOrderStatus.PLANNED.value,
    WorkOrderStatus.RELEASED.value,
    WorkOrderStatus.IN_PROGRESS.value,
)


# =============================================================================
# Sales Order Status
# =============================================================================

class SalesOrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PICKING = "PICKING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SOItemStatus(str, Enum):
    OPEN = "OPEN"
    PICKING = "PICKING"
    SHIPPED = "SHIPPED"
    CLOSED = "CLOSED"


SO_ACTIONS: ActionTable = {
    "confirm": (frozenset({SalesOrderStatus.PENDING}), SalesOrderStatus.CONFIRMED),
    "start_picking": (frozenset({SalesOrderStatus.CONFIRMED}), SalesOrderStatus.PICKING),
    "ship": (
        frozenset({SalesOrderStatus.CONFIRMED, SalesOrderStatus.PICKING}),
        SalesOrderStatus.SHIPPED,
    ),
    "deliver": (frozenset({SalesOrderStatus.SHIPPED}), SalesOrderStatus.DELIVERED),
    "complete": (frozenset({SalesOrderStatus.DELIVERED}), SalesOrderStatus.COMPLETED),
    "cancel": (
        frozenset({
            SalesOrderStatus.PENDING,
            SalesOrderStatus.CONFIRMED,
            SalesOrderStatus.PICKING,
        }),
        SalesOrderStatus.CANCELLED,
    ),
}

# Sales orders whose unshipped quantity is demand for MRP
SO_DEMAND_STATUSES = (
    SalesOrderStatus.PENDING.value,
    SalesOrderStatus.CONFIRMED.value,
    SalesOrderStatus.PICKING.value,
)


# =============================================================================
# Inventory
# =============================================================================

class InventoryType(str, Enum):
    RAW = "RAW"
    WIP = "WIP"
    FG = "FG"
    SPARE = "SPARE"


class TransactionType(str, Enum):
    PURCHASE_IN = "PURCHASE_IN"
    PRODUCTION_IN = "PRODUCTION_IN"
    RETURN_IN = "RETURN_IN"
    PRODUCTION_OUT = "PRODUCTION_OUT"
    SALES_OUT = "SALES_OUT"
    SCRAP_OUT = "SCRAP_OUT"
    ADJUST = "ADJUST"
    TRANSFER = "TRANSFER"


INBOUND_TRANSACTION_TYPES: Dict[str, TransactionType] = {
    "PO": TransactionType.PURCHASE_IN,
    "WO": TransactionType.PRODUCTION_IN,
    "RETURN": TransactionType.RETURN_IN,
}

OUTBOUND_TRANSACTION_TYPES: Dict[str, TransactionType] = {
    "WO": TransactionType.PRODUCTION_OUT,
    "SO": TransactionType.SALES_OUT,
    "SCRAP": TransactionType.SCRAP_OUT,
}


# =============================================================================
# Validation Helpers
# =============================================================================

def allowed_from(actions: ActionTable, action: str) -> List[str]:
    """Sorted list of statuses ``action`` may start from."""
    sources, _ = actions[action]
    return sorted(s.value for s in sources)


def guard_transition(
    actions: ActionTable,
    entity: str,
    entity_id: Any,
    current_status: str,
    action: str,
) -> str:
    """
    Validate ``action`` against ``current_status`` and return the target status.

    Raises InvalidStateTransitionError when the action is not permitted.
    """
    sources, target = actions[action]
    if current_status not in {s.value for s in sources}:
        raise InvalidStateTransitionError(
            entity,
            entity_id,
            current_state=current_status,
            action=action,
            allowed_states=allowed_from(actions, action),
        )
    return target.value
