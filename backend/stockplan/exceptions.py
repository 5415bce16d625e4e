"""
StockPlan error types.

Every error a service raises derives from ``StockPlanException`` and knows
its HTTP status and a stable machine code; ``main`` turns them into JSON
bodies of the form ``{"error", "message", "details"}``.

    raise NotFoundError("PurchaseOrder", po_id)
    raise InvalidStateTransitionError(
        "PurchaseOrder", po.id,
        current_state=po.status, action="approve", allowed_states=["PENDING"],
    )
"""
from typing import Any, Dict, List, Optional


def _merge(details: Optional[Dict[str, Any]], **fields: Any) -> Dict[str, Any]:
    """Copy ``fields`` that are set into ``details`` (values as strings)."""
    merged = dict(details or {})
    for key, value in fields.items():
        if value is not None:
            merged[key] = str(value)
    return merged


class StockPlanException(Exception):
    """
    Base class.

    ``details`` holds the context a caller needs to act on the failure
    (entity id, current status, attempted action, quantities).
    """

    error_code: str = "STOCKPLAN_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "Unexpected error", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


# --- 400 ----------------------------------------------------------------------

class ValidationError(StockPlanException):
    """Bad input that the request schema could not catch (zero quantity, bad reference)."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=_merge(details, field=field, value=value))


# --- 404 ----------------------------------------------------------------------

class NotFoundError(StockPlanException):
    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str = "Resource", resource_id: Any = None, *, details: Optional[Dict[str, Any]] = None):
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} {resource_id} not found"
        super().__init__(
            message, details=_merge(details, resource=resource, resource_id=resource_id)
        )


# --- 409 ----------------------------------------------------------------------

class ConflictError(StockPlanException):
    error_code = "CONFLICT"
    status_code = 409


class ConcurrencyError(ConflictError):
    """A conditional stock update matched no row: someone else moved the stock first."""

    error_code = "CONCURRENCY_ERROR"


class InvalidStateTransitionError(ConflictError):
    """The document's current status does not allow the requested action."""

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity: str,
        entity_id: Any = None,
        *,
        current_state: Optional[str] = None,
        action: Optional[str] = None,
        allowed_states: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = _merge(
            details,
            entity=entity,
            entity_id=entity_id,
            current_state=current_state,
            action=action,
        )
        if allowed_states is not None:
            details["allowed_states"] = list(allowed_states)

        subject = entity if entity_id is None else f"{entity} {entity_id}"
        message = f"Cannot {action or 'change'} {subject}"
        if current_state:
            message = f"{message} in status {current_state}"
        if allowed_states:
            message = f"{message} (allowed from: {', '.join(allowed_states)})"
        super().__init__(message, details=details)


# --- 422 ----------------------------------------------------------------------

class BusinessRuleError(StockPlanException):
    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422


class InsufficientStockError(BusinessRuleError):
    error_code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        material: Any,
        *,
        requested: Any,
        available: Any,
        warehouse_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"Insufficient stock for {material}: requested {requested}, available {available}",
            details=_merge(
                details,
                material=material,
                requested=requested,
                available=available,
                warehouse_id=warehouse_id,
            ),
        )


class NegativeStockError(BusinessRuleError):
    error_code = "NEGATIVE_STOCK"

    def __init__(
        self,
        material: Any,
        *,
        adjustment: Any,
        current: Any,
        warehouse_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"Adjusting {material} by {adjustment} would leave negative stock (current {current})",
            details=_merge(
                details,
                material=material,
                adjustment=adjustment,
                current=current,
                warehouse_id=warehouse_id,
            ),
        )


# --- 5xx ----------------------------------------------------------------------

class UpstreamDependencyError(StockPlanException):
    """Master data (material, BOM) referenced mid-computation could not be read."""

    error_code = "UPSTREAM_DEPENDENCY_FAILURE"
    status_code = 502

    def __init__(self, dependency: str, message: str = "lookup failed", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{dependency}: {message}", details=_merge(details, dependency=dependency))


class IntegrationError(StockPlanException):
    """An outbound call (chat notifications) failed."""

    error_code = "INTEGRATION_ERROR"
    status_code = 502

    def __init__(self, service: str, message: str = "call failed", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{service}: {message}", details=_merge(details, service=service))


class DatabaseError(StockPlanException):
    error_code = "DATABASE_ERROR"
    status_code = 500

    def __init__(self, message: str = "A database error occurred", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
