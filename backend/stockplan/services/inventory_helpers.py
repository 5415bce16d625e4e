"""
Quantity and document-code helpers shared by the ledger and order services.
"""
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import desc
from sqlalchemy.orm import Session

from stockplan.exceptions import ValidationError

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Normalize a numeric value (Decimal, int, float, str, None) to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1; None becomes zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Not a number: {value!r}", value=value) from e


def require_positive(value: Any, field: str = "quantity") -> Decimal:
    """Return ``value`` as Decimal or raise ValidationError unless it is > 0."""
    qty = to_decimal(value)
    if qty <= ZERO:
        raise ValidationError(f"{field} must be greater than zero", field=field, value=value)
    return qty


def next_document_code(db: Session, column, prefix: str) -> str:
    """
    Generate next document code in format PREFIX-YYYY-NNNN.

    ``column`` is the model's code column, e.g. ``PurchaseOrder.po_code``.
    """
    year = datetime.utcnow().year
    pattern = f"{prefix}-{year}-%"
    last = db.query(column).filter(column.like(pattern)).order_by(desc(column)).first()

    if last:
        try:
            num = int(last[0].split("-")[2])
            return f"{prefix}-{year}-{num + 1:04d}"
        except (IndexError, ValueError):
            pass
    return f"{prefix}-{year}-0001"


def new_transaction_code() -> str:
    """Journal row code: TX-YYYYMMDD-XXXXXXXXXX (unique without a lookup)."""
    stamp = datetime.utcnow().strftime("%Y%m%d")
    return f"TX-{stamp}-{uuid.uuid4().hex[:10].upper()}"
