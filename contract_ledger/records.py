"""
contract_ledger/records.py

Typed records built from gateway rows.

The gateway returns plain dicts (one per row). Everything downstream of the
HTTP layer (finance, reports) works on these frozen records instead, so a
missing or null numeric column becomes Decimal("0.00") exactly once, here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from .models import DEFAULT_CURRENCY


# ---------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------
def _to_decimal(value: Any) -> Decimal:
    """Convert value to Decimal safely. None/blank/garbage/NaN/Infinity -> 0.00."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        result = value
    else:
        raw = str(value).strip().replace(",", ".")
        if raw == "":
            return Decimal("0.00")
        try:
            result = Decimal(raw)
        except (InvalidOperation, ValueError):
            return Decimal("0.00")
    if not result.is_finite():
        return Decimal("0.00")
    return result


def _to_date(value: Any) -> Optional[date]:
    """Accept date, datetime or ISO string. Anything else -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# ---------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ContractRecord:
    id: int
    contract_number: str
    governorate: str
    branch: str
    contract_date: Optional[date]
    currency: str
    status: str
    notes: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ContractRecord":
        return cls(
            id=row["id"],
            contract_number=row.get("contract_number") or "",
            governorate=row.get("governorate") or "",
            branch=row.get("branch") or "",
            contract_date=_to_date(row.get("contract_date")),
            # rows written before currencies existed count as the default
            currency=row.get("currency") or DEFAULT_CURRENCY,
            status=row.get("status") or "new",
            notes=row.get("notes"),
            user_id=row.get("user_id"),
            created_at=_to_datetime(row.get("created_at")),
        )


@dataclass(frozen=True)
class ItemRecord:
    id: int
    contract_id: int
    item_name: str
    quantity: Decimal
    sale_price: Decimal
    purchase_price: Decimal

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ItemRecord":
        return cls(
            id=row["id"],
            contract_id=row.get("contract_id"),
            item_name=row.get("item_name") or "",
            quantity=_to_decimal(row.get("quantity")),
            sale_price=_to_decimal(row.get("sale_price")),
            purchase_price=_to_decimal(row.get("purchase_price")),
        )


@dataclass(frozen=True)
class PurchaseRecord:
    id: int
    contract_id: int
    item_name: str
    quantity: Decimal
    purchase_price: Decimal
    supplier_id: Optional[int] = None
    purchase_date: Optional[date] = None
    invoice_number: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PurchaseRecord":
        return cls(
            id=row["id"],
            contract_id=row.get("contract_id"),
            item_name=row.get("item_name") or "",
            quantity=_to_decimal(row.get("quantity")),
            purchase_price=_to_decimal(row.get("purchase_price")),
            supplier_id=row.get("supplier_id"),
            purchase_date=_to_date(row.get("purchase_date")),
            invoice_number=_to_str(row.get("invoice_number")),
        )


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    contract_id: int
    expense_type: str
    amount: Decimal
    expense_date: Optional[date] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ExpenseRecord":
        return cls(
            id=row["id"],
            contract_id=row.get("contract_id"),
            expense_type=row.get("expense_type") or "",
            amount=_to_decimal(row.get("amount")),
            expense_date=_to_date(row.get("expense_date")),
        )


@dataclass(frozen=True)
class PaymentRecord:
    id: int
    contract_id: int
    amount: Decimal
    payment_date: Optional[date] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PaymentRecord":
        return cls(
            id=row["id"],
            contract_id=row.get("contract_id"),
            amount=_to_decimal(row.get("amount")),
            payment_date=_to_date(row.get("payment_date")),
        )


@dataclass(frozen=True)
class DeliveryRecord:
    id: int
    contract_item_id: int
    quantity_delivered: Decimal
    delivery_date: Optional[date] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DeliveryRecord":
        return cls(
            id=row["id"],
            contract_item_id=row.get("contract_item_id"),
            quantity_delivered=_to_decimal(row.get("quantity_delivered")),
            delivery_date=_to_date(row.get("delivery_date")),
        )


def records(cls, rows):
    """Map a list of gateway rows to records of `cls`."""
    return [cls.from_row(row) for row in rows]
