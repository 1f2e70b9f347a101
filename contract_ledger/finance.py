"""
contract_ledger/finance.py

Financial aggregation rules.

Every screen that shows money goes through these functions so totals
reconcile: dashboard, contract tabs, print view and reports.

Rules:
- Pure functions, no I/O, no currency awareness. Callers partition by
  currency first (group_by_currency) and never sum across buckets.
- Null/missing numbers count as 0 and empty inputs give 0. Nothing here
  raises for incomplete snapshots.
- Results are signed. Negative profit, overpayment and over-delivery are
  returned as-is; clamping is a display decision (display_quantity).
"""

from __future__ import annotations

from collections import OrderedDict
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from .records import _to_decimal

T = TypeVar("T")

ZERO = Decimal("0.00")

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def money(value: Optional[Any]) -> Decimal:
    """Quantize to 2 decimals, half up (money). None -> 0.00."""
    return _to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def line_total(quantity: Any, price: Any) -> Decimal:
    """quantity × price rounded to money, so line totals add up to the contract total."""
    return money(_to_decimal(quantity) * _to_decimal(price))


# ---------------------------------------------------------------------
# Contract totals
# ---------------------------------------------------------------------
def contract_value(items: Iterable[Any]) -> Decimal:
    """Σ(quantity × sale_price). The one definition of contract value."""
    return sum((line_total(i.quantity, i.sale_price) for i in items), ZERO)


def contract_purchase_cost(items: Iterable[Any]) -> Decimal:
    """Σ(quantity × purchase_price) over contract items (estimated cost)."""
    return sum((line_total(i.quantity, i.purchase_price) for i in items), ZERO)


def procurement_cost(purchases: Iterable[Any]) -> Decimal:
    """Σ(quantity × purchase_price) over actual purchases."""
    return sum((line_total(p.quantity, p.purchase_price) for p in purchases), ZERO)


def expense_cost(expenses: Iterable[Any]) -> Decimal:
    return sum((money(e.amount) for e in expenses), ZERO)


def total_cost(purchases: Iterable[Any], expenses: Iterable[Any]) -> Decimal:
    """Actual cost: procurement + expenses."""
    return procurement_cost(purchases) + expense_cost(expenses)


def profit(value: Any, cost: Any) -> Decimal:
    return _to_decimal(value) - _to_decimal(cost)


def total_received(payments: Iterable[Any]) -> Decimal:
    return sum((money(p.amount) for p in payments), ZERO)


def remaining_balance(value: Any, received: Any) -> Decimal:
    """value − received. Negative means overpaid."""
    return _to_decimal(value) - _to_decimal(received)


# ---------------------------------------------------------------------
# Deliveries
# ---------------------------------------------------------------------
def remaining_item_quantity(item: Any, deliveries: Iterable[Any]) -> Decimal:
    """
    Ordered quantity minus everything delivered against this item.

    Deliveries for other items are ignored, so callers may pass the whole
    contract's delivery list.
    """
    delivered = sum(
        (_to_decimal(d.quantity_delivered) for d in deliveries if d.contract_item_id == item.id),
        ZERO,
    )
    return _to_decimal(item.quantity) - delivered


def display_quantity(remaining: Any) -> Decimal:
    """Clamp a remaining quantity to >= 0 for presentation."""
    return max(_to_decimal(remaining), ZERO)


def is_fully_delivered(remaining: Any) -> bool:
    return _to_decimal(remaining) <= 0


# ---------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------
def group_by_currency(records: Iterable[T], currency_of: Callable[[T], str]) -> "OrderedDict[str, List[T]]":
    """
    Partition records by currency code, keeping first-seen bucket order and
    input order inside each bucket. Every record lands in exactly one bucket.
    """
    buckets: "OrderedDict[str, List[T]]" = OrderedDict()
    for record in records:
        buckets.setdefault(currency_of(record), []).append(record)
    return buckets


def month_key(value) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_label(value) -> str:
    return f"{_MONTH_ABBR[value.month - 1]} {value.year}"


def monthly_bucket(
    records: Iterable[T],
    date_of: Callable[[T], Any],
    amount_of: Callable[[T], Any],
) -> List[Dict[str, Any]]:
    """
    Sum amount_of(record) per calendar month of date_of(record).

    Returns [{"key": "YYYY-MM", "month": "Mon YYYY", "amount": Decimal}]
    in chronological order. Records without a date are skipped.
    """
    totals: Dict[str, Decimal] = {}
    labels: Dict[str, str] = {}

    for record in records:
        when = date_of(record)
        if when is None:
            continue
        key = month_key(when)
        labels[key] = month_label(when)
        totals[key] = totals.get(key, ZERO) + _to_decimal(amount_of(record))

    return [{"key": key, "month": labels[key], "amount": totals[key]} for key in sorted(totals)]


def merge_monthly_series(
    revenue: List[Dict[str, Any]],
    cost: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Align two monthly_bucket() series on the union of their months."""
    by_key: Dict[str, Dict[str, Any]] = {}

    for entry in revenue:
        by_key[entry["key"]] = {"key": entry["key"], "month": entry["month"], "revenue": entry["amount"], "cost": ZERO}

    for entry in cost:
        row = by_key.setdefault(entry["key"], {"key": entry["key"], "month": entry["month"], "revenue": ZERO, "cost": ZERO})
        row["cost"] = entry["amount"]

    return [by_key[key] for key in sorted(by_key)]
