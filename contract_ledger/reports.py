"""
contract_ledger/reports.py

Report shaping on top of the finance rules.

Inputs are typed records (see records.py) taken from independent gateway
selects. Joins happen here, in memory, by foreign key. A detail row whose
contract is not in the contracts snapshot is ignored.

Every report is single-currency: the caller picks a currency and only
contracts in that currency are considered. Rows keep the gateway's fetch
order; totals are column sums, never re-derived.
"""

from __future__ import annotations

import csv
import io
from collections import OrderedDict, defaultdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence

from . import finance
from .records import ContractRecord, DeliveryRecord, ExpenseRecord, ItemRecord, PaymentRecord, PurchaseRecord

REPORT_KINDS = ("profit", "governorate", "balances")

# Column order used by the CSV export of each report kind.
REPORT_COLUMNS = {
    "profit": ("contract_number", "revenue", "total_cost", "profit"),
    "governorate": ("name", "contracts_count", "total_value"),
    "balances": ("contract_number", "total_value", "total_received", "remaining"),
}


# ---------------------------------------------------------------------
# Join helpers
# ---------------------------------------------------------------------
def _by_contract(rows: Iterable[Any]) -> Dict[int, List[Any]]:
    grouped: Dict[int, List[Any]] = defaultdict(list)
    for row in rows:
        grouped[row.contract_id].append(row)
    return grouped


def _in_currency(contracts: Iterable[ContractRecord], currency: str) -> List[ContractRecord]:
    return [c for c in contracts if c.currency == currency]


def available_currencies(contracts: Iterable[ContractRecord]) -> List[str]:
    """Distinct contract currencies, in fetch order."""
    return list(OrderedDict.fromkeys(c.currency for c in contracts))


# ---------------------------------------------------------------------
# Per-contract reports
# ---------------------------------------------------------------------
def profit_report(
    currency: str,
    contracts: Sequence[ContractRecord],
    items: Iterable[ItemRecord],
    purchases: Iterable[PurchaseRecord],
    expenses: Iterable[ExpenseRecord],
) -> Dict[str, Any]:
    """Revenue vs actual cost (purchases + expenses) per contract."""
    items_by = _by_contract(items)
    purchases_by = _by_contract(purchases)
    expenses_by = _by_contract(expenses)

    rows = []
    for contract in _in_currency(contracts, currency):
        revenue = finance.contract_value(items_by.get(contract.id, []))
        cost = finance.total_cost(purchases_by.get(contract.id, []), expenses_by.get(contract.id, []))
        rows.append(
            {
                "id": contract.id,
                "contract_number": contract.contract_number,
                "revenue": revenue,
                "total_cost": cost,
                "profit": finance.profit(revenue, cost),
            }
        )

    totals = {
        "revenue": sum((r["revenue"] for r in rows), finance.ZERO),
        "total_cost": sum((r["total_cost"] for r in rows), finance.ZERO),
        "profit": sum((r["profit"] for r in rows), finance.ZERO),
    }
    return {"kind": "profit", "currency": currency, "rows": rows, "totals": totals}


def governorate_report(
    currency: str,
    contracts: Sequence[ContractRecord],
    items: Iterable[ItemRecord],
) -> Dict[str, Any]:
    """Contract count and value per "governorate - branch"."""
    items_by = _by_contract(items)

    groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for contract in _in_currency(contracts, currency):
        name = f"{contract.governorate} - {contract.branch}"
        group = groups.setdefault(name, {"name": name, "contracts_count": 0, "total_value": finance.ZERO})
        group["contracts_count"] += 1
        group["total_value"] += finance.contract_value(items_by.get(contract.id, []))

    rows = list(groups.values())
    totals = {
        "contracts_count": sum(r["contracts_count"] for r in rows),
        "total_value": sum((r["total_value"] for r in rows), finance.ZERO),
    }
    return {"kind": "governorate", "currency": currency, "rows": rows, "totals": totals}


def balances_report(
    currency: str,
    contracts: Sequence[ContractRecord],
    items: Iterable[ItemRecord],
    payments: Iterable[PaymentRecord],
) -> Dict[str, Any]:
    """Value, received and remaining balance per contract."""
    items_by = _by_contract(items)
    payments_by = _by_contract(payments)

    rows = []
    for contract in _in_currency(contracts, currency):
        value = finance.contract_value(items_by.get(contract.id, []))
        received = finance.total_received(payments_by.get(contract.id, []))
        rows.append(
            {
                "id": contract.id,
                "contract_number": contract.contract_number,
                "total_value": value,
                "total_received": received,
                "remaining": finance.remaining_balance(value, received),
            }
        )

    totals = {
        "total_value": sum((r["total_value"] for r in rows), finance.ZERO),
        "total_received": sum((r["total_received"] for r in rows), finance.ZERO),
        "remaining": sum((r["remaining"] for r in rows), finance.ZERO),
    }
    return {"kind": "balances", "currency": currency, "rows": rows, "totals": totals}


# ---------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------
def dashboard_stats(
    contracts: Sequence[ContractRecord],
    items: Iterable[ItemRecord],
    payments: Iterable[PaymentRecord],
    purchases: Iterable[PurchaseRecord] = (),
    expenses: Iterable[ExpenseRecord] = (),
) -> Dict[str, Any]:
    """
    Dashboard figures, one block per currency.

    Profit here is the estimated one: contract value minus the items' own
    purchase_price. The monthly series pairs revenue (items, dated by their
    contract) with actual cost (purchases and expenses, dated by their own
    dates).

    Detail rows are attributed to a currency through their contract. Rows
    whose contract is not in the snapshot are dropped.
    """
    contract_by_id = {c.id: c for c in contracts}

    def currency_of(row) -> str | None:
        contract = contract_by_id.get(row.contract_id)
        return contract.currency if contract else None

    def known(rows):
        return [r for r in rows if r.contract_id in contract_by_id]

    items = known(items)
    payments = known(payments)
    purchases = known(purchases)
    expenses = known(expenses)

    contracts_by = finance.group_by_currency(contracts, lambda c: c.currency)
    items_by = finance.group_by_currency(items, currency_of)
    payments_by = finance.group_by_currency(payments, currency_of)
    purchases_by = finance.group_by_currency(purchases, currency_of)
    expenses_by = finance.group_by_currency(expenses, currency_of)

    by_currency: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for currency, bucket in contracts_by.items():
        bucket_items = items_by.get(currency, [])
        bucket_payments = payments_by.get(currency, [])

        value = finance.contract_value(bucket_items)
        received = finance.total_received(bucket_payments)
        estimated_cost = finance.contract_purchase_cost(bucket_items)

        revenue_series = finance.monthly_bucket(
            bucket_items,
            lambda i: contract_by_id[i.contract_id].contract_date,
            lambda i: finance.line_total(i.quantity, i.sale_price),
        )
        cost_series = finance.monthly_bucket(
            purchases_by.get(currency, []) + expenses_by.get(currency, []),
            _cost_date,
            _cost_amount,
        )

        by_currency[currency] = {
            "currency": currency,
            "contracts_count": len(bucket),
            "total_value": value,
            "total_received": received,
            "remaining_amount": finance.remaining_balance(value, received),
            "estimated_cost": estimated_cost,
            "estimated_profit": finance.profit(value, estimated_cost),
            "monthly": finance.merge_monthly_series(revenue_series, cost_series),
        }

    return {"contracts_count": len(contracts), "by_currency": list(by_currency.values())}


def _cost_date(row):
    if isinstance(row, PurchaseRecord):
        return row.purchase_date
    return row.expense_date


def _cost_amount(row):
    if isinstance(row, PurchaseRecord):
        return finance.line_total(row.quantity, row.purchase_price)
    return finance.money(row.amount)


# ---------------------------------------------------------------------
# Contract summary (details page, print view)
# ---------------------------------------------------------------------
def contract_summary(
    contract: ContractRecord,
    items: Sequence[ItemRecord],
    purchases: Sequence[PurchaseRecord],
    expenses: Sequence[ExpenseRecord],
    payments: Sequence[PaymentRecord],
    deliveries: Sequence[DeliveryRecord],
) -> Dict[str, Any]:
    """All per-contract figures, both cost definitions side by side."""
    value = finance.contract_value(items)
    item_cost = finance.contract_purchase_cost(items)
    actual_cost = finance.total_cost(purchases, expenses)
    received = finance.total_received(payments)

    progress = []
    for item in items:
        remaining = finance.remaining_item_quantity(item, deliveries)
        progress.append(
            {
                "item_id": item.id,
                "item_name": item.item_name,
                "quantity": item.quantity,
                "delivered": item.quantity - remaining,
                "remaining": remaining,
                "remaining_display": finance.display_quantity(remaining),
                "fully_delivered": finance.is_fully_delivered(remaining),
            }
        )

    return {
        "contract_id": contract.id,
        "contract_number": contract.contract_number,
        "currency": contract.currency,
        "contract_value": value,
        "items_cost": item_cost,
        "expected_profit": finance.profit(value, item_cost),
        "procurement_cost": finance.procurement_cost(purchases),
        "expense_cost": finance.expense_cost(expenses),
        "total_cost": actual_cost,
        "actual_profit": finance.profit(value, actual_cost),
        "total_received": received,
        "remaining_balance": finance.remaining_balance(value, received),
        "deliveries": progress,
    }


# ---------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------
def report_to_csv(kind: str, report: Dict[str, Any]) -> str:
    """Render a report (rows + totals line) as CSV text."""
    if kind not in REPORT_COLUMNS:
        raise ValueError(f"Unknown report kind: {kind}")

    columns = REPORT_COLUMNS[kind]
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(columns)

    for row in report["rows"]:
        writer.writerow([_csv_cell(row.get(col)) for col in columns])

    totals = report.get("totals") or {}
    writer.writerow(["TOTAL"] + [_csv_cell(totals.get(col)) for col in columns[1:]])
    return out.getvalue()


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return str(finance.money(value))
    return str(value)
