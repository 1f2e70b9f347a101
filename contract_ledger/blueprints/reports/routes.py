"""
contract_ledger/blueprints/reports/routes.py

Reports screen.

- /reports/currencies         currencies present in contracts
- /reports/<kind>?currency=   profit | governorate | balances (JSON)
- /reports/<kind>.csv         same report as a CSV download

Currency defaults to SAR. Contracts in other currencies are left out,
never converted.
"""

from __future__ import annotations

from flask import Blueprint, Response, jsonify, request
from flask_login import login_required

from ...models import DEFAULT_CURRENCY
from ...records import ContractRecord, ExpenseRecord, ItemRecord, PaymentRecord, PurchaseRecord, records
from ...reports import (
    REPORT_KINDS,
    available_currencies,
    balances_report,
    governorate_report,
    profit_report,
    report_to_csv,
)
from ...utils import select_or_empty

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")

_KIND = f"any({', '.join(REPORT_KINDS)})"


def _contracts():
    return records(ContractRecord, select_or_empty("contracts", order=["-created_at", "-id"]))


def _build(kind: str, currency: str):
    contracts = _contracts()
    items = records(ItemRecord, select_or_empty("contract_items"))

    if kind == "profit":
        return profit_report(
            currency,
            contracts,
            items,
            records(PurchaseRecord, select_or_empty("contract_purchases")),
            records(ExpenseRecord, select_or_empty("contract_expenses")),
        )
    if kind == "governorate":
        return governorate_report(currency, contracts, items)
    return balances_report(currency, contracts, items, records(PaymentRecord, select_or_empty("payments")))


def _currency() -> str:
    return (request.args.get("currency") or DEFAULT_CURRENCY).strip().upper()


@reports_bp.route("/currencies", methods=["GET"])
@login_required
def currencies():
    found = available_currencies(_contracts())
    return jsonify({"currencies": found or [DEFAULT_CURRENCY], "default": DEFAULT_CURRENCY})


@reports_bp.route(f"/<{_KIND}:kind>", methods=["GET"])
@login_required
def report(kind: str):
    return jsonify(_build(kind, _currency()))


@reports_bp.route(f"/<{_KIND}:kind>.csv", methods=["GET"])
@login_required
def report_csv(kind: str):
    currency = _currency()
    body = report_to_csv(kind, _build(kind, currency))
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{kind}-report-{currency}.csv"'},
    )
