"""
contract_ledger/blueprints/dashboard/routes.py

Dashboard figures, one block per currency (see reports.dashboard_stats).

The five selects are independent snapshots joined in memory. A table that
is not provisioned yet counts as empty so the dashboard still renders.
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from ...records import ContractRecord, ExpenseRecord, ItemRecord, PaymentRecord, PurchaseRecord, records
from ...reports import dashboard_stats
from ...utils import select_or_empty

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


@dashboard_bp.route("/", methods=["GET"])
@login_required
def index():
    stats = dashboard_stats(
        records(ContractRecord, select_or_empty("contracts")),
        records(ItemRecord, select_or_empty("contract_items")),
        records(PaymentRecord, select_or_empty("payments")),
        records(PurchaseRecord, select_or_empty("contract_purchases")),
        records(ExpenseRecord, select_or_empty("contract_expenses")),
    )
    return jsonify(stats)
