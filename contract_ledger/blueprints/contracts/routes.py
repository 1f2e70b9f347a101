"""
contract_ledger/blueprints/contracts/routes.py

Contract routes.

Includes:
- List (newest first, ?q= over number/governorate/branch) / create
- Detail / update / delete
- Summary (both cost definitions, delivery progress)
- Print view data

The per-contract tabs live next to this module:
- ledger.py: items, purchases, expenses, payments
- fulfillment.py: deliveries, delivery receipts, attachments

IMPORTANT:
- Currency is fixed at creation. An update that changes it is rejected.
- Delete cascades to every detail row; attachment blobs are removed
  afterwards, best-effort.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from ...audit import audit_recorder
from ...errors import RecordNotFound, StorageError, ValidationError
from ...gateway import gateway
from ...models import CONTRACT_STATUSES, CURRENCIES, DEFAULT_CURRENCY
from ...records import (
    ContractRecord,
    DeliveryRecord,
    ExpenseRecord,
    ItemRecord,
    PaymentRecord,
    PurchaseRecord,
    records,
)
from ...reports import contract_summary
from ...session import session_context
from ...storage import get_blob_store
from ...utils import (
    clean_str,
    list_response,
    matches,
    parse_date,
    payload,
    provisioning_aware,
    select_or_empty,
)
from ... import finance

contracts_bp = Blueprint("contracts", __name__, url_prefix="/contracts")


@contracts_bp.before_request
@login_required
def _require_login():
    """Every contract route needs an authenticated user."""
    return None


# ---------------------------------------------------------------------
# Loaders (shared with ledger.py / fulfillment.py)
# ---------------------------------------------------------------------
def load_contract(contract_id: int) -> Dict[str, Any]:
    row = gateway.get("contracts", contract_id)
    if row is None:
        raise RecordNotFound("contracts", contract_id)
    return row


def load_child(table: str, contract_id: int, row_id: int) -> Dict[str, Any]:
    """Row of a per-contract table that must belong to contract_id."""
    row = gateway.get(table, row_id)
    if row is None or row.get("contract_id") != contract_id:
        raise RecordNotFound(table, row_id)
    return row


def contract_items(contract_id: int) -> List[Dict[str, Any]]:
    return gateway.select("contract_items", {"contract_id": contract_id}, order=["created_at", "id"])


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------
def _contract_values(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    """Validated column values from a request body."""
    values: Dict[str, Any] = {}

    for field in ("contract_number", "governorate", "branch"):
        if not partial or field in data:
            values[field] = clean_str(data.get(field), field, required=True)

    if not partial or "contract_date" in data:
        values["contract_date"] = parse_date(data.get("contract_date"), "contract_date", required=True)

    if not partial or "status" in data:
        status = clean_str(data.get("status")) or "new"
        if status not in CONTRACT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(CONTRACT_STATUSES)}.")
        values["status"] = status

    if "notes" in data:
        values["notes"] = clean_str(data.get("notes"))

    return values


def _currency(data: Dict[str, Any]) -> str:
    currency = (clean_str(data.get("currency")) or DEFAULT_CURRENCY).upper()
    if currency not in CURRENCIES:
        raise ValidationError(f"currency must be one of: {', '.join(CURRENCIES)}.")
    return currency


# ---------------------------------------------------------------------
# List / create
# ---------------------------------------------------------------------
@contracts_bp.route("/", methods=["GET"])
@provisioning_aware
def list_contracts():
    rows = gateway.select("contracts", order=["-created_at", "-id"])

    q = (request.args.get("q") or "").strip()
    if q:
        rows = [r for r in rows if matches(q, r["contract_number"], r["governorate"], r["branch"])]

    return list_response(rows)


@contracts_bp.route("/", methods=["POST"])
def create_contract():
    data = payload()
    values = _contract_values(data, partial=False)
    values["currency"] = _currency(data)
    values["user_id"] = session_context.get_user().id

    row = gateway.insert("contracts", values)
    audit_recorder.record("CREATE", "CONTRACT", row["id"], row)
    return jsonify(row), 201


# ---------------------------------------------------------------------
# Detail / update / delete
# ---------------------------------------------------------------------
@contracts_bp.route("/<int:contract_id>", methods=["GET"])
def get_contract(contract_id: int):
    return jsonify(load_contract(contract_id))


@contracts_bp.route("/<int:contract_id>", methods=["PUT"])
def update_contract(contract_id: int):
    before = load_contract(contract_id)
    data = payload()

    if "currency" in data:
        requested = (clean_str(data.get("currency")) or "").upper()
        if requested != (before["currency"] or DEFAULT_CURRENCY):
            raise ValidationError("The currency of an existing contract cannot be changed.")

    values = _contract_values(data, partial=True)
    if not values:
        raise ValidationError("Nothing to update.")

    row = gateway.update("contracts", contract_id, values)
    audit_recorder.record("UPDATE", "CONTRACT", contract_id, {"before": before, "after": row})
    return jsonify(row)


@contracts_bp.route("/<int:contract_id>", methods=["DELETE"])
def delete_contract(contract_id: int):
    before = load_contract(contract_id)
    attachments = select_or_empty("attachments", {"contract_id": contract_id})

    gateway.delete("contracts", contract_id)
    audit_recorder.record("DELETE", "CONTRACT", contract_id, before)

    paths = [a["file_url"] for a in attachments if a.get("file_url")]
    if paths:
        try:
            get_blob_store().remove(current_app.config["ATTACHMENTS_BUCKET"], paths)
        except StorageError as exc:
            current_app.logger.warning("Contract %s deleted but blobs remain: %s", contract_id, exc.message)

    return jsonify({"deleted": contract_id})


# ---------------------------------------------------------------------
# Summary / print
# ---------------------------------------------------------------------
def _contract_snapshot(contract_id: int):
    contract = load_contract(contract_id)
    items = select_or_empty("contract_items", {"contract_id": contract_id}, ["created_at", "id"])
    item_ids = [i["id"] for i in items]

    return {
        "contract": contract,
        "items": items,
        "purchases": select_or_empty("contract_purchases", {"contract_id": contract_id}, ["created_at", "id"]),
        "expenses": select_or_empty("contract_expenses", {"contract_id": contract_id}, ["created_at", "id"]),
        "payments": select_or_empty("payments", {"contract_id": contract_id}, "payment_date"),
        "deliveries": select_or_empty("deliveries", {"contract_item_id": item_ids}) if item_ids else [],
    }


@contracts_bp.route("/<int:contract_id>/summary", methods=["GET"])
def summary(contract_id: int):
    snap = _contract_snapshot(contract_id)
    result = contract_summary(
        ContractRecord.from_row(snap["contract"]),
        records(ItemRecord, snap["items"]),
        records(PurchaseRecord, snap["purchases"]),
        records(ExpenseRecord, snap["expenses"]),
        records(PaymentRecord, snap["payments"]),
        records(DeliveryRecord, snap["deliveries"]),
    )
    return jsonify(result)


@contracts_bp.route("/<int:contract_id>/print", methods=["GET"])
def print_view(contract_id: int):
    """Data for the printable contract invoice/report."""
    snap = _contract_snapshot(contract_id)
    contract = ContractRecord.from_row(snap["contract"])
    items = records(ItemRecord, snap["items"])
    payments = records(PaymentRecord, snap["payments"])

    value = finance.contract_value(items)
    received = finance.total_received(payments)

    return jsonify(
        {
            "contract": snap["contract"],
            "currency": contract.currency,
            "issued_on": date.today(),
            "items": [
                {
                    "item_name": i.item_name,
                    "quantity": i.quantity,
                    "unit_price": i.sale_price,
                    "line_total": finance.line_total(i.quantity, i.sale_price),
                }
                for i in items
            ],
            "payments": snap["payments"],
            "totals": {
                "contract_value": value,
                "total_received": received,
                "remaining_balance": finance.remaining_balance(value, received),
            },
        }
    )
