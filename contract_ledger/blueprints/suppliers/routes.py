"""
contract_ledger/blueprints/suppliers/routes.py

Suppliers CRUD.

- List ordered by name; ?q= matches name or phone.
- Deleting a supplier keeps its purchases (supplier_id becomes NULL).

AUDIT:
- CREATE/UPDATE/DELETE are audited via contract_ledger/audit.py.
"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...audit import audit_recorder
from ...errors import RecordNotFound, ValidationError
from ...gateway import gateway
from ...session import session_context
from ...utils import clean_str, list_response, matches, payload, provisioning_aware

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/suppliers")


def _load_supplier(supplier_id: int) -> Dict[str, Any]:
    row = gateway.get("suppliers", supplier_id)
    if row is None:
        raise RecordNotFound("suppliers", supplier_id)
    return row


def _supplier_values(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not partial or "name" in data:
        values["name"] = clean_str(data.get("name"), "name", required=True)
    for field in ("phone", "notes"):
        if not partial or field in data:
            values[field] = clean_str(data.get(field))
    return values


@suppliers_bp.route("/", methods=["GET"])
@login_required
@provisioning_aware
def list_suppliers():
    rows = gateway.select("suppliers", order="name")

    q = (request.args.get("q") or "").strip()
    if q:
        rows = [r for r in rows if matches(q, r["name"], r["phone"])]

    return list_response(rows)


@suppliers_bp.route("/", methods=["POST"])
@login_required
def create_supplier():
    values = _supplier_values(payload(), partial=False)
    values["user_id"] = session_context.get_user().id

    row = gateway.insert("suppliers", values)
    audit_recorder.record("CREATE", "SUPPLIER", row["id"], row)
    return jsonify(row), 201


@suppliers_bp.route("/<int:supplier_id>", methods=["PUT"])
@login_required
def update_supplier(supplier_id: int):
    before = _load_supplier(supplier_id)
    values = _supplier_values(payload(), partial=True)
    if not values:
        raise ValidationError("Nothing to update.")

    row = gateway.update("suppliers", supplier_id, values)
    audit_recorder.record("UPDATE", "SUPPLIER", supplier_id, {"before": before, "after": row})
    return jsonify(row)


@suppliers_bp.route("/<int:supplier_id>", methods=["DELETE"])
@login_required
def delete_supplier(supplier_id: int):
    before = _load_supplier(supplier_id)
    gateway.delete("suppliers", supplier_id)
    audit_recorder.record("DELETE", "SUPPLIER", supplier_id, before)
    return jsonify({"deleted": supplier_id})
