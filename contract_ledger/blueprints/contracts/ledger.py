"""
contract_ledger/blueprints/contracts/ledger.py

Money tabs of a contract: items, purchases, expenses, payments.

Each list returns its rows plus the tab's totals, computed with finance.py:
- items: contract value, estimated cost (items' own purchase_price), expected profit
- purchases: procurement cost
- expenses: expense cost
- payments: contract value, received, remaining balance

Expenses have no edit route; they are recorded and deleted only.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from flask import jsonify

from ... import finance
from ...audit import audit_recorder
from ...errors import ValidationError
from ...gateway import gateway
from ...models import EXPENSE_TYPES
from ...records import ExpenseRecord, ItemRecord, PaymentRecord, PurchaseRecord, records
from ...utils import (
    clean_str,
    list_response,
    parse_date,
    parse_decimal,
    parse_optional_int,
    payload,
    provisioning_aware,
    select_or_empty,
)
from .routes import contract_items, contracts_bp, load_child, load_contract


def require_positive(value, field: str):
    if value is not None and value <= 0:
        raise ValidationError(f"{field} must be greater than zero.")
    return value


def require_non_negative(value, field: str):
    if value is not None and value < 0:
        raise ValidationError(f"{field} cannot be negative.")
    return value


def audited_update(
    table: str, entity_type: str, contract_id: int, row_id: int, build_values: Callable[[], Dict[str, Any]]
):
    """Update a child row. The row is loaded before the body is validated, so a missing row is a 404."""
    before = load_child(table, contract_id, row_id)
    values = build_values()
    if not values:
        raise ValidationError("Nothing to update.")
    row = gateway.update(table, row_id, values)
    audit_recorder.record("UPDATE", entity_type, row_id, {"before": before, "after": row})
    return jsonify(row)


def audited_delete(table: str, entity_type: str, contract_id: int, row_id: int):
    before = load_child(table, contract_id, row_id)
    gateway.delete(table, row_id)
    audit_recorder.record("DELETE", entity_type, row_id, before)
    return jsonify({"deleted": row_id})


# ---------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------
def _item_values(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not partial or "item_name" in data:
        values["item_name"] = clean_str(data.get("item_name"), "item_name", required=True)
    for field in ("quantity", "sale_price"):
        if not partial or field in data:
            values[field] = require_non_negative(parse_decimal(data.get(field), field, required=True), field)
    if not partial or "purchase_price" in data:
        price = parse_decimal(data.get("purchase_price"), "purchase_price")
        values["purchase_price"] = require_non_negative(price, "purchase_price") or finance.ZERO
    return values


@contracts_bp.route("/<int:contract_id>/items/", methods=["GET"])
@provisioning_aware
def list_items(contract_id: int):
    load_contract(contract_id)
    rows = contract_items(contract_id)
    items = records(ItemRecord, rows)

    value = finance.contract_value(items)
    cost = finance.contract_purchase_cost(items)

    for row, item in zip(rows, items):
        row["line_total"] = finance.line_total(item.quantity, item.sale_price)
        row["line_cost"] = finance.line_total(item.quantity, item.purchase_price)

    return list_response(
        rows,
        totals={"contract_value": value, "estimated_cost": cost, "expected_profit": finance.profit(value, cost)},
    )


@contracts_bp.route("/<int:contract_id>/items/", methods=["POST"])
def create_item(contract_id: int):
    load_contract(contract_id)
    values = _item_values(payload(), partial=False)
    values["contract_id"] = contract_id

    row = gateway.insert("contract_items", values)
    audit_recorder.record("CREATE", "CONTRACT_ITEM", row["id"], row)
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/items/<int:item_id>", methods=["PUT"])
def update_item(contract_id: int, item_id: int):
    return audited_update(
        "contract_items", "CONTRACT_ITEM", contract_id, item_id, lambda: _item_values(payload(), partial=True)
    )


@contracts_bp.route("/<int:contract_id>/items/<int:item_id>", methods=["DELETE"])
def delete_item(contract_id: int, item_id: int):
    return audited_delete("contract_items", "CONTRACT_ITEM", contract_id, item_id)


# ---------------------------------------------------------------------
# Purchases (actual procurement)
# ---------------------------------------------------------------------
def _purchase_values(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not partial or "item_name" in data:
        values["item_name"] = clean_str(data.get("item_name"), "item_name", required=True)
    for field in ("quantity", "purchase_price"):
        if not partial or field in data:
            values[field] = require_non_negative(parse_decimal(data.get(field), field, required=True), field)

    if not partial or "supplier_id" in data:
        supplier_id = parse_optional_int(data.get("supplier_id"))
        if supplier_id is not None and gateway.get("suppliers", supplier_id) is None:
            raise ValidationError("supplier_id does not match a supplier.")
        values["supplier_id"] = supplier_id

    if not partial or "purchase_date" in data:
        values["purchase_date"] = parse_date(data.get("purchase_date"), "purchase_date")
    for field in ("invoice_number", "notes"):
        if not partial or field in data:
            values[field] = clean_str(data.get(field))
    return values


@contracts_bp.route("/<int:contract_id>/purchases/", methods=["GET"])
@provisioning_aware
def list_purchases(contract_id: int):
    load_contract(contract_id)
    rows = gateway.select("contract_purchases", {"contract_id": contract_id}, order=["-created_at", "-id"])

    supplier_ids = {r["supplier_id"] for r in rows if r["supplier_id"] is not None}
    names = {}
    if supplier_ids:
        names = {s["id"]: s["name"] for s in gateway.select("suppliers", {"id": supplier_ids})}

    for row in rows:
        row["supplier_name"] = names.get(row["supplier_id"])
        row["line_total"] = finance.procurement_cost([PurchaseRecord.from_row(row)])

    return list_response(rows, totals={"procurement_cost": finance.procurement_cost(records(PurchaseRecord, rows))})


@contracts_bp.route("/<int:contract_id>/purchases/", methods=["POST"])
def create_purchase(contract_id: int):
    load_contract(contract_id)
    values = _purchase_values(payload(), partial=False)
    values["contract_id"] = contract_id

    row = gateway.insert("contract_purchases", values)
    audit_recorder.record("CREATE", "CONTRACT_PURCHASE", row["id"], row)
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/purchases/<int:purchase_id>", methods=["PUT"])
def update_purchase(contract_id: int, purchase_id: int):
    return audited_update(
        "contract_purchases",
        "CONTRACT_PURCHASE",
        contract_id,
        purchase_id,
        lambda: _purchase_values(payload(), partial=True),
    )


@contracts_bp.route("/<int:contract_id>/purchases/<int:purchase_id>", methods=["DELETE"])
def delete_purchase(contract_id: int, purchase_id: int):
    return audited_delete("contract_purchases", "CONTRACT_PURCHASE", contract_id, purchase_id)


# ---------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------
@contracts_bp.route("/<int:contract_id>/expenses/", methods=["GET"])
@provisioning_aware
def list_expenses(contract_id: int):
    load_contract(contract_id)
    rows = gateway.select("contract_expenses", {"contract_id": contract_id}, order=["-created_at", "-id"])
    total = finance.expense_cost(records(ExpenseRecord, rows))
    return list_response(rows, totals={"expense_cost": total}, expense_types=EXPENSE_TYPES)


@contracts_bp.route("/<int:contract_id>/expenses/", methods=["POST"])
def create_expense(contract_id: int):
    load_contract(contract_id)
    data = payload()

    expense_type = clean_str(data.get("expense_type"), "expense_type", required=True)
    if expense_type not in EXPENSE_TYPES:
        raise ValidationError(f"expense_type must be one of: {', '.join(EXPENSE_TYPES)}.")

    values = {
        "contract_id": contract_id,
        "expense_type": expense_type,
        "amount": require_non_negative(parse_decimal(data.get("amount"), "amount", required=True), "amount"),
        "expense_date": parse_date(data.get("expense_date"), "expense_date"),
        "notes": clean_str(data.get("notes")),
    }

    row = gateway.insert("contract_expenses", values)
    audit_recorder.record("CREATE", "CONTRACT_EXPENSE", row["id"], row)
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/expenses/<int:expense_id>", methods=["DELETE"])
def delete_expense(contract_id: int, expense_id: int):
    return audited_delete("contract_expenses", "CONTRACT_EXPENSE", contract_id, expense_id)


# ---------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------
def _payment_values(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not partial or "amount" in data:
        values["amount"] = require_positive(parse_decimal(data.get("amount"), "amount", required=True), "amount")
    if not partial or "payment_date" in data:
        values["payment_date"] = parse_date(data.get("payment_date"), "payment_date", required=True)
    if not partial or "notes" in data:
        values["notes"] = clean_str(data.get("notes"))
    return values


@contracts_bp.route("/<int:contract_id>/payments/", methods=["GET"])
@provisioning_aware
def list_payments(contract_id: int):
    load_contract(contract_id)
    rows = gateway.select("payments", {"contract_id": contract_id}, order="-payment_date")

    items = select_or_empty("contract_items", {"contract_id": contract_id}, ["created_at", "id"])
    value = finance.contract_value(records(ItemRecord, items))
    received = finance.total_received(records(PaymentRecord, rows))

    return list_response(
        rows,
        totals={
            "contract_value": value,
            "total_received": received,
            "remaining_balance": finance.remaining_balance(value, received),
        },
    )


@contracts_bp.route("/<int:contract_id>/payments/", methods=["POST"])
def create_payment(contract_id: int):
    load_contract(contract_id)
    values = _payment_values(payload(), partial=False)
    values["contract_id"] = contract_id

    row = gateway.insert("payments", values)
    audit_recorder.record("CREATE", "PAYMENT", row["id"], row)
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/payments/<int:payment_id>", methods=["PUT"])
def update_payment(contract_id: int, payment_id: int):
    return audited_update(
        "payments", "PAYMENT", contract_id, payment_id, lambda: _payment_values(payload(), partial=True)
    )


@contracts_bp.route("/<int:contract_id>/payments/<int:payment_id>", methods=["DELETE"])
def delete_payment(contract_id: int, payment_id: int):
    return audited_delete("payments", "PAYMENT", contract_id, payment_id)
