"""
contract_ledger/blueprints/contracts/fulfillment.py

Fulfillment tabs of a contract: deliveries, delivery receipts, attachments.

- Deliveries are per item. The list carries per-item progress: the signed
  remaining quantity from finance.remaining_item_quantity plus the clamped
  display value. Over-delivery is accepted and shows as negative remaining.
- Delivery receipts are standalone documents with no link to deliveries.
- Attachments: bytes go to the blob store, the row keeps the object path.
"""

from __future__ import annotations

import random
from typing import Any, Dict

from flask import current_app, jsonify, request

from ... import finance
from ...audit import audit_recorder
from ...errors import DataAccessError, RecordNotFound, StorageError, ValidationError
from ...gateway import gateway
from ...records import DeliveryRecord, ItemRecord, records
from ...storage import attachment_path, get_blob_store
from ...utils import clean_str, list_response, parse_date, parse_decimal, payload, provisioning_aware
from .ledger import audited_delete, audited_update, require_positive
from .routes import contract_items, contracts_bp, load_child, load_contract


# ---------------------------------------------------------------------
# Deliveries
# ---------------------------------------------------------------------
def _load_delivery(contract_id: int, delivery_id: int) -> Dict[str, Any]:
    row = gateway.get("deliveries", delivery_id)
    if row is None:
        raise RecordNotFound("deliveries", delivery_id)
    item = gateway.get("contract_items", row["contract_item_id"])
    if item is None or item["contract_id"] != contract_id:
        raise RecordNotFound("deliveries", delivery_id)
    return row


def _delivery_values(data: Dict[str, Any], contract_id: int, *, partial: bool) -> Dict[str, Any]:
    values: Dict[str, Any] = {}

    if not partial or "contract_item_id" in data:
        try:
            item_id = int(data.get("contract_item_id"))
        except (TypeError, ValueError):
            raise ValidationError("contract_item_id is required.")
        item = gateway.get("contract_items", item_id)
        if item is None or item["contract_id"] != contract_id:
            raise ValidationError("contract_item_id does not belong to this contract.")
        values["contract_item_id"] = item_id

    if not partial or "quantity_delivered" in data:
        quantity = parse_decimal(data.get("quantity_delivered"), "quantity_delivered", required=True)
        values["quantity_delivered"] = require_positive(quantity, "quantity_delivered")
    if not partial or "delivery_date" in data:
        values["delivery_date"] = parse_date(data.get("delivery_date"), "delivery_date", required=True)
    if not partial or "notes" in data:
        values["notes"] = clean_str(data.get("notes"))
    return values


@contracts_bp.route("/<int:contract_id>/deliveries/", methods=["GET"])
@provisioning_aware
def list_deliveries(contract_id: int):
    load_contract(contract_id)
    item_rows = contract_items(contract_id)
    names = {i["id"]: i["item_name"] for i in item_rows}

    rows = []
    if item_rows:
        rows = gateway.select("deliveries", {"contract_item_id": list(names)}, order="-delivery_date")
    for row in rows:
        row["item_name"] = names.get(row["contract_item_id"])

    deliveries = records(DeliveryRecord, rows)
    progress = []
    for item in records(ItemRecord, item_rows):
        remaining = finance.remaining_item_quantity(item, deliveries)
        progress.append(
            {
                "item_id": item.id,
                "item_name": item.item_name,
                "quantity": item.quantity,
                "remaining": remaining,
                "remaining_display": finance.display_quantity(remaining),
                "fully_delivered": finance.is_fully_delivered(remaining),
            }
        )

    return list_response(rows, progress=progress)


@contracts_bp.route("/<int:contract_id>/deliveries/", methods=["POST"])
def create_delivery(contract_id: int):
    load_contract(contract_id)
    values = _delivery_values(payload(), contract_id, partial=False)

    row = gateway.insert("deliveries", values)
    audit_recorder.record("CREATE", "DELIVERY", row["id"], row)
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/deliveries/<int:delivery_id>", methods=["PUT"])
def update_delivery(contract_id: int, delivery_id: int):
    before = _load_delivery(contract_id, delivery_id)
    values = _delivery_values(payload(), contract_id, partial=True)
    if not values:
        raise ValidationError("Nothing to update.")

    row = gateway.update("deliveries", delivery_id, values)
    audit_recorder.record("UPDATE", "DELIVERY", delivery_id, {"before": before, "after": row})
    return jsonify(row)


@contracts_bp.route("/<int:contract_id>/deliveries/<int:delivery_id>", methods=["DELETE"])
def delete_delivery(contract_id: int, delivery_id: int):
    before = _load_delivery(contract_id, delivery_id)
    gateway.delete("deliveries", delivery_id)
    audit_recorder.record("DELETE", "DELIVERY", delivery_id, before)
    return jsonify({"deleted": delivery_id})


# ---------------------------------------------------------------------
# Delivery receipts
# ---------------------------------------------------------------------
def _receipt_number() -> str:
    return f"REC-{random.randint(0, 9999)}"


def _receipt_values(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not partial:
        values["receipt_number"] = clean_str(data.get("receipt_number")) or _receipt_number()
    elif "receipt_number" in data:
        values["receipt_number"] = clean_str(data.get("receipt_number"), "receipt_number", required=True)

    if not partial or "delivery_date" in data:
        values["delivery_date"] = parse_date(data.get("delivery_date"), "delivery_date", required=True)
    if not partial or "recipient_name" in data:
        values["recipient_name"] = clean_str(data.get("recipient_name"), "recipient_name", required=True)
    for field in ("recipient_phone", "notes"):
        if not partial or field in data:
            values[field] = clean_str(data.get(field))
    return values


@contracts_bp.route("/<int:contract_id>/receipts/", methods=["GET"])
@provisioning_aware
def list_receipts(contract_id: int):
    load_contract(contract_id)
    rows = gateway.select("delivery_receipts", {"contract_id": contract_id}, order=["-created_at", "-id"])
    return list_response(rows)


@contracts_bp.route("/<int:contract_id>/receipts/", methods=["POST"])
def create_receipt(contract_id: int):
    load_contract(contract_id)
    values = _receipt_values(payload(), partial=False)
    values["contract_id"] = contract_id

    row = gateway.insert("delivery_receipts", values)
    audit_recorder.record("CREATE", "DELIVERY_RECEIPT", row["id"], row)
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/receipts/<int:receipt_id>", methods=["PUT"])
def update_receipt(contract_id: int, receipt_id: int):
    return audited_update(
        "delivery_receipts",
        "DELIVERY_RECEIPT",
        contract_id,
        receipt_id,
        lambda: _receipt_values(payload(), partial=True),
    )


@contracts_bp.route("/<int:contract_id>/receipts/<int:receipt_id>", methods=["DELETE"])
def delete_receipt(contract_id: int, receipt_id: int):
    return audited_delete("delivery_receipts", "DELIVERY_RECEIPT", contract_id, receipt_id)


# ---------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------
@contracts_bp.route("/<int:contract_id>/attachments/", methods=["GET"])
@provisioning_aware
def list_attachments(contract_id: int):
    load_contract(contract_id)
    rows = gateway.select("attachments", {"contract_id": contract_id}, order=["-created_at", "-id"])
    return list_response(rows)


@contracts_bp.route("/<int:contract_id>/attachments/", methods=["POST"])
def upload_attachment(contract_id: int):
    load_contract(contract_id)

    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("file is required (multipart/form-data).")

    bucket = current_app.config["ATTACHMENTS_BUCKET"]
    store = get_blob_store()
    path = attachment_path(contract_id, upload.filename)
    content_type = upload.mimetype or None

    store.upload(bucket, path, upload.read(), content_type=content_type)

    try:
        row = gateway.insert("attachments", {"contract_id": contract_id, "file_url": path, "file_type": content_type})
    except DataAccessError:
        # keep storage consistent with the table
        try:
            store.remove(bucket, [path])
        except StorageError as exc:
            current_app.logger.warning("Orphan blob %s left in %s: %s", path, bucket, exc.message)
        raise

    audit_recorder.record("CREATE", "ATTACHMENT", row["id"], {**row, "file_name": upload.filename})
    return jsonify(row), 201


@contracts_bp.route("/<int:contract_id>/attachments/<int:attachment_id>/url", methods=["GET"])
def attachment_url(contract_id: int, attachment_id: int):
    row = load_child("attachments", contract_id, attachment_id)
    ttl = current_app.config["SIGNED_URL_TTL"]
    url = get_blob_store().create_signed_url(current_app.config["ATTACHMENTS_BUCKET"], row["file_url"], ttl)
    return jsonify({"url": url, "expires_in": ttl})


@contracts_bp.route("/<int:contract_id>/attachments/<int:attachment_id>", methods=["DELETE"])
def delete_attachment(contract_id: int, attachment_id: int):
    row = load_child("attachments", contract_id, attachment_id)
    get_blob_store().remove(current_app.config["ATTACHMENTS_BUCKET"], [row["file_url"]])
    return audited_delete("attachments", "ATTACHMENT", contract_id, attachment_id)
