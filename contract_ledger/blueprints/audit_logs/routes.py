"""
contract_ledger/blueprints/audit_logs/routes.py

Audit trail screen (read-only).

Shows the newest AUDIT_LOG_LIMIT entries. ?q= matches entity type or
action, ?entity_type= narrows to one entity type. Both filters apply to
the fetched window, not to the whole table.
"""

from __future__ import annotations

from flask import Blueprint, current_app, request
from flask_login import login_required

from ...audit import ACTIONS, ENTITY_TYPES
from ...gateway import gateway
from ...utils import list_response, matches, provisioning_aware

audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/audit-logs")


@audit_logs_bp.route("/", methods=["GET"])
@login_required
@provisioning_aware
def list_logs():
    limit = current_app.config.get("AUDIT_LOG_LIMIT", 100)
    rows = gateway.select("audit_logs", order=["-created_at", "-id"], limit=limit)

    entity_type = (request.args.get("entity_type") or "").strip().upper()
    if entity_type and entity_type != "ALL":
        rows = [r for r in rows if r["entity_type"] == entity_type]

    q = (request.args.get("q") or "").strip()
    if q:
        rows = [r for r in rows if matches(q, r["entity_type"], r["action"])]

    usernames = {}
    user_ids = {r["user_id"] for r in rows if r["user_id"] is not None}
    if user_ids:
        usernames = {u["id"]: u["username"] for u in gateway.select("users", {"id": user_ids})}
    for row in rows:
        row["username"] = usernames.get(row["user_id"])

    return list_response(rows, entity_types=ENTITY_TYPES, actions=ACTIONS)
