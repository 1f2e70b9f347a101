"""
contract_ledger/blueprints/settings/routes.py

Account settings of the logged-in user (read-only).
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from ...session import session_context

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


@settings_bp.route("/account", methods=["GET"])
@login_required
def account():
    user = session_context.get_user()
    return jsonify(
        {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "last_sign_in_at": user.last_sign_in_at,
            "created_at": user.created_at,
            "app_name": current_app.config.get("APP_NAME"),
        }
    )
