"""
Authentication Routes

Provides:
- /auth/login
- /auth/logout
- /auth/me
- /auth/seed-admin (first system bootstrap)
- /auth/csrf-token

Rules:
- Only active users may log in.
- seed-admin only works while the users table is empty.
- Mutating requests need the CSRF token (X-CSRFToken header) when CSRF is enabled.
"""

from datetime import datetime

from flask import Blueprint, jsonify
from flask_login import login_required, login_user
from flask_wtf.csrf import generate_csrf

from ...errors import ValidationError
from ...extensions import db
from ...models import User
from ...session import session_context
from ...utils import clean_str, payload


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _user_json(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "is_active": user.is_active,
        "last_sign_in_at": user.last_sign_in_at,
    }


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user.

    - Credentials validated via password hash
    - last_sign_in_at stamped on success
    """
    data = payload()
    username = clean_str(data.get("username"), "username", required=True)
    password = data.get("password") or ""

    user = User.query.filter_by(username=username).first()

    if not user or not user.check_password(password):
        return jsonify({"error": "invalid_credentials", "message": "Wrong username or password."}), 401

    if not user.is_active:
        return jsonify({"error": "inactive", "message": "This account is disabled."}), 403

    user.last_sign_in_at = datetime.utcnow()
    db.session.commit()

    login_user(user)
    return jsonify({"user": _user_json(user)})


# ============================================================
# LOGOUT / CURRENT USER
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    session_context.sign_out()
    return jsonify({"message": "Signed out."})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": _user_json(session_context.get_user())})


@auth_bp.route("/csrf-token")
def csrf_token():
    """Token to send back in the X-CSRFToken header."""
    return jsonify({"csrf_token": generate_csrf()})


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
def seed_admin():
    """
    Bootstrap the FIRST user of the system.

    If ANY user already exists -> blocked.
    """
    if User.query.count() > 0:
        return jsonify({"error": "already_seeded", "message": "A user already exists."}), 409

    data = payload()
    username = clean_str(data.get("username"), "username", required=True)
    password = data.get("password") or ""
    if not password:
        raise ValidationError("password is required.")

    user = User(username=username, email=clean_str(data.get("email")), is_active=True)
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    return jsonify({"user": _user_json(user)}), 201
