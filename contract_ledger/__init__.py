"""
contract_ledger/__init__.py

Flask application factory for the Contract Ledger.

A JSON API over contracts and their details (items, purchases, expenses,
deliveries, receipts, payments, attachments), suppliers, the audit trail,
the dashboard and the reports.

Architecture:
- Blueprints talk to tables through the persistence gateway (gateway.py).
- Money rules live in finance.py; report shaping in reports.py.
- Mutations are audited in the background (audit.py).
- All amounts are grouped per currency and never converted.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

import click
from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider

from .audit import audit_recorder
from .errors import StorageError, register_error_handlers
from .extensions import csrf, db, login_manager, migrate
from .models import User
from .session import session_context
from .storage import get_blob_store, init_blob_store


class LedgerJSONProvider(DefaultJSONProvider):
    """ISO dates and 2-decimal money strings in every JSON response."""

    sort_keys = False
    ensure_ascii = False

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, Decimal):
            return str(o.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
        return DefaultJSONProvider.default(o)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    app.json = LedgerJSONProvider(app)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except ValueError:
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthorized", "message": "Login required."}), 401

    # Session context, audit worker, blob store, error mapping
    session_context.init_app(app)
    audit_recorder.init_app(app)
    init_blob_store(app)
    register_error_handlers(app)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.contracts import contracts_bp
    from .blueprints.suppliers import suppliers_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.reports import reports_bp
    from .blueprints.audit_logs import audit_logs_bp
    from .blueprints.settings import settings_bp
    from .blueprints.files import files_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(contracts_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(audit_logs_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(files_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.option("--email", default=None, help="Optional e-mail address.")
    @click.password_option()
    def create_user_command(username, email, password):
        """Create a login user."""
        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"User {username!r} already exists.")

        user = User(username=username, email=email, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"User {username} created.")

    @app.cli.command("create-bucket")
    @click.argument("name", required=False)
    def create_bucket_command(name):
        """Create the attachments bucket (or NAME) in the blob store."""
        bucket = name or app.config["ATTACHMENTS_BUCKET"]
        try:
            get_blob_store().create_bucket(bucket)
        except StorageError as exc:
            raise click.ClickException(exc.message)
        click.echo(f"Bucket {bucket} ready.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Application info (public)."""
        return jsonify(
            {
                "name": app.config.get("APP_NAME", "Contract Ledger"),
                "endpoints": sorted(
                    bp.url_prefix for bp in app.blueprints.values() if bp.url_prefix
                ),
            }
        )

    return app
