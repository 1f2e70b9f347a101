"""
contract_ledger/blueprints/audit_logs/__init__.py

Blueprint package export.
"""

from __future__ import annotations

from .routes import audit_logs_bp  # noqa: F401
