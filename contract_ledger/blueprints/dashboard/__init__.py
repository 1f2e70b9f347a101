"""
contract_ledger/blueprints/dashboard/__init__.py

Blueprint package export.
"""

from __future__ import annotations

from .routes import dashboard_bp  # noqa: F401
