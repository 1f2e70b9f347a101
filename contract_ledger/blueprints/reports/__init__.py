"""
contract_ledger/blueprints/reports/__init__.py

Blueprint package export.
"""

from __future__ import annotations

from .routes import reports_bp  # noqa: F401
