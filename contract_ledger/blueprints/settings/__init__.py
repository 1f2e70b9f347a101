"""
contract_ledger/blueprints/settings/__init__.py

Blueprint package export.
"""

from __future__ import annotations

from .routes import settings_bp  # noqa: F401
