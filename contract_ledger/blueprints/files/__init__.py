"""
contract_ledger/blueprints/files/__init__.py

Blueprint package export.
"""

from __future__ import annotations

from .routes import files_bp  # noqa: F401
