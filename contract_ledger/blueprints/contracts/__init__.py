"""
contract_ledger/blueprints/contracts/__init__.py

Blueprint package export.

IMPORTANT:
- Must expose contracts_bp for app factory registration.
- ledger and fulfillment attach their routes to contracts_bp on import.
"""

from __future__ import annotations

from .routes import contracts_bp  # noqa: F401
from . import fulfillment, ledger  # noqa: F401
