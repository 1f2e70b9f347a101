"""
Utility functions shared across the blueprints. This includes:
- payload: JSON (or form) body of the current request as a dict.
- parse_decimal / parse_optional_int / parse_date: user input parsing.
- clean_str: trimmed optional strings.
- matches: case-insensitive "contains" used by list searches.
- list_response: list payload, with the not-provisioned variant.
- provisioning_aware: list views degrade to empty when a table/bucket is missing.
- select_or_empty: gateway select for widgets that tolerate missing tables.
"""

from __future__ import annotations

from datetime import date
from functools import wraps
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from flask import current_app, jsonify, request

from .errors import DataAccessError, StorageError, ValidationError, provisioning_message
from .gateway import gateway


def payload() -> Dict[str, Any]:
    """Request body: JSON if sent, otherwise form fields."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def parse_decimal(value: Any, field: str, *, required: bool = False) -> Optional[Decimal]:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None or str(value).strip() == "":
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    raw = str(value).strip().replace(",", ".")
    try:
        result = Decimal(raw)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number.")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number.")
    return result


def parse_optional_int(value: Any) -> Optional[int]:
    """Parse optional int from form/query."""
    if value is None:
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value: Any, field: str, *, required: bool = False) -> Optional[date]:
    """Parse an ISO date (YYYY-MM-DD)."""
    if value is None or str(value).strip() == "":
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD).")


def clean_str(value: Any, field: str = "", *, required: bool = False) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    if not text:
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    return text


def matches(query: str, *values: Optional[str]) -> bool:
    """True if query is contained (case-insensitive) in any value."""
    needle = query.lower()
    return any(needle in (v or "").lower() for v in values)


def list_response(items: Iterable[Any], **extra):
    return jsonify({"items": list(items), "provisioned": True, **extra})


def not_provisioned_response(exc: Exception):
    """Empty list plus a provisioning hint (HTTP 200)."""
    return jsonify({"items": [], "provisioned": False, "message": provisioning_message(exc)})


def is_provisioning_error(exc: Exception) -> bool:
    if isinstance(exc, DataAccessError):
        return exc.is_missing_relation
    if isinstance(exc, StorageError):
        return exc.bucket_not_found
    return False


def provisioning_aware(view):
    """
    For list endpoints: a missing table/bucket degrades to an empty list with
    a hint instead of an error. Other failures propagate to the error handlers.
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except (DataAccessError, StorageError) as exc:
            if not is_provisioning_error(exc):
                raise
            current_app.logger.warning("Not provisioned (%s): %s", request.path, exc)
            return not_provisioned_response(exc)

    return wrapper


def select_or_empty(table: str, filters=None, order=None):
    """gateway.select(), but a table that is not provisioned reads as empty."""
    try:
        return gateway.select(table, filters, order)
    except DataAccessError as exc:
        if not exc.is_missing_relation:
            raise
        current_app.logger.warning("Table %s not provisioned, treating as empty", table)
        return []
