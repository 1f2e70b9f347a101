"""
contract_ledger/errors.py

Error taxonomy shared by the gateway, the blob store and the HTTP layer.

- DataAccessError: any failure of the persistence gateway. Carries a
  PostgreSQL-style `code` so callers can tell a missing table ("42P01")
  apart from a transient failure.
- StorageError: any failure of the blob store. `bucket_not_found` is a
  provisioning problem, not a generic failure.
- ValidationError: bad request payloads (HTTP 400).

register_error_handlers() maps them to JSON responses.
"""

from __future__ import annotations

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError

MISSING_RELATION = "42P01"
UNDEFINED_COLUMN = "42703"
INSUFFICIENT_PRIVILEGE = "42501"
NO_ROWS = "PGRST116"
INTEGRITY = "23000"
GENERIC = "DB_ERROR"


class DataAccessError(Exception):
    """Failure reported by the persistence gateway."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def is_missing_relation(self) -> bool:
        return self.code == MISSING_RELATION

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class RecordNotFound(DataAccessError):
    """update/delete/get targeted a row that does not exist."""

    def __init__(self, table: str, record_id):
        super().__init__(NO_ROWS, f"{table} row {record_id} not found")
        self.table = table
        self.record_id = record_id


class StorageError(Exception):
    """Failure reported by the blob store."""

    def __init__(self, message: str, *, bucket_not_found: bool = False):
        super().__init__(message)
        self.message = message
        self.bucket_not_found = bucket_not_found


class ValidationError(Exception):
    """Request payload could not be accepted."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def provisioning_message(exc: Exception) -> str:
    """Human readable hint for a missing table or bucket."""
    if isinstance(exc, StorageError):
        return f"Storage bucket is not provisioned: {exc.message}. Create it (flask create-bucket) and retry."
    return f"This feature is not provisioned yet: {getattr(exc, 'message', exc)}. Run the database migrations."


def register_error_handlers(app: Flask) -> None:
    """Attach JSON error handlers for the taxonomy above."""

    @app.errorhandler(ValidationError)
    def _validation(exc: ValidationError):
        return jsonify({"error": "validation", "message": exc.message}), 400

    @app.errorhandler(RecordNotFound)
    def _not_found(exc: RecordNotFound):
        return jsonify({"error": "not_found", "message": exc.message}), 404

    @app.errorhandler(DataAccessError)
    def _data_access(exc: DataAccessError):
        if exc.is_missing_relation:
            app.logger.warning("Feature not provisioned: %s", exc)
            return jsonify({"error": "not_provisioned", "code": exc.code, "message": provisioning_message(exc)}), 503

        app.logger.error("Data access failure: %s", exc)
        return jsonify({"error": "data_access", "code": exc.code, "message": exc.message}), 500

    @app.errorhandler(StorageError)
    def _storage(exc: StorageError):
        if exc.bucket_not_found:
            app.logger.warning("Bucket not provisioned: %s", exc.message)
            return jsonify({"error": "not_provisioned", "message": provisioning_message(exc)}), 503

        app.logger.error("Storage failure: %s", exc.message)
        return jsonify({"error": "storage", "message": exc.message}), 500

    @app.errorhandler(CSRFError)
    def _csrf(exc: CSRFError):
        return jsonify({"error": "csrf", "message": exc.description}), 400

    @app.errorhandler(404)
    def _http_not_found(_exc):
        return jsonify({"error": "not_found", "message": "Resource not found."}), 404

    @app.errorhandler(405)
    def _method_not_allowed(_exc):
        return jsonify({"error": "method_not_allowed", "message": "Method not allowed."}), 405

    @app.errorhandler(413)
    def _too_large(_exc):
        limit = app.config.get("MAX_CONTENT_LENGTH")
        return jsonify({"error": "too_large", "message": f"Upload exceeds the {limit} byte limit."}), 413
