"""
contract_ledger/audit.py

Audit trail recorder.

Goals:
- Capture WHO did WHAT to WHICH entity, with a snapshot of the payload.
- Never block or fail the mutation it accompanies.

IMPORTANT:
- record() resolves the acting user in the request thread and hands the
  insert to a background worker, then returns immediately.
- No authenticated user -> silent no-op.
- The worker runs inside its own application context (own DB session).
  Any failure there is rolled back and logged on app.logger; it is never
  re-raised.
- audit_logs is append-only (see Gateway.APPEND_ONLY and the ORM listeners
  on AuditLog).
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import Flask, current_app

from .gateway import gateway
from .session import session_context

ACTIONS = ("CREATE", "UPDATE", "DELETE")

ENTITY_TYPES = (
    "CONTRACT",
    "SUPPLIER",
    "CONTRACT_ITEM",
    "DELIVERY",
    "DELIVERY_RECEIPT",
    "PAYMENT",
    "ATTACHMENT",
    "CONTRACT_PURCHASE",
    "CONTRACT_EXPENSE",
)


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON storage.

    - For None: return None.
    - For exotic types: fall back to repr.
    """
    if value is None:
        return None
    try:
        return str(value)
    except Exception:
        return repr(value)


def json_safe(value: Any) -> Any:
    """
    Convert a payload snapshot to JSON primitives.

    Decimal -> str (no float rounding), date/datetime -> ISO string,
    mappings and sequences recursively, anything else -> str().
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    return _safe_str(value)


class AuditRecorder:
    """Fire-and-forget audit writer backed by a single worker thread."""

    def __init__(self):
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def init_app(self, app: Flask) -> None:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")
        app.extensions["audit_recorder"] = self

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[Future]:
        """
        Queue an audit entry. Returns the worker Future, or None when nothing
        was queued (no user, unknown action, recorder not started).
        """
        app = current_app._get_current_object()

        if action not in ACTIONS:
            app.logger.warning("Audit: ignoring unknown action %r for %s %s", action, entity_type, entity_id)
            return None

        user = session_context.get_user()
        if user is None:
            return None

        entry = {
            "user_id": user.id,
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "details": json_safe(details) if details is not None else None,
        }

        with self._lock:
            if self._executor is None:
                app.logger.warning("Audit: recorder is not running, dropping %s %s", action, entity_type)
                return None
            future = self._executor.submit(self._write, app, entry)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _write(self, app: Flask, entry: Dict[str, Any]) -> None:
        with app.app_context():
            try:
                gateway.insert("audit_logs", entry)
            except Exception as exc:
                app.logger.warning(
                    "Failed to log action %s %s %s: %s",
                    entry["action"],
                    entry["entity_type"],
                    entry["entity_id"],
                    exc,
                )

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: Optional[float] = 5.0) -> bool:
        """Wait for queued writes. True if everything finished in time."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending)


audit_recorder = AuditRecorder()
