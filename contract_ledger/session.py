"""
contract_ledger/session.py

Explicit session context over Flask-Login.

Components that need "who is acting" (the audit recorder, route guards) ask
this object instead of reaching into flask_login.current_user directly.

Lifecycle:
- init_app() subscribes to Flask-Login's user_logged_in / user_logged_out
  signals for that app.
- Each login/logout is forwarded to on_auth_state_change() listeners as
  "SIGNED_IN" / "SIGNED_OUT" with the AuthSession involved.
- sign_out() ends the current session (and emits SIGNED_OUT).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from flask import Flask, has_request_context
from flask_login import current_user, logout_user, user_logged_in, user_logged_out

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

Listener = Callable[[str, Optional["AuthSession"]], None]


@dataclass(frozen=True)
class AuthSession:
    user_id: int
    username: str
    email: Optional[str] = None
    last_sign_in_at: Optional[datetime] = None

    @classmethod
    def for_user(cls, user) -> "AuthSession":
        return cls(
            user_id=user.id,
            username=user.username,
            email=user.email,
            last_sign_in_at=user.last_sign_in_at,
        )


class SessionContext:
    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def init_app(self, app: Flask) -> None:
        user_logged_in.connect(self._on_logged_in, app)
        user_logged_out.connect(self._on_logged_out, app)
        app.extensions["session_context"] = self

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------
    def get_user(self):
        """Authenticated User of the current request, or None."""
        if not has_request_context():
            return None
        if not current_user.is_authenticated:
            return None
        return current_user._get_current_object()

    def get_session(self) -> Optional[AuthSession]:
        user = self.get_user()
        return AuthSession.for_user(user) if user is not None else None

    # -----------------------------------------------------------------
    # Subscriptions
    # -----------------------------------------------------------------
    def on_auth_state_change(self, callback: Listener) -> Callable[[], None]:
        """Register callback(event, session). Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def sign_out(self) -> None:
        if self.get_user() is not None:
            logout_user()

    # -----------------------------------------------------------------
    # Signal handlers
    # -----------------------------------------------------------------
    def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event, session)

    def _on_logged_in(self, sender, user, **extra) -> None:
        self._emit(SIGNED_IN, AuthSession.for_user(user))

    def _on_logged_out(self, sender, user, **extra) -> None:
        authenticated = user is not None and user.is_authenticated
        self._emit(SIGNED_OUT, AuthSession.for_user(user) if authenticated else None)


session_context = SessionContext()
