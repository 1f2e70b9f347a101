"""
Auth blueprint package: login, logout, current user, CSRF token and the
first-admin bootstrap. Routes are in routes.py.
"""

from .routes import auth_bp  # noqa: F401
