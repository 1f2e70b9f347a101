"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
blob storage and logging. It uses environment variables for sensitive information and defaults for development. In
production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'ledger.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for session-authenticated mutations
    WTF_CSRF_ENABLED = True

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Blob storage: "local" (files under BLOB_ROOT) or "b2" (Backblaze B2)
    BLOB_BACKEND = os.environ.get("BLOB_BACKEND", "local")
    BLOB_ROOT = os.environ.get("BLOB_ROOT", str(BASE_DIR / "storage"))
    B2_KEY_ID = os.environ.get("B2_KEY_ID")
    B2_APPLICATION_KEY = os.environ.get("B2_APPLICATION_KEY")

    ATTACHMENTS_BUCKET = os.environ.get("ATTACHMENTS_BUCKET", "attachments")
    SIGNED_URL_TTL = int(os.environ.get("SIGNED_URL_TTL", "3600"))
    # Request body cap; larger uploads get a 413
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_BYTES", str(16 * 1024 * 1024)))

    # Audit log screen shows only the newest entries
    AUDIT_LOG_LIMIT = 100

    APP_NAME = "Contract Ledger"


class TestingConfig(Config):
    """Configuration used by the test-suite (database/blob paths are overridden per test)."""

    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "DEBUG"
