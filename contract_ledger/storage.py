"""
contract_ledger/storage.py

Blob store for contract attachments.

Two backends with the same surface (upload / create_signed_url / remove):

- LocalBlobStore: buckets are directories under BLOB_ROOT. Signed URLs are
  itsdangerous tokens served by the files blueprint (/files/<token>).
- B2BlobStore: Backblaze B2 through b2sdk. Signed URLs carry a B2 download
  authorization limited to the object and the TTL.

A missing bucket raises StorageError(bucket_not_found=True) so callers can
show a provisioning hint instead of a generic failure.
"""

from __future__ import annotations

import mimetypes
import time
import uuid
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Tuple
from urllib.parse import quote

from b2sdk.v2 import B2Api, InMemoryAccountInfo
from b2sdk.v2.exception import B2Error, FileNotPresent, NonExistentBucket
from flask import Flask, current_app, has_request_context, url_for
from itsdangerous import BadSignature, URLSafeTimedSerializer

from .errors import StorageError

_TOKEN_SALT = "contract-ledger-blob"


def _clean_path(path: str) -> str:
    """Reject absolute paths and parent references; normalise separators."""
    raw = str(path or "").replace("\\", "/").strip("/")
    parts = PurePosixPath(raw).parts
    if not parts or any(part in ("..", ".") for part in parts):
        raise StorageError(f"Invalid object path: {path!r}")
    return "/".join(parts)


def attachment_path(contract_id, filename: str) -> str:
    """Object path for a new attachment: {contract_id}/{uuid}.{ext}."""
    ext = Path(filename or "").suffix.lstrip(".").lower()
    name = uuid.uuid4().hex
    return f"{contract_id}/{name}.{ext}" if ext else f"{contract_id}/{name}"


# ---------------------------------------------------------------------
# Local filesystem backend
# ---------------------------------------------------------------------
class LocalBlobStore:
    def __init__(self, root: str, secret_key: str):
        self.root = Path(root)
        self.serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)

    def _bucket_dir(self, bucket: str) -> Path:
        bucket_dir = self.root / _clean_path(bucket)
        if not bucket_dir.is_dir():
            raise StorageError("Bucket not found", bucket_not_found=True)
        return bucket_dir

    def create_bucket(self, bucket: str) -> None:
        (self.root / _clean_path(bucket)).mkdir(parents=True, exist_ok=True)

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = self._bucket_dir(bucket) / _clean_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Upload failed: {exc}") from exc
        return _clean_path(path)

    def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        target = self._bucket_dir(bucket) / _clean_path(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")

        token = self.serializer.dumps({"b": bucket, "p": _clean_path(path), "ttl": int(ttl_seconds)})
        if has_request_context():
            return url_for("files.download", token=token, _external=True)
        return f"/files/{token}"

    def resolve(self, token: str) -> Tuple[Path, str]:
        """Verify a signed token. Returns (file path, content type)."""
        try:
            payload, signed_at = self.serializer.loads(token, return_timestamp=True)
        except BadSignature as exc:
            raise StorageError("Invalid download token") from exc

        # max_age is per token, so it is checked after decoding
        age = time.time() - signed_at.timestamp()
        if age > int(payload.get("ttl", 0)):
            raise StorageError("Download link expired")

        target = self._bucket_dir(payload["b"]) / _clean_path(payload["p"])
        if not target.is_file():
            raise StorageError(f"Object not found: {payload['p']}")

        content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        return target, content_type

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        bucket_dir = self._bucket_dir(bucket)
        for path in paths:
            try:
                (bucket_dir / _clean_path(path)).unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"Remove failed for {path}: {exc}") from exc


# ---------------------------------------------------------------------
# Backblaze B2 backend
# ---------------------------------------------------------------------
class B2BlobStore:
    def __init__(self, key_id: Optional[str], application_key: Optional[str]):
        self.key_id = key_id
        self.application_key = application_key
        self._api: Optional[B2Api] = None

    def api(self) -> B2Api:
        if self._api is None:
            if not self.key_id or not self.application_key:
                raise StorageError("B2 credentials (B2_KEY_ID/B2_APPLICATION_KEY) are not configured")
            info = InMemoryAccountInfo()
            api = B2Api(info)
            try:
                api.authorize_account("production", self.key_id, self.application_key)
            except B2Error as exc:
                raise StorageError(f"B2 authorization failed: {exc}") from exc
            self._api = api
        return self._api

    def _bucket(self, bucket: str):
        try:
            return self.api().get_bucket_by_name(bucket)
        except NonExistentBucket as exc:
            raise StorageError("Bucket not found", bucket_not_found=True) from exc
        except B2Error as exc:
            raise StorageError(str(exc)) from exc

    def create_bucket(self, bucket: str) -> None:
        try:
            self.api().create_bucket(bucket, "allPrivate")
        except B2Error as exc:
            raise StorageError(f"Bucket creation failed: {exc}") from exc

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        name = _clean_path(path)
        try:
            self._bucket(bucket).upload_bytes(data, file_name=name, content_type=content_type)
        except B2Error as exc:
            raise StorageError(f"Upload failed: {exc}") from exc
        return name

    def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        name = _clean_path(path)
        b2_bucket = self._bucket(bucket)
        try:
            token = b2_bucket.get_download_authorization(name, int(ttl_seconds))
            base = self.api().get_download_url_for_file_name(bucket, name)
        except B2Error as exc:
            raise StorageError(f"Signed URL failed: {exc}") from exc
        return f"{base}?Authorization={quote(token)}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        b2_bucket = self._bucket(bucket)
        for path in paths:
            name = _clean_path(path)
            try:
                version = b2_bucket.get_file_info_by_name(name)
                b2_bucket.delete_file_version(version.id_, name)
            except FileNotPresent:
                continue
            except B2Error as exc:
                raise StorageError(f"Remove failed for {path}: {exc}") from exc


# ---------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------
def init_blob_store(app: Flask) -> None:
    backend = (app.config.get("BLOB_BACKEND") or "local").lower()
    if backend == "b2":
        store = B2BlobStore(app.config.get("B2_KEY_ID"), app.config.get("B2_APPLICATION_KEY"))
    elif backend == "local":
        store = LocalBlobStore(app.config["BLOB_ROOT"], app.config["SECRET_KEY"])
    else:
        raise ValueError(f"Unknown BLOB_BACKEND: {backend}")

    app.extensions["blob_store"] = store
    app.logger.debug("Blob store: %s", backend)


def get_blob_store():
    return current_app.extensions["blob_store"]
