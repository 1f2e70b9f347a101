"""
contract_ledger/blueprints/files/routes.py

Download endpoint for signed URLs issued by the local blob store.

Public: the token itself is the credential (signed, time-limited).
"""

from __future__ import annotations

from flask import Blueprint, abort, current_app, send_file

from ...errors import StorageError
from ...storage import LocalBlobStore, get_blob_store

files_bp = Blueprint("files", __name__, url_prefix="/files")


@files_bp.route("/<token>", methods=["GET"])
def download(token: str):
    store = get_blob_store()
    if not isinstance(store, LocalBlobStore):
        abort(404)

    try:
        path, content_type = store.resolve(token)
    except StorageError as exc:
        current_app.logger.info("Rejected download token: %s", exc.message)
        abort(404)

    return send_file(path, mimetype=content_type)
