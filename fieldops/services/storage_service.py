"""
Document Store — binary object storage for PDFs, blade photos and
certification scans.

Objects live under DOCUMENT_STORAGE_DIR as ``<folder>/<name>_<stamp>_<id>.<ext>``.
The returned key is the durable reference stored on records; callers never
build filesystem paths themselves.

Usage:
    from fieldops.services import storage_service

    key = storage_service.put(pdf_bytes, "silica_plan_J-100.pdf", folder="documents/12")
    data = storage_service.get(key)
    storage_service.delete(key)
"""

import logging
import mimetypes
import os
from datetime import datetime, timezone
from uuid import uuid4

from flask import current_app
from werkzeug.utils import secure_filename

from fieldops.core.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/heic"})
ALLOWED_UPLOAD_TYPES = ALLOWED_IMAGE_TYPES | {"application/pdf"}


class StorageError(Exception):
    """Raised when the underlying filesystem write/read fails."""


def _root() -> str:
    return current_app.config["DOCUMENT_STORAGE_DIR"]


def _object_key(folder: str, filename: str) -> str:
    """Unique key with folder structure; folder segments are sanitised too."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    unique_id = uuid4().hex[:8]
    safe_name = secure_filename(filename) or "file"
    safe_folder = "/".join(secure_filename(p) for p in folder.split("/") if secure_filename(p))

    name_parts = safe_name.rsplit(".", 1)
    if len(name_parts) == 2:
        name, ext = name_parts
        key = f"{name}_{timestamp}_{unique_id}.{ext}"
    else:
        key = f"{safe_name}_{timestamp}_{unique_id}"
    return f"{safe_folder}/{key}" if safe_folder else key


def _path_for(key: str) -> str:
    root = os.path.abspath(_root())
    path = os.path.abspath(os.path.join(root, key))
    if not path.startswith(root + os.sep):
        raise NotFoundError(resource="StoredObject", resource_id=key)
    return path


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


def put(content: bytes, filename: str, folder: str = "general") -> str:
    """Store ``content`` and return its key."""
    key = _object_key(folder, filename)
    path = _path_for(key)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
    except OSError as exc:
        logger.error("Document store write failed key=%s: %s", key, exc)
        raise StorageError(str(exc)) from exc
    logger.info("Stored object %s (%d bytes)", key, len(content))
    return key


def get(key: str) -> bytes:
    path = _path_for(key)
    if not os.path.isfile(path):
        raise NotFoundError(resource="StoredObject", resource_id=key)
    with open(path, "rb") as f:
        return f.read()


def delete(key: str) -> bool:
    """Remove an object; returns False if it was already gone."""
    path = _path_for(key)
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    logger.info("Deleted object %s", key)
    return True


def exists(key: str) -> bool:
    return os.path.isfile(_path_for(key))


def put_upload(file_storage, folder: str, *, allowed=ALLOWED_UPLOAD_TYPES, field: str = "file") -> str:
    """Validate and store a werkzeug FileStorage from a multipart request."""
    if file_storage is None or not file_storage.filename:
        raise ValidationError(f"{field} upload is required", details={field: "required"})
    content_type = file_storage.mimetype or guess_content_type(file_storage.filename)
    if content_type not in allowed:
        raise ValidationError(
            f"{field} must be one of {', '.join(sorted(allowed))}",
            details={field: "unsupported_type"},
        )
    content = file_storage.read()
    if not content:
        raise ValidationError(f"{field} upload is empty", details={field: "empty"})
    return put(content, file_storage.filename, folder=folder)


def check_writable() -> dict:
    """Health probe for the storage directory."""
    root = _root()
    try:
        os.makedirs(root, exist_ok=True)
    except OSError as exc:
        return {"status": "error", "detail": str(exc)}
    if not os.access(root, os.W_OK):
        return {"status": "error", "detail": "storage directory is not writable"}
    return {"status": "ok", "path": root}
