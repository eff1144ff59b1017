"""
inventory/storage.py

Object storage for uploaded item photos.

ObjectStorage is the collaborator the upload routes depend on; the app ships
LocalFileStorage, which writes into settings.upload_dir (mounted at /uploads).
Tests and other deployments can hand create_app() a different implementation.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Protocol

from inventory.config import Settings
from inventory.errors import BadRequest, InternalError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class ObjectStorage(Protocol):
    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Store the bytes and return a public URL for them."""
        ...


def validate_image(content_type: str) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise BadRequest("Unsupported file type. Please upload an image (jpg, png, webp, gif).")


class LocalFileStorage:
    """Writes uploads under one directory with generated names."""

    def __init__(self, settings: Settings):
        self.directory = Path(settings.upload_dir)
        self.base_url = settings.base_url.rstrip("/")

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        validate_image(content_type)

        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in (".jpg", ".jpeg", ".png", ".webp", ".gif"):
            ext = ALLOWED_IMAGE_TYPES[content_type]
        stored_name = f"{uuid.uuid4().hex}{ext}"
        target = self.directory / stored_name

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as output:
                output.write(data)
        except OSError as e:
            logger.error("[UPLOAD] Failed to write %s: %s", target, e)
            raise InternalError(f"Failed to store file: {e}") from e

        logger.info("[UPLOAD] Stored %s (%d bytes)", stored_name, len(data))
        return f"{self.base_url}/uploads/{stored_name}"
