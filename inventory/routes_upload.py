"""
inventory/routes_upload.py

Image uploads. Files go to the ObjectStorage on app.state.storage.

- POST  /api/upload                      -> {"url": ...}
- PATCH /api/upload/{item_id}/upload-image -> updated item (admin_access)
"""

from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Depends, File, Request, UploadFile

from inventory import items
from inventory.auth_context import get_db, get_identity, get_settings
from inventory.config import Settings
from inventory.db import DBConnection
from inventory.dependencies import require_admin
from inventory.errors import BadRequest
from inventory.models import Identity, Item
from inventory.storage import ObjectStorage, validate_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def _store(storage: ObjectStorage, file: UploadFile, max_bytes: int) -> str:
    content_type = file.content_type or ""
    validate_image(content_type)
    data = file.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise BadRequest(f"File too large (max {max_bytes} bytes)")
    return storage.upload(data, file.filename or "", content_type)


@router.post("", dependencies=[Depends(get_identity)])
def upload_file(
    file: UploadFile = File(...),
    storage: ObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> Dict[str, str]:
    return {"url": _store(storage, file, settings.max_upload_bytes)}


@router.patch("/{item_id}/upload-image", response_model=Item)
def upload_item_image(
    item_id: str,
    file: UploadFile = File(...),
    identity: Identity = Depends(require_admin()),
    storage: ObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    conn: DBConnection = Depends(get_db),
) -> Item:
    """Store an image and point the item's photo_url at it."""
    # Check first so a missing item does not leave an orphaned file
    items.get_item(conn, item_id)
    url = _store(storage, file, settings.max_upload_bytes)
    logger.info("[UPLOAD] New photo for item_id=%s", item_id)
    return items.set_item_photo(conn, identity, item_id, url)
