"""
inventory/routes_items.py

Item CRUD and the item audit log.

- Reads require any authenticated identity
- Writes require admin_access; every write appends an audit entry
"""

from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends

from inventory import audit, items
from inventory.auth_context import get_db, get_identity
from inventory.db import DBConnection
from inventory.dependencies import require_admin
from inventory.models import AuditLogEntry, Identity, Item
from inventory.schemas import ItemCreateRequest, ItemUpdateRequest

router = APIRouter(prefix="/api/items", tags=["items"])


# Declared before /{item_id} so "item_logs" is not captured as an id
@router.get("/item_logs", response_model=List[AuditLogEntry], dependencies=[Depends(get_identity)])
def get_all_item_logs(conn: DBConnection = Depends(get_db)) -> List[AuditLogEntry]:
    return audit.list_logs(conn)


@router.get("/item_logs/{item_id}", response_model=List[AuditLogEntry], dependencies=[Depends(get_identity)])
def get_item_logs(item_id: str, conn: DBConnection = Depends(get_db)) -> List[AuditLogEntry]:
    return audit.list_logs(conn, item_id)


@router.get("", response_model=List[Item], dependencies=[Depends(get_identity)])
def list_items(conn: DBConnection = Depends(get_db)) -> List[Item]:
    return items.list_items(conn)


@router.get("/{item_id}", response_model=Item, dependencies=[Depends(get_identity)])
def get_item(item_id: str, conn: DBConnection = Depends(get_db)) -> Item:
    return items.get_item(conn, item_id)


@router.post("", response_model=Item)
def create_item(
    req: ItemCreateRequest,
    identity: Identity = Depends(require_admin()),
    conn: DBConnection = Depends(get_db),
) -> Item:
    return items.create_item(conn, identity, req.model_dump())


@router.patch("/{item_id}", response_model=Item)
def update_item(
    item_id: str,
    req: ItemUpdateRequest,
    identity: Identity = Depends(require_admin()),
    conn: DBConnection = Depends(get_db),
) -> Item:
    return items.update_item(conn, identity, item_id, req.changes())


@router.delete("/{item_id}")
def delete_item(
    item_id: str,
    identity: Identity = Depends(require_admin()),
    conn: DBConnection = Depends(get_db),
) -> Dict[str, bool]:
    items.delete_item(conn, identity, item_id)
    return {"success": True}
