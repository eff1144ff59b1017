"""
inventory/routes_lookup.py

Reference-table endpoints under /api/lookup/{table}, where table is one of
inventory.lookup.LOOKUP_TABLES (categories, item-sources, conditions,
procurement-statuses, user-roles, locations, item-statuses).

Reads: any authenticated identity. Writes: admin_access.
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from inventory import lookup
from inventory.auth_context import get_db, get_identity
from inventory.db import DBConnection
from inventory.dependencies import require_admin
from inventory.errors import NotFound
from inventory.lookup import LookupTable
from inventory.schemas import LookupCreateRequest, LookupUpdateRequest

router = APIRouter(prefix="/api/lookup", tags=["lookup"])


def resolve_table(table: str) -> LookupTable:
    try:
        return lookup.LOOKUP_TABLES[table]
    except KeyError:
        raise NotFound(f"Unknown lookup table: {table}")


@router.get("/{table}", dependencies=[Depends(get_identity)])
def list_entries(
    lookup_table: LookupTable = Depends(resolve_table),
    conn: DBConnection = Depends(get_db),
) -> List[Dict[str, Any]]:
    return lookup.list_entries(conn, lookup_table)


@router.post("/{table}", dependencies=[Depends(require_admin())])
def create_entry(
    req: LookupCreateRequest,
    lookup_table: LookupTable = Depends(resolve_table),
    conn: DBConnection = Depends(get_db),
) -> Dict[str, Any]:
    return lookup.create_entry(conn, lookup_table, req.model_dump())


@router.patch("/{table}/{entry_id}", dependencies=[Depends(require_admin())])
def update_entry(
    entry_id: str,
    req: LookupUpdateRequest,
    lookup_table: LookupTable = Depends(resolve_table),
    conn: DBConnection = Depends(get_db),
) -> Dict[str, Any]:
    return lookup.update_entry(conn, lookup_table, entry_id, req.changes())


@router.delete("/{table}/{entry_id}", dependencies=[Depends(require_admin())])
def delete_entry(
    entry_id: str,
    lookup_table: LookupTable = Depends(resolve_table),
    conn: DBConnection = Depends(get_db),
) -> Dict[str, bool]:
    lookup.delete_entry(conn, lookup_table, entry_id)
    return {"success": True}
