"""
inventory/audit.py

Append-only item change log.

append_log() only executes the INSERT; it never commits. The caller's
transaction() owns the write, so an entry lands if and only if the change it
documents lands.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from inventory.db import DBConnection, execute_query, fetch_all, new_id, now_iso
from inventory.models import AuditLogEntry


def _dump_snapshot(snapshot: Optional[Dict[str, Any]]) -> Optional[str]:
    if snapshot is None:
        return None
    return json.dumps(snapshot, default=str, sort_keys=True)


def append_log(
    conn: DBConnection,
    item_id: str,
    action: str,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    note: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> AuditLogEntry:
    entry_id = new_id()
    created_at = now_iso()
    execute_query(
        conn,
        """
        INSERT INTO item_logs (id, item_id, action, before_state, after_state, note, actor_id, created_at)
        VALUES (:id, :item_id, :action, :before_state, :after_state, :note, :actor_id, :created_at)
        """,
        {
            "id": entry_id,
            "item_id": item_id,
            "action": action,
            "before_state": _dump_snapshot(before),
            "after_state": _dump_snapshot(after),
            "note": note,
            "actor_id": actor_id,
            "created_at": created_at,
        },
    )
    return AuditLogEntry(
        id=entry_id,
        item_id=item_id,
        action=action,
        before=before,
        after=after,
        note=note,
        actor_id=actor_id,
        created_at=created_at,
    )


def list_logs(conn: DBConnection, item_id: Optional[str] = None) -> List[AuditLogEntry]:
    """
    Audit entries, newest first, with item and actor names where they still exist.

    Args:
        item_id: Restrict to one item (entries of deleted items are kept)
    """
    query = """
        SELECT l.id, l.item_id, i.name AS item_name, l.action, l.before_state, l.after_state,
               l.note, l.actor_id, u.name AS user_name, l.created_at
        FROM item_logs l
        LEFT JOIN items i ON i.id = l.item_id
        LEFT JOIN users u ON u.id = l.actor_id
    """
    params: Dict[str, Any] = {}
    if item_id is not None:
        query += " WHERE l.item_id = :item_id"
        params["item_id"] = item_id
    query += " ORDER BY l.created_at DESC"

    return [AuditLogEntry.from_row(row) for row in fetch_all(conn, query, params)]
