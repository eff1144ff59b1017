"""
inventory/items.py

Item directory: item records, their lookup references and their status.

Direct CRUD edits run in their own transaction and append a before/after audit
entry in that same transaction. set_item_status() is the exception: it is only
called by the borrowing engine from inside the engine's transaction, which
writes the audit entry for the whole transition.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from inventory.audit import append_log
from inventory.db import DBConnection, execute_query, fetch_all, fetch_one, lock_clause, new_id, now_iso, transaction
from inventory.errors import BadRequest, InternalError, NotFound
from inventory.models import AuditAction, BorrowingStatus, Identity, Item, ItemStatus

logger = logging.getLogger(__name__)

# Writable column -> lookup table it references
REFERENCE_COLUMNS: Dict[str, str] = {
    "category_id": "categories",
    "condition_id": "conditions",
    "location_id": "locations",
    "source_id": "item_sources",
    "procurement_id": "procurement_statuses",
    "status_id": "item_statuses",
}

EDITABLE_COLUMNS = (
    "name",
    "category_id",
    "quantity",
    "condition_id",
    "location_id",
    "photo_url",
    "source_id",
    "donor_id",
    "procurement_id",
    "status_id",
)

ITEM_SELECT = """
    SELECT i.id, i.name, i.category_id, i.quantity, i.condition_id, i.location_id,
           i.photo_url, i.source_id, i.donor_id, i.procurement_id, i.status_id,
           s.name AS status, i.created_at
    FROM items i
    JOIN item_statuses s ON s.id = i.status_id
"""


def fetch_item(conn: DBConnection, item_id: str, for_update: bool = False) -> Optional[Item]:
    """
    Load one item, or None.

    for_update=True adds the row lock and must only be used inside transaction().
    """
    query = ITEM_SELECT + " WHERE i.id = :id"
    if for_update:
        query += lock_clause(conn, of="i")
    row = fetch_one(conn, query, {"id": item_id})
    return Item(**row) if row else None


def get_item(conn: DBConnection, item_id: str) -> Item:
    item = fetch_item(conn, item_id)
    if item is None:
        raise NotFound("Item not found")
    return item


def list_items(conn: DBConnection) -> List[Item]:
    rows = fetch_all(conn, ITEM_SELECT + " ORDER BY i.created_at DESC")
    return [Item(**row) for row in rows]


def _status_id(conn: DBConnection, status_name: str) -> Optional[str]:
    row = fetch_one(conn, "SELECT id FROM item_statuses WHERE name = :name", {"name": status_name})
    return row["id"] if row else None


def _validate_references(conn: DBConnection, fields: Mapping[str, Any]) -> None:
    """Every lookup id being written must exist in its table."""
    for column, table in REFERENCE_COLUMNS.items():
        value = fields.get(column)
        if value is None:
            continue
        if not fetch_one(conn, f"SELECT id FROM {table} WHERE id = :id", {"id": value}):
            raise BadRequest(f"Invalid {column}: {value}")


def _reject_borrowed(conn: DBConnection, status_id: str) -> None:
    target = fetch_one(conn, "SELECT name FROM item_statuses WHERE id = :id", {"id": status_id})
    if target["name"] == ItemStatus.BORROWED:
        raise BadRequest("Status 'borrowed' is only set by approving a borrowing")


def _check_status_editable(conn: DBConnection, item_id: str, status_id: str) -> None:
    """
    "borrowed" is owned by the borrowing engine: it cannot be set by hand, and an
    item with an approved borrowing keeps its status until that borrowing is returned.
    """
    _reject_borrowed(conn, status_id)

    on_loan = fetch_one(
        conn,
        "SELECT 1 AS found FROM item_borrowings WHERE item_id = :item_id AND status = :status LIMIT 1",
        {"item_id": item_id, "status": BorrowingStatus.APPROVED},
    )
    if on_loan:
        raise BadRequest("Item has an approved borrowing; return it before changing status")


def create_item(conn: DBConnection, identity: Identity, fields: Mapping[str, Any]) -> Item:
    """
    Insert an item and its "create" audit entry atomically.

    Args:
        fields: name, category_id, condition_id, source_id and optional columns;
            quantity defaults to 1 and status_id to the "active" status

    Raises:
        BadRequest: Negative quantity, unknown lookup id or status "borrowed"
    """
    values = {column: fields.get(column) for column in EDITABLE_COLUMNS}
    if values["quantity"] is None:
        values["quantity"] = 1
    if values["quantity"] < 0:
        raise BadRequest("Invalid quantity")

    with transaction(conn):
        if values["status_id"] is None:
            values["status_id"] = _status_id(conn, ItemStatus.ACTIVE)
            if values["status_id"] is None:
                raise InternalError("Item status 'active' is not configured")
        _validate_references(conn, values)
        _reject_borrowed(conn, values["status_id"])

        values["id"] = new_id()
        values["created_at"] = now_iso()
        columns = ", ".join(values)
        placeholders = ", ".join(f":{column}" for column in values)
        execute_query(conn, f"INSERT INTO items ({columns}) VALUES ({placeholders})", values)

        item = fetch_item(conn, values["id"])
        append_log(conn, item.id, AuditAction.CREATE, after=item.model_dump(), actor_id=identity.user_id)

    logger.info("[ITEMS] Created item_id=%s by user_id=%s", item.id, identity.user_id)
    return item


def update_item(conn: DBConnection, identity: Identity, item_id: str, changes: Mapping[str, Any]) -> Item:
    """
    Apply a partial update and record an "update" audit entry with both snapshots.

    Raises:
        BadRequest: No editable fields, negative quantity, unknown lookup id, or a
            status change to "borrowed" or while a borrowing is approved
        NotFound: Item does not exist
    """
    updates = {column: changes[column] for column in EDITABLE_COLUMNS if changes.get(column) is not None}
    if not updates:
        raise BadRequest("No fields to update")
    if updates.get("quantity", 0) < 0:
        raise BadRequest("Invalid quantity")

    with transaction(conn):
        before = fetch_item(conn, item_id, for_update=True)
        if before is None:
            raise NotFound("Item not found")
        _validate_references(conn, updates)
        if updates.get("status_id", before.status_id) != before.status_id:
            _check_status_editable(conn, item_id, updates["status_id"])

        assignments = ", ".join(f"{column} = :{column}" for column in updates)
        execute_query(conn, f"UPDATE items SET {assignments} WHERE id = :item_id", {**updates, "item_id": item_id})

        after = fetch_item(conn, item_id)
        append_log(
            conn,
            item_id,
            AuditAction.UPDATE,
            before=before.model_dump(),
            after=after.model_dump(),
            actor_id=identity.user_id,
        )

    logger.info("[ITEMS] Updated item_id=%s fields=%s by user_id=%s", item_id, sorted(updates), identity.user_id)
    return after


def delete_item(conn: DBConnection, identity: Identity, item_id: str) -> None:
    """
    Hard-delete an item; its audit history is kept.

    Raises:
        NotFound: Item does not exist
        BadRequest: Item still has borrowing records
    """
    with transaction(conn):
        before = fetch_item(conn, item_id, for_update=True)
        if before is None:
            raise NotFound("Item not found")

        in_use = fetch_one(
            conn,
            "SELECT 1 AS found FROM item_borrowings WHERE item_id = :item_id LIMIT 1",
            {"item_id": item_id},
        )
        if in_use:
            raise BadRequest("Item has borrowing records and cannot be deleted")

        execute_query(conn, "DELETE FROM items WHERE id = :id", {"id": item_id})
        append_log(conn, item_id, AuditAction.DELETE, before=before.model_dump(), actor_id=identity.user_id)

    logger.info("[ITEMS] Deleted item_id=%s by user_id=%s", item_id, identity.user_id)


def set_item_status(conn: DBConnection, item_id: str, status_name: str) -> Item:
    """
    Point an item at a named status. Caller owns the transaction.

    Raises:
        InternalError: status_name is not a configured item status
        NotFound: Item does not exist
    """
    status_id = _status_id(conn, status_name)
    if status_id is None:
        raise InternalError(f"Item status '{status_name}' is not configured")

    result = execute_query(
        conn,
        "UPDATE items SET status_id = :status_id WHERE id = :id",
        {"status_id": status_id, "id": item_id},
    )
    if result.rowcount == 0:
        raise NotFound("Item not found")

    logger.debug("[ITEMS] item_id=%s status -> %s", item_id, status_name)
    return get_item(conn, item_id)


def set_item_photo(conn: DBConnection, identity: Identity, item_id: str, photo_url: str) -> Item:
    """Store a new photo reference (audited as an update)."""
    return update_item(conn, identity, item_id, {"photo_url": photo_url})
