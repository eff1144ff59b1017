"""
inventory/borrowings.py

Borrowing engine: the pending -> approved -> returned lifecycle.

Invariants:
- Transitions only move forward, one step at a time
- A borrowing can only be created against an "active" item, for
  0 < quantity <= item.quantity
- Approval marks the item "borrowed"; return marks it "active" again
- The borrowing row, the item status and the audit entry change together
  in one transaction or not at all

Approve and return lock the borrowing and item rows (SELECT ... FOR UPDATE on
PostgreSQL, BEGIN IMMEDIATE on SQLite) and re-check state under the lock, so
two concurrent approvals against the same item cannot both succeed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from inventory.audit import append_log
from inventory.db import DBConnection, execute_query, fetch_all, fetch_one, lock_clause, new_id, now_iso, transaction
from inventory.errors import BadRequest, Forbidden, NotFound
from inventory.items import fetch_item, set_item_status
from inventory.models import AuditAction, Borrowing, BorrowingDetail, BorrowingStatus, Identity, ItemStatus
from inventory.permissions import Capability, has_permission

logger = logging.getLogger(__name__)

BORROWING_COLUMNS = """
    id, item_id, borrower_id, quantity, borrowed_at, expected_return_date,
    actual_return_date, approved_by, notes, status
"""

DETAIL_SELECT = """
    SELECT b.id, b.item_id, i.name AS item_name, b.borrower_id, u.name AS borrower_name,
           b.quantity, b.borrowed_at, b.expected_return_date, b.actual_return_date,
           b.approved_by, a.name AS approver_name, b.notes, b.status
    FROM item_borrowings b
    JOIN items i ON i.id = b.item_id
    JOIN users u ON u.id = b.borrower_id
    LEFT JOIN users a ON a.id = b.approved_by
"""


def _fetch_borrowing(conn: DBConnection, borrowing_id: str, for_update: bool = False) -> Optional[Borrowing]:
    query = f"SELECT {BORROWING_COLUMNS} FROM item_borrowings WHERE id = :id"
    if for_update:
        query += lock_clause(conn)
    row = fetch_one(conn, query, {"id": borrowing_id})
    return Borrowing(**row) if row else None


def create_borrowing(
    conn: DBConnection,
    identity: Identity,
    item_id: str,
    expected_return_date: datetime,
    quantity: Optional[int] = None,
    notes: Optional[str] = None,
) -> Borrowing:
    """
    Request to borrow an item. The new borrowing starts out "pending".

    Checks, first failure wins:
        1. caller holds borrow_items          -> Forbidden
        2. item exists                        -> NotFound
        3. item status is "active"            -> BadRequest
        4. 0 < quantity (default 1) <= stock  -> BadRequest

    The insert and its "borrowing_requested" audit entry commit together.
    """
    if not has_permission(conn, identity, Capability.BORROW_ITEMS):
        raise Forbidden("You don't have permission to borrow items")

    quantity = 1 if quantity is None else quantity

    with transaction(conn):
        item = fetch_item(conn, item_id, for_update=True)
        if item is None:
            raise NotFound("Item not found")
        if item.status != ItemStatus.ACTIVE:
            raise BadRequest("Item is not available for borrowing")
        if quantity <= 0 or quantity > item.quantity:
            raise BadRequest("Invalid quantity")

        borrowing = Borrowing(
            id=new_id(),
            item_id=item_id,
            borrower_id=identity.user_id,
            quantity=quantity,
            borrowed_at=now_iso(),
            expected_return_date=expected_return_date.isoformat(),
            notes=notes,
            status=BorrowingStatus.PENDING,
        )
        execute_query(
            conn,
            """
            INSERT INTO item_borrowings (id, item_id, borrower_id, quantity, borrowed_at, expected_return_date, notes, status)
            VALUES (:id, :item_id, :borrower_id, :quantity, :borrowed_at, :expected_return_date, :notes, :status)
            """,
            borrowing.model_dump(exclude={"actual_return_date", "approved_by"}),
        )
        append_log(
            conn,
            item_id,
            AuditAction.BORROWING_REQUESTED,
            note=f"Borrowing requested: {quantity} units, expected return: {borrowing.expected_return_date}",
            actor_id=identity.user_id,
        )

    logger.info(
        "[BORROWINGS] Requested borrowing_id=%s item_id=%s quantity=%s by user_id=%s",
        borrowing.id, item_id, quantity, identity.user_id,
    )
    return borrowing


def approve_borrowing(conn: DBConnection, identity: Identity, borrowing_id: str) -> Borrowing:
    """
    Approve a pending borrowing and mark its item "borrowed".

    Raises:
        Forbidden: Caller lacks approve_borrowings
        NotFound: No such borrowing
        BadRequest: Borrowing not pending, or item no longer active
        InternalError: Storage failure (everything rolled back)
    """
    if not has_permission(conn, identity, Capability.APPROVE_BORROWINGS):
        raise Forbidden("You don't have permission to approve borrowings")

    with transaction(conn):
        borrowing = _fetch_borrowing(conn, borrowing_id, for_update=True)
        if borrowing is None:
            raise NotFound("Borrowing not found")
        if borrowing.status != BorrowingStatus.PENDING:
            raise BadRequest("Borrowing is not in pending status")

        item = fetch_item(conn, borrowing.item_id, for_update=True)
        if item is None or item.status != ItemStatus.ACTIVE:
            raise BadRequest("Item is not available for borrowing")

        execute_query(
            conn,
            "UPDATE item_borrowings SET status = :status, approved_by = :approved_by WHERE id = :id",
            {"status": BorrowingStatus.APPROVED, "approved_by": identity.user_id, "id": borrowing_id},
        )
        set_item_status(conn, borrowing.item_id, ItemStatus.BORROWED)
        append_log(
            conn,
            borrowing.item_id,
            AuditAction.BORROWING_APPROVED,
            note=f"Borrowing approved for {borrowing.quantity} units",
            actor_id=identity.user_id,
        )
        updated = _fetch_borrowing(conn, borrowing_id)

    logger.info("[BORROWINGS] Approved borrowing_id=%s by user_id=%s", borrowing_id, identity.user_id)
    return updated


def return_borrowing(conn: DBConnection, identity: Identity, borrowing_id: str) -> Borrowing:
    """
    Close an approved borrowing and put its item back to "active".

    Only the borrower, or a holder of manage_borrowings, may return.

    Raises:
        NotFound: No such borrowing
        BadRequest: Borrowing not approved
        Forbidden: Caller is neither the borrower nor a manager
        InternalError: Storage failure (everything rolled back)
    """
    with transaction(conn):
        borrowing = _fetch_borrowing(conn, borrowing_id, for_update=True)
        if borrowing is None:
            raise NotFound("Borrowing not found")
        if borrowing.status != BorrowingStatus.APPROVED:
            raise BadRequest("Borrowing is not in approved status")

        is_borrower = borrowing.borrower_id == identity.user_id
        if not is_borrower and not has_permission(conn, identity, Capability.MANAGE_BORROWINGS):
            raise Forbidden("You don't have permission to return this item")

        # Lock the item row too; status is overwritten below
        fetch_item(conn, borrowing.item_id, for_update=True)

        execute_query(
            conn,
            "UPDATE item_borrowings SET status = :status, actual_return_date = :returned_at WHERE id = :id",
            {"status": BorrowingStatus.RETURNED, "returned_at": now_iso(), "id": borrowing_id},
        )
        set_item_status(conn, borrowing.item_id, ItemStatus.ACTIVE)
        append_log(
            conn,
            borrowing.item_id,
            AuditAction.ITEM_RETURNED,
            note=f"Item returned: {borrowing.quantity} units",
            actor_id=identity.user_id,
        )
        updated = _fetch_borrowing(conn, borrowing_id)

    logger.info("[BORROWINGS] Returned borrowing_id=%s by user_id=%s", borrowing_id, identity.user_id)
    return updated


def list_borrowings(conn: DBConnection, identity: Identity) -> List[BorrowingDetail]:
    """All borrowings for view_all_borrowings holders, otherwise the caller's own. Newest first."""
    if has_permission(conn, identity, Capability.VIEW_ALL_BORROWINGS):
        rows = fetch_all(conn, DETAIL_SELECT + " ORDER BY b.borrowed_at DESC")
    else:
        rows = fetch_all(
            conn,
            DETAIL_SELECT + " WHERE b.borrower_id = :borrower_id ORDER BY b.borrowed_at DESC",
            {"borrower_id": identity.user_id},
        )
    return [BorrowingDetail(**row) for row in rows]


def get_borrowing(conn: DBConnection, identity: Identity, borrowing_id: str) -> BorrowingDetail:
    """
    One borrowing with names, under the same visibility rule as list_borrowings.

    A borrowing the caller may not see is reported as NotFound, same as a missing one.
    """
    query = DETAIL_SELECT + " WHERE b.id = :id"
    params = {"id": borrowing_id}
    if not has_permission(conn, identity, Capability.VIEW_ALL_BORROWINGS):
        query += " AND b.borrower_id = :borrower_id"
        params["borrower_id"] = identity.user_id

    row = fetch_one(conn, query, params)
    if row is None:
        raise NotFound("Borrowing not found")
    return BorrowingDetail(**row)
