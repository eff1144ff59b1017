"""
inventory/routes_borrowings.py

Borrowing lifecycle endpoints. Permission checks happen inside the engine
(inventory.borrowings) because some depend on the row being acted on
(e.g. the borrower may return their own borrowing).
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from inventory import borrowings
from inventory.auth_context import get_db, get_identity
from inventory.db import DBConnection
from inventory.models import Borrowing, BorrowingDetail, Identity
from inventory.schemas import BorrowingCreateRequest

router = APIRouter(prefix="/api/borrowings", tags=["borrowings"])


@router.get("", response_model=List[BorrowingDetail])
def list_borrowings(
    identity: Identity = Depends(get_identity),
    conn: DBConnection = Depends(get_db),
) -> List[BorrowingDetail]:
    """All borrowings with view_all_borrowings, otherwise only the caller's."""
    return borrowings.list_borrowings(conn, identity)


@router.get("/{borrowing_id}", response_model=BorrowingDetail)
def get_borrowing(
    borrowing_id: str,
    identity: Identity = Depends(get_identity),
    conn: DBConnection = Depends(get_db),
) -> BorrowingDetail:
    return borrowings.get_borrowing(conn, identity, borrowing_id)


@router.post("", response_model=Borrowing)
def create_borrowing(
    req: BorrowingCreateRequest,
    identity: Identity = Depends(get_identity),
    conn: DBConnection = Depends(get_db),
) -> Borrowing:
    return borrowings.create_borrowing(
        conn,
        identity,
        item_id=req.item_id,
        expected_return_date=req.expected_return_date,
        quantity=req.quantity,
        notes=req.notes,
    )


@router.patch("/{borrowing_id}/approve", response_model=Borrowing)
def approve_borrowing(
    borrowing_id: str,
    identity: Identity = Depends(get_identity),
    conn: DBConnection = Depends(get_db),
) -> Borrowing:
    return borrowings.approve_borrowing(conn, identity, borrowing_id)


@router.patch("/{borrowing_id}/return", response_model=Borrowing)
def return_borrowing(
    borrowing_id: str,
    identity: Identity = Depends(get_identity),
    conn: DBConnection = Depends(get_db),
) -> Borrowing:
    return borrowings.return_borrowing(conn, identity, borrowing_id)
