from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


# Status constants
class BorrowingStatus:
    """Borrowing lifecycle: pending -> approved -> returned (forward only)."""
    PENDING = "pending"
    APPROVED = "approved"
    RETURNED = "returned"


class ItemStatus:
    """Names seeded into item_statuses."""
    ACTIVE = "active"
    BORROWED = "borrowed"
    MAINTENANCE = "maintenance"
    DAMAGED = "damaged"
    LOST = "lost"


class AuditAction:
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BORROWING_REQUESTED = "borrowing_requested"
    BORROWING_APPROVED = "borrowing_approved"
    ITEM_RETURNED = "item_returned"


# Models
class Identity(BaseModel):
    """Authenticated caller, derived from a verified session token."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: str = ""


class Item(BaseModel):
    id: str
    name: str
    category_id: str
    quantity: int
    condition_id: str
    location_id: Optional[str] = None
    photo_url: Optional[str] = None
    source_id: str
    donor_id: Optional[str] = None
    procurement_id: Optional[str] = None
    status_id: str
    status: str
    created_at: str


class Borrowing(BaseModel):
    id: str
    item_id: str
    borrower_id: str
    quantity: int
    borrowed_at: str
    expected_return_date: str
    actual_return_date: Optional[str] = None
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    status: str


class BorrowingDetail(Borrowing):
    """Borrowing joined with item, borrower and approver names."""
    item_name: str
    borrower_name: str
    approver_name: Optional[str] = None


class AuditLogEntry(BaseModel):
    id: str
    item_id: str
    item_name: Optional[str] = None
    action: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    note: Optional[str] = None
    actor_id: Optional[str] = None
    user_name: Optional[str] = None
    created_at: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AuditLogEntry":
        return cls(
            id=row["id"],
            item_id=row["item_id"],
            item_name=row.get("item_name"),
            action=row["action"],
            before=_load_snapshot(row.get("before_state")),
            after=_load_snapshot(row.get("after_state")),
            note=row.get("note"),
            actor_id=row.get("actor_id"),
            user_name=row.get("user_name"),
            created_at=row["created_at"],
        )


class User(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    avatar_url: Optional[str] = None
    role_id: Optional[str] = None
    role: Optional[str] = None
    created_at: str


class Permission(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class RolePermission(BaseModel):
    id: str
    role_id: str
    permission_id: str


def _load_snapshot(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
