"""
inventory/permissions.py

Permission resolver: role -> permission-set lookups for an identity.

identity -> users.role_id -> role_permissions -> permissions.name

Every check fails closed: an unknown user, a user without a role, an empty id
or a database error all answer "no permission". Nothing here raises.
"""

from __future__ import annotations

import logging
from typing import Iterable, Set

from inventory.db import DB_ERRORS, DBConnection, fetch_all, fetch_one
from inventory.models import Identity

logger = logging.getLogger(__name__)


class Capability:
    """Permission names used by the application."""
    BORROW_ITEMS = "borrow_items"
    APPROVE_BORROWINGS = "approve_borrowings"
    MANAGE_BORROWINGS = "manage_borrowings"
    VIEW_ALL_BORROWINGS = "view_all_borrowings"
    MANAGE_ROLES = "manage_roles"
    MANAGE_PERMISSIONS = "manage_permissions"
    ADMIN_ACCESS = "admin_access"


def has_permission(conn: DBConnection, identity: Identity, permission_name: str) -> bool:
    """
    Check whether the identity's role grants a permission.

    Returns:
        True only if the user exists, has a role, and that role maps to
        permission_name. False on any lookup failure.
    """
    user_id = identity.user_id if identity else None
    if not user_id or not permission_name:
        return False

    try:
        row = fetch_one(
            conn,
            """
            SELECT 1 AS granted
            FROM users u
            JOIN role_permissions rp ON rp.role_id = u.role_id
            JOIN permissions p ON p.id = rp.permission_id
            WHERE u.id = :user_id AND p.name = :permission_name
            """,
            {"user_id": user_id, "permission_name": permission_name},
        )
    except DB_ERRORS as e:
        logger.warning("[PERMS] Lookup failed, denying %s for user_id=%s: %s", permission_name, user_id, e)
        return False

    return row is not None


def has_any_permission(conn: DBConnection, identity: Identity, permission_names: Iterable[str]) -> bool:
    """True if at least one permission is held (stops at the first hit)."""
    for permission_name in permission_names:
        if has_permission(conn, identity, permission_name):
            return True
    return False


def has_all_permissions(conn: DBConnection, identity: Identity, permission_names: Iterable[str]) -> bool:
    """True if every permission is held (stops at the first miss)."""
    for permission_name in permission_names:
        if not has_permission(conn, identity, permission_name):
            return False
    return True


def is_admin(conn: DBConnection, identity: Identity) -> bool:
    return has_permission(conn, identity, Capability.ADMIN_ACCESS)


def get_user_permissions(conn: DBConnection, user_id: str) -> Set[str]:
    """All permission names granted to a user; empty set on any failure."""
    if not user_id:
        return set()
    try:
        rows = fetch_all(
            conn,
            """
            SELECT p.name
            FROM users u
            JOIN role_permissions rp ON rp.role_id = u.role_id
            JOIN permissions p ON p.id = rp.permission_id
            WHERE u.id = :user_id
            """,
            {"user_id": user_id},
        )
    except DB_ERRORS as e:
        logger.warning("[PERMS] Permission set lookup failed for user_id=%s: %s", user_id, e)
        return set()
    return {row["name"] for row in rows}
