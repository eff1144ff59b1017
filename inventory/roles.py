"""
inventory/roles.py

Administration of permissions and of which roles hold them.
Read-side checks live in inventory.permissions.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from inventory.db import DBConnection, execute_query, fetch_all, fetch_one, new_id, transaction
from inventory.errors import BadRequest, NotFound
from inventory.models import Permission, RolePermission

logger = logging.getLogger(__name__)


def list_permissions(conn: DBConnection) -> List[Permission]:
    rows = fetch_all(conn, "SELECT id, name, description FROM permissions ORDER BY name")
    return [Permission(**row) for row in rows]


def _get_permission(conn: DBConnection, permission_id: str) -> Permission:
    row = fetch_one(conn, "SELECT id, name, description FROM permissions WHERE id = :id", {"id": permission_id})
    if row is None:
        raise NotFound("Not found")
    return Permission(**row)


def create_permission(conn: DBConnection, name: str, description: Optional[str] = None) -> Permission:
    permission = Permission(id=new_id(), name=name, description=description)
    with transaction(conn):
        if fetch_one(conn, "SELECT id FROM permissions WHERE name = :name", {"name": name}):
            raise BadRequest(f"Permission already exists: {name}")
        execute_query(
            conn,
            "INSERT INTO permissions (id, name, description) VALUES (:id, :name, :description)",
            permission.model_dump(),
        )
    logger.info("[PERMS] Created permission %s", name)
    return permission


def update_permission(conn: DBConnection, permission_id: str, changes: Mapping[str, Any]) -> Permission:
    updates = {column: changes[column] for column in ("name", "description") if changes.get(column) is not None}
    if not updates:
        raise BadRequest("No fields to update")

    with transaction(conn):
        _get_permission(conn, permission_id)
        if "name" in updates:
            taken = fetch_one(
                conn,
                "SELECT id FROM permissions WHERE name = :name AND id <> :id",
                {"name": updates["name"], "id": permission_id},
            )
            if taken:
                raise BadRequest(f"Permission already exists: {updates['name']}")
        assignments = ", ".join(f"{column} = :{column}" for column in updates)
        execute_query(
            conn,
            f"UPDATE permissions SET {assignments} WHERE id = :permission_id",
            {**updates, "permission_id": permission_id},
        )
    return _get_permission(conn, permission_id)


def delete_permission(conn: DBConnection, permission_id: str) -> None:
    """Deleting a permission also drops it from every role (cascade)."""
    with transaction(conn):
        result = execute_query(conn, "DELETE FROM permissions WHERE id = :id", {"id": permission_id})
        if result.rowcount == 0:
            raise NotFound("Not found")
    logger.info("[PERMS] Deleted permission id=%s", permission_id)


def list_role_permissions(conn: DBConnection, role_id: str) -> List[Permission]:
    rows = fetch_all(
        conn,
        """
        SELECT p.id, p.name, p.description
        FROM permissions p
        JOIN role_permissions rp ON rp.permission_id = p.id
        WHERE rp.role_id = :role_id
        ORDER BY p.name
        """,
        {"role_id": role_id},
    )
    return [Permission(**row) for row in rows]


def assign_permission(conn: DBConnection, role_id: str, permission_id: str) -> RolePermission:
    """
    Grant a permission to a role.

    Raises:
        BadRequest: Already assigned, or unknown role/permission
    """
    mapping = RolePermission(id=new_id(), role_id=role_id, permission_id=permission_id)
    with transaction(conn):
        existing = fetch_one(
            conn,
            "SELECT 1 AS found FROM role_permissions WHERE role_id = :role_id AND permission_id = :permission_id",
            {"role_id": role_id, "permission_id": permission_id},
        )
        if existing:
            raise BadRequest("This permission is already assigned to the role")
        if not fetch_one(conn, "SELECT id FROM user_roles WHERE id = :id", {"id": role_id}):
            raise BadRequest(f"Invalid role_id: {role_id}")
        if not fetch_one(conn, "SELECT id FROM permissions WHERE id = :id", {"id": permission_id}):
            raise BadRequest(f"Invalid permission_id: {permission_id}")

        execute_query(
            conn,
            "INSERT INTO role_permissions (id, role_id, permission_id) VALUES (:id, :role_id, :permission_id)",
            mapping.model_dump(),
        )

    logger.info("[PERMS] Assigned permission_id=%s to role_id=%s", permission_id, role_id)
    return mapping


def revoke_permission(conn: DBConnection, role_id: str, permission_id: str) -> None:
    with transaction(conn):
        result = execute_query(
            conn,
            "DELETE FROM role_permissions WHERE role_id = :role_id AND permission_id = :permission_id",
            {"role_id": role_id, "permission_id": permission_id},
        )
        if result.rowcount == 0:
            raise NotFound("Role-permission mapping not found")

    logger.info("[PERMS] Revoked permission_id=%s from role_id=%s", permission_id, role_id)
