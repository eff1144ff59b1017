"""
inventory/routes_permissions.py

Permission catalogue and role -> permission assignments.

- Listing permissions / a role's permissions: any authenticated identity
- Creating, renaming, deleting permissions: manage_permissions
- Assigning / revoking on roles: manage_roles
"""

from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends

from inventory import roles
from inventory.auth_context import get_db, get_identity
from inventory.db import DBConnection
from inventory.dependencies import require_permission
from inventory.models import Permission, RolePermission
from inventory.permissions import Capability
from inventory.schemas import PermissionCreateRequest, PermissionUpdateRequest, RolePermissionRequest

router = APIRouter(prefix="/api/permissions", tags=["permissions"])

manage_permissions = require_permission(Capability.MANAGE_PERMISSIONS)
manage_roles = require_permission(Capability.MANAGE_ROLES)


@router.get("", response_model=List[Permission], dependencies=[Depends(get_identity)])
def list_permissions(conn: DBConnection = Depends(get_db)) -> List[Permission]:
    return roles.list_permissions(conn)


@router.post("", response_model=Permission, dependencies=[Depends(manage_permissions)])
def create_permission(req: PermissionCreateRequest, conn: DBConnection = Depends(get_db)) -> Permission:
    return roles.create_permission(conn, req.name, req.description)


# Role routes come before /{permission_id} so "role" is never read as an id
@router.get("/role/{role_id}", response_model=List[Permission], dependencies=[Depends(get_identity)])
def get_role_permissions(role_id: str, conn: DBConnection = Depends(get_db)) -> List[Permission]:
    return roles.list_role_permissions(conn, role_id)


@router.post("/role", response_model=RolePermission, dependencies=[Depends(manage_roles)])
def assign_permission_to_role(req: RolePermissionRequest, conn: DBConnection = Depends(get_db)) -> RolePermission:
    return roles.assign_permission(conn, req.role_id, req.permission_id)


@router.delete("/role/{role_id}/permission/{permission_id}", dependencies=[Depends(manage_roles)])
def remove_permission_from_role(
    role_id: str,
    permission_id: str,
    conn: DBConnection = Depends(get_db),
) -> Dict[str, bool]:
    roles.revoke_permission(conn, role_id, permission_id)
    return {"success": True}


@router.patch("/{permission_id}", response_model=Permission, dependencies=[Depends(manage_permissions)])
def update_permission(
    permission_id: str,
    req: PermissionUpdateRequest,
    conn: DBConnection = Depends(get_db),
) -> Permission:
    return roles.update_permission(conn, permission_id, req.changes())


@router.delete("/{permission_id}", dependencies=[Depends(manage_permissions)])
def delete_permission(permission_id: str, conn: DBConnection = Depends(get_db)) -> Dict[str, bool]:
    roles.delete_permission(conn, permission_id)
    return {"success": True}
