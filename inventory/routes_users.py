"""
inventory/routes_users.py

User administration (admin_access) plus self-service profile updates.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from inventory import users
from inventory.auth_context import get_db, get_optional_identity
from inventory.db import DBConnection
from inventory.dependencies import require_admin
from inventory.models import Identity, User
from inventory.schemas import UserCreateRequest, UserUpdateRequest

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=List[User], dependencies=[Depends(require_admin())])
def list_users(conn: DBConnection = Depends(get_db)) -> List[User]:
    return users.list_users(conn)


@router.post("", response_model=User, dependencies=[Depends(require_admin())])
def create_user(req: UserCreateRequest, conn: DBConnection = Depends(get_db)) -> User:
    return users.create_user(conn, req.name, req.role_id)


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    req: UserUpdateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    conn: DBConnection = Depends(get_db),
) -> Dict[str, Any]:
    """
    Update a user. Anonymous callers may only set a first password with
    from_login=true; the response then tells the client to go to login.
    """
    changes = req.changes()
    user = users.update_user(conn, identity, user_id, changes, from_login=req.from_login)

    if set(changes) == {"password"}:
        if req.from_login:
            return {"redirect": True, "message": "Password created, please log in"}
        return {"message": "Password updated"}
    return user.model_dump()


@router.delete("/{user_id}", dependencies=[Depends(require_admin())])
def delete_user(user_id: str, conn: DBConnection = Depends(get_db)) -> Dict[str, bool]:
    users.delete_user(conn, user_id)
    return {"success": True}
