"""
inventory/users.py

User accounts: admin-managed list/create/delete, self-service profile edits,
and the password onboarding step for users created without one.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from inventory.auth_context import hash_password
from inventory.db import DBConnection, execute_query, fetch_all, fetch_one, new_id, now_iso, transaction
from inventory.errors import BadRequest, Forbidden, NotFound
from inventory.models import Identity, User
from inventory.permissions import is_admin

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "staff"

PROFILE_COLUMNS = ("name", "email", "phone_number", "avatar_url")

USER_SELECT = """
    SELECT u.id, u.name, u.email, u.phone_number, u.avatar_url, u.role_id,
           r.name AS role, u.created_at
    FROM users u
    LEFT JOIN user_roles r ON r.id = u.role_id
"""


def list_users(conn: DBConnection) -> List[User]:
    return [User(**row) for row in fetch_all(conn, USER_SELECT + " ORDER BY u.name")]


def get_user(conn: DBConnection, user_id: str) -> User:
    row = fetch_one(conn, USER_SELECT + " WHERE u.id = :id", {"id": user_id})
    if row is None:
        raise NotFound("User not found")
    return User(**row)


def find_credentials(conn: DBConnection, name: str) -> Optional[Dict[str, Any]]:
    """id, name, password_hash and role name for a login name, or None."""
    return fetch_one(
        conn,
        """
        SELECT u.id, u.name, u.password_hash, r.name AS role
        FROM users u
        LEFT JOIN user_roles r ON r.id = u.role_id
        WHERE u.name = :name
        """,
        {"name": name},
    )


def _check_role(conn: DBConnection, role_id: str) -> None:
    if not fetch_one(conn, "SELECT id FROM user_roles WHERE id = :id", {"id": role_id}):
        raise BadRequest(f"Invalid role_id: {role_id}")


def _check_name_free(conn: DBConnection, name: str, exclude_id: str = "") -> None:
    taken = fetch_one(
        conn,
        "SELECT id FROM users WHERE name = :name AND id <> :exclude_id",
        {"name": name, "exclude_id": exclude_id},
    )
    if taken:
        raise BadRequest(f"User name already exists: {name}")


def create_user(conn: DBConnection, name: str, role_id: Optional[str] = None) -> User:
    """
    Create a user without a password. They set one on first login.

    role_id defaults to the "staff" role.
    """
    user_id = new_id()
    with transaction(conn):
        _check_name_free(conn, name)
        if role_id is None:
            row = fetch_one(conn, "SELECT id FROM user_roles WHERE name = :name", {"name": DEFAULT_ROLE})
            role_id = row["id"] if row else None
        else:
            _check_role(conn, role_id)

        execute_query(
            conn,
            "INSERT INTO users (id, name, role_id, created_at) VALUES (:id, :name, :role_id, :created_at)",
            {"id": user_id, "name": name, "role_id": role_id, "created_at": now_iso()},
        )

    logger.info("[USERS] Created user_id=%s", user_id)
    return get_user(conn, user_id)


def update_user(
    conn: DBConnection,
    identity: Optional[Identity],
    user_id: str,
    changes: Mapping[str, Any],
    from_login: bool = False,
) -> User:
    """
    Update profile fields, password and/or role.

    Who may do what:
        - admins: any user, any field, including role_id
        - a signed-in user: their own profile and password
        - anonymous with from_login=True: set the first password of a
          user who has none yet (onboarding), nothing else

    Raises:
        BadRequest: Nothing to update, unknown role_id or duplicate name
        Forbidden: Caller may not make this change
        NotFound: No such user
    """
    profile = {column: changes[column] for column in PROFILE_COLUMNS if changes.get(column) is not None}
    password = changes.get("password")
    role_id = changes.get("role_id")
    if not profile and password is None and role_id is None:
        raise BadRequest("No fields to update")

    admin = identity is not None and is_admin(conn, identity)

    with transaction(conn):
        target = fetch_one(conn, "SELECT id, password_hash FROM users WHERE id = :id", {"id": user_id})
        if target is None:
            raise NotFound("User not found")

        if identity is None:
            onboarding = from_login and password is not None and not profile and role_id is None
            if not onboarding or target["password_hash"]:
                raise Forbidden("Not allowed to update this user")
        elif not admin and identity.user_id != user_id:
            raise Forbidden("Not allowed to update this user")
        if role_id is not None and not admin:
            raise Forbidden("Only admins can change roles")

        updates: Dict[str, Any] = dict(profile)
        if "name" in updates:
            _check_name_free(conn, updates["name"], exclude_id=user_id)
        if role_id is not None:
            _check_role(conn, role_id)
            updates["role_id"] = role_id
        if password is not None:
            updates["password_hash"] = hash_password(password)

        assignments = ", ".join(f"{column} = :{column}" for column in updates)
        execute_query(conn, f"UPDATE users SET {assignments} WHERE id = :user_id", {**updates, "user_id": user_id})

    logger.info("[USERS] Updated user_id=%s fields=%s", user_id, sorted(k for k in updates if k != "password_hash"))
    return get_user(conn, user_id)


def delete_user(conn: DBConnection, user_id: str) -> None:
    """
    Raises:
        NotFound: No such user
        BadRequest: User still has borrowing records
    """
    with transaction(conn):
        if not fetch_one(conn, "SELECT id FROM users WHERE id = :id", {"id": user_id}):
            raise NotFound("User not found")

        in_use = fetch_one(
            conn,
            "SELECT 1 AS found FROM item_borrowings WHERE borrower_id = :id OR approved_by = :id LIMIT 1",
            {"id": user_id},
        )
        if in_use:
            raise BadRequest("User has borrowing records and cannot be deleted")

        execute_query(conn, "DELETE FROM users WHERE id = :id", {"id": user_id})

    logger.info("[USERS] Deleted user_id=%s", user_id)
