"""
Shared pytest fixtures: an app on a throwaway SQLite database, seeded roles
and users, and helpers for minting tokens and creating items.
"""

from types import SimpleNamespace
from typing import Dict, Iterable, Optional

import pytest
from fastapi.testclient import TestClient

from inventory.auth_context import create_access_token, hash_password
from inventory.config import Settings
from inventory.db import execute_query, fetch_one, new_id, now_iso
from inventory.main import create_app


def add_role(conn, name: str, permissions: Iterable[str]) -> str:
    """Create (or reuse) a role and grant it the named permissions."""
    row = fetch_one(conn, "SELECT id FROM user_roles WHERE name = :name", {"name": name})
    role_id = row["id"] if row else new_id()
    if not row:
        execute_query(conn, "INSERT INTO user_roles (id, name) VALUES (:id, :name)", {"id": role_id, "name": name})
    for permission in permissions:
        perm = fetch_one(conn, "SELECT id FROM permissions WHERE name = :name", {"name": permission})
        execute_query(
            conn,
            "INSERT INTO role_permissions (id, role_id, permission_id) VALUES (:id, :role_id, :permission_id)",
            {"id": new_id(), "role_id": role_id, "permission_id": perm["id"]},
        )
    return role_id


def add_user(conn, name: str, role_id: Optional[str], password: Optional[str] = None) -> str:
    user_id = new_id()
    execute_query(
        conn,
        """
        INSERT INTO users (id, name, password_hash, role_id, created_at)
        VALUES (:id, :name, :password_hash, :role_id, :created_at)
        """,
        {
            "id": user_id,
            "name": name,
            "password_hash": hash_password(password) if password else None,
            "role_id": role_id,
            "created_at": now_iso(),
        },
    )
    return user_id


def add_lookup(conn, table: str, name: str) -> str:
    entry_id = new_id()
    execute_query(conn, f"INSERT INTO {table} (id, name) VALUES (:id, :name)", {"id": entry_id, "name": name})
    return entry_id


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_path=str(tmp_path / "test.db"),
        upload_dir=str(tmp_path / "uploads"),
        base_url="http://testserver",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def conn(app):
    """Direct connection to the test database (autocommit)."""
    connection = app.state.db.connect()
    yield connection
    connection.close()


@pytest.fixture
def seed(conn, settings):
    """
    Roles and users covering the permission combinations the tests need:

    - admin: every seeded permission
    - staff: borrow_items
    - approver: borrow_items + approve_borrowings
    - auditor: view_all_borrowings
    - guest: no permissions
    """
    admin_role = fetch_one(conn, "SELECT id FROM user_roles WHERE name = 'admin'")["id"]
    staff_role = fetch_one(conn, "SELECT id FROM user_roles WHERE name = 'staff'")["id"]
    approver_role = add_role(conn, "approver", ["borrow_items", "approve_borrowings"])
    auditor_role = add_role(conn, "auditor", ["view_all_borrowings"])
    guest_role = add_role(conn, "guest", [])

    users = SimpleNamespace(
        admin=add_user(conn, "admin", admin_role, password="admin-pass"),
        staff=add_user(conn, "staff", staff_role, password="staff-pass"),
        other_staff=add_user(conn, "other_staff", staff_role),
        approver=add_user(conn, "approver", approver_role),
        auditor=add_user(conn, "auditor", auditor_role),
        guest=add_user(conn, "guest", guest_role),
        no_role=add_user(conn, "no_role", None),
    )
    lookups = SimpleNamespace(
        category=add_lookup(conn, "categories", "Electronics"),
        condition=add_lookup(conn, "conditions", "Good"),
        source=add_lookup(conn, "item_sources", "Purchase"),
        location=add_lookup(conn, "locations", "Storage A"),
    )
    roles = SimpleNamespace(
        admin=admin_role, staff=staff_role, approver=approver_role, auditor=auditor_role, guest=guest_role,
    )

    def headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(settings, user_id, '')}"}

    def make_item(name: str = "Projector", quantity: int = 5, status: str = "active") -> str:
        item_id = new_id()
        status_id = fetch_one(conn, "SELECT id FROM item_statuses WHERE name = :name", {"name": status})["id"]
        execute_query(
            conn,
            """
            INSERT INTO items (id, name, category_id, quantity, condition_id, source_id, status_id, created_at)
            VALUES (:id, :name, :category_id, :quantity, :condition_id, :source_id, :status_id, :created_at)
            """,
            {
                "id": item_id,
                "name": name,
                "category_id": lookups.category,
                "quantity": quantity,
                "condition_id": lookups.condition,
                "source_id": lookups.source,
                "status_id": status_id,
                "created_at": now_iso(),
            },
        )
        return item_id

    return SimpleNamespace(users=users, roles=roles, lookups=lookups, headers=headers, make_item=make_item)
