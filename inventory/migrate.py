# inventory/migrate.py
# Database migration module for PostgreSQL and SQLite
# Run: python -m inventory.migrate

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from inventory.auth_context import hash_password
from inventory.config import Settings, load_settings
from inventory.db import Database, DBConnection, execute_query, fetch_one, new_id, now_iso, transaction

logger = logging.getLogger(__name__)


# Types are kept portable (TEXT ids and ISO timestamps) so one DDL set serves
# both SQLite and PostgreSQL.
SCHEMA: List[str] = [
    # Lookup tables
    """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        description TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS item_sources (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        description TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conditions (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        description TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS locations (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        description TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS item_statuses (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        description TEXT,
        color TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS procurement_statuses (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL
    )
    """,
    # Roles and permissions
    """
    CREATE TABLE IF NOT EXISTS user_roles (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS permissions (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        description TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS role_permissions (
        id TEXT PRIMARY KEY,
        role_id TEXT NOT NULL REFERENCES user_roles(id) ON DELETE CASCADE,
        permission_id TEXT NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
        UNIQUE(role_id, permission_id)
    )
    """,
    # Users (password_hash is NULL until the user finishes onboarding)
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        email TEXT,
        phone_number TEXT,
        avatar_url TEXT,
        password_hash TEXT,
        role_id TEXT REFERENCES user_roles(id),
        created_at TEXT NOT NULL
    )
    """,
    # Items
    """
    CREATE TABLE IF NOT EXISTS items (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        category_id TEXT NOT NULL REFERENCES categories(id),
        quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity >= 0),
        condition_id TEXT NOT NULL REFERENCES conditions(id),
        location_id TEXT REFERENCES locations(id),
        photo_url TEXT,
        source_id TEXT NOT NULL REFERENCES item_sources(id),
        donor_id TEXT,
        procurement_id TEXT REFERENCES procurement_statuses(id),
        status_id TEXT NOT NULL REFERENCES item_statuses(id),
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_items_created_at ON items(created_at)",
    # Borrowings
    """
    CREATE TABLE IF NOT EXISTS item_borrowings (
        id TEXT PRIMARY KEY,
        item_id TEXT NOT NULL REFERENCES items(id),
        borrower_id TEXT NOT NULL REFERENCES users(id),
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        borrowed_at TEXT NOT NULL,
        expected_return_date TEXT NOT NULL,
        actual_return_date TEXT,
        approved_by TEXT REFERENCES users(id),
        notes TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'returned'))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_item_borrowings_borrower ON item_borrowings(borrower_id)",
    "CREATE INDEX IF NOT EXISTS idx_item_borrowings_item ON item_borrowings(item_id)",
    "CREATE INDEX IF NOT EXISTS idx_item_borrowings_borrowed_at ON item_borrowings(borrowed_at)",
    # Audit log: no foreign keys, entries outlive the rows they describe
    """
    CREATE TABLE IF NOT EXISTS item_logs (
        id TEXT PRIMARY KEY,
        item_id TEXT NOT NULL,
        action TEXT NOT NULL,
        before_state TEXT,
        after_state TEXT,
        note TEXT,
        actor_id TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_item_logs_item_created ON item_logs(item_id, created_at)",
]


# (name, description, color)
DEFAULT_ITEM_STATUSES: List[Tuple[str, str, str]] = [
    ("active", "Available for borrowing", "#22c55e"),
    ("borrowed", "Currently lent out", "#3b82f6"),
    ("maintenance", "Under maintenance", "#f59e0b"),
    ("damaged", "Damaged", "#ef4444"),
    ("lost", "Lost", "#6b7280"),
]

DEFAULT_PERMISSIONS: Dict[str, str] = {
    "borrow_items": "Request to borrow items",
    "approve_borrowings": "Approve pending borrowing requests",
    "manage_borrowings": "Return or manage any borrowing",
    "view_all_borrowings": "See borrowings of all users",
    "manage_roles": "Assign permissions to roles",
    "manage_permissions": "Create, rename and delete permissions",
    "admin_access": "Administrative access (users, items, lookup tables)",
}

DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "admin": list(DEFAULT_PERMISSIONS),
    "staff": ["borrow_items"],
}


def run_migrations(db: Database, settings: Optional[Settings] = None) -> None:
    """
    Run all database migrations (idempotent).
    Creates tables and indexes if missing, then seeds default reference data.
    Safe to run multiple times.
    """
    logger.info("[MIGRATE] Starting database migrations...")

    with db.connection() as conn:
        with transaction(conn):
            for statement in SCHEMA:
                execute_query(conn, statement)
            seed_defaults(conn)
            if settings is not None and settings.bootstrap_admin_name:
                ensure_bootstrap_admin(conn, settings.bootstrap_admin_name, settings.bootstrap_admin_password)

    logger.info("[MIGRATE] All migrations complete")


def _ensure_named_row(conn: DBConnection, table: str, name: str, extra: Optional[Dict[str, str]] = None) -> str:
    """Insert a row keyed by unique name if missing; return its id."""
    row = fetch_one(conn, f"SELECT id FROM {table} WHERE name = :name", {"name": name})
    if row:
        return row["id"]

    values = {"id": new_id(), "name": name}
    values.update(extra or {})
    columns = ", ".join(values)
    placeholders = ", ".join(f":{column}" for column in values)
    execute_query(conn, f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", values)
    logger.debug("[MIGRATE] Seeded %s.%s", table, name)
    return values["id"]


def seed_defaults(conn: DBConnection) -> None:
    """Seed item statuses, permissions, default roles and their mappings."""
    for name, description, color in DEFAULT_ITEM_STATUSES:
        _ensure_named_row(conn, "item_statuses", name, {"description": description, "color": color})

    permission_ids = {
        name: _ensure_named_row(conn, "permissions", name, {"description": description})
        for name, description in DEFAULT_PERMISSIONS.items()
    }

    for role_name, permission_names in DEFAULT_ROLE_PERMISSIONS.items():
        role_id = _ensure_named_row(conn, "user_roles", role_name)
        for permission_name in permission_names:
            existing = fetch_one(
                conn,
                "SELECT 1 AS found FROM role_permissions WHERE role_id = :role_id AND permission_id = :permission_id",
                {"role_id": role_id, "permission_id": permission_ids[permission_name]},
            )
            if not existing:
                execute_query(
                    conn,
                    "INSERT INTO role_permissions (id, role_id, permission_id) VALUES (:id, :role_id, :permission_id)",
                    {"id": new_id(), "role_id": role_id, "permission_id": permission_ids[permission_name]},
                )


def ensure_bootstrap_admin(conn: DBConnection, name: str, password: Optional[str]) -> None:
    """Create the first admin user if no user with that name exists."""
    if fetch_one(conn, "SELECT id FROM users WHERE name = :name", {"name": name}):
        return

    role = fetch_one(conn, "SELECT id FROM user_roles WHERE name = 'admin'")
    execute_query(
        conn,
        """
        INSERT INTO users (id, name, password_hash, role_id, created_at)
        VALUES (:id, :name, :password_hash, :role_id, :created_at)
        """,
        {
            "id": new_id(),
            "name": name,
            "password_hash": hash_password(password) if password else None,
            "role_id": role["id"] if role else None,
            "created_at": now_iso(),
        },
    )
    logger.info("[MIGRATE] Created bootstrap admin user %r", name)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app_settings = load_settings()
    run_migrations(Database(app_settings), app_settings)
