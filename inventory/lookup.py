"""
inventory/lookup.py

Generic CRUD over the reference tables items point at (categories,
conditions, locations, sources, statuses...). All tables share the
(id, name UNIQUE, ...) shape and differ only in their extra columns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from inventory.db import DBConnection, execute_query, fetch_all, fetch_one, new_id, transaction
from inventory.errors import BadRequest, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupTable:
    table: str
    columns: Tuple[str, ...]

    @property
    def select(self) -> str:
        return f"SELECT id, {', '.join(self.columns)} FROM {self.table}"


# URL segment -> table definition
LOOKUP_TABLES: Dict[str, LookupTable] = {
    "categories": LookupTable("categories", ("name", "description")),
    "item-sources": LookupTable("item_sources", ("name", "description")),
    "conditions": LookupTable("conditions", ("name", "description")),
    "locations": LookupTable("locations", ("name", "description")),
    "item-statuses": LookupTable("item_statuses", ("name", "description", "color")),
    "procurement-statuses": LookupTable("procurement_statuses", ("name",)),
    "user-roles": LookupTable("user_roles", ("name",)),
}


def _name_taken(conn: DBConnection, lookup: LookupTable, name: str, exclude_id: str = "") -> bool:
    row = fetch_one(
        conn,
        f"SELECT id FROM {lookup.table} WHERE name = :name AND id <> :exclude_id",
        {"name": name, "exclude_id": exclude_id},
    )
    return row is not None


def list_entries(conn: DBConnection, lookup: LookupTable) -> List[Dict[str, Any]]:
    return fetch_all(conn, lookup.select + " ORDER BY name")


def create_entry(conn: DBConnection, lookup: LookupTable, fields: Mapping[str, Any]) -> Dict[str, Any]:
    values = {column: fields.get(column) for column in lookup.columns}
    values["id"] = new_id()

    with transaction(conn):
        if _name_taken(conn, lookup, values["name"]):
            raise BadRequest(f"Name already exists: {values['name']}")
        columns = ", ".join(values)
        placeholders = ", ".join(f":{column}" for column in values)
        execute_query(conn, f"INSERT INTO {lookup.table} ({columns}) VALUES ({placeholders})", values)

    logger.info("[LOOKUP] Created %s.%s", lookup.table, values["name"])
    return fetch_one(conn, lookup.select + " WHERE id = :id", {"id": values["id"]})


def update_entry(conn: DBConnection, lookup: LookupTable, entry_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Raises:
        BadRequest: Nothing to update, or the new name is taken
        NotFound: No entry with that id
    """
    updates = {column: changes[column] for column in lookup.columns if changes.get(column) is not None}
    if not updates:
        raise BadRequest("No fields to update")

    with transaction(conn):
        if not fetch_one(conn, f"SELECT id FROM {lookup.table} WHERE id = :id", {"id": entry_id}):
            raise NotFound("Not found")
        if "name" in updates and _name_taken(conn, lookup, updates["name"], exclude_id=entry_id):
            raise BadRequest(f"Name already exists: {updates['name']}")
        assignments = ", ".join(f"{column} = :{column}" for column in updates)
        execute_query(conn, f"UPDATE {lookup.table} SET {assignments} WHERE id = :entry_id", {**updates, "entry_id": entry_id})

    return fetch_one(conn, lookup.select + " WHERE id = :id", {"id": entry_id})


def delete_entry(conn: DBConnection, lookup: LookupTable, entry_id: str) -> None:
    """
    Raises:
        NotFound: No entry with that id
        BadRequest: Entry is still referenced (foreign key)
    """
    with transaction(conn):
        result = execute_query(conn, f"DELETE FROM {lookup.table} WHERE id = :id", {"id": entry_id})
        if result.rowcount == 0:
            raise NotFound("Not found")

    logger.info("[LOOKUP] Deleted %s id=%s", lookup.table, entry_id)
