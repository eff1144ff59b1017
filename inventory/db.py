# inventory/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev)
#
# All SQL in the package uses named parameters (:name), which both sqlite3 and
# SQLAlchemy's text() understand, so queries are written once for both backends.

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Mapping, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError as SAIntegrityError
from sqlalchemy.exc import SQLAlchemyError

from inventory.config import Settings
from inventory.errors import BadRequest, InternalError

logger = logging.getLogger(__name__)

DBConnection = Union[sqlite3.Connection, Connection]
Params = Optional[Mapping[str, Any]]

# Exceptions that mean "the store failed", whichever backend is active
DB_ERRORS = (sqlite3.Error, SQLAlchemyError)
INTEGRITY_ERRORS = (sqlite3.IntegrityError, SAIntegrityError)


def now_iso() -> str:
    """UTC timestamp in ISO format (sortable as text)."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class Database:
    """
    Connection factory built from Settings.

    PostgreSQL (DATABASE_URL set) goes through a pooled SQLAlchemy engine;
    otherwise each connection is a fresh sqlite3 connection to DATABASE_PATH.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._engine: Optional[Engine] = None

        if settings.is_postgres:
            url = settings.database_url
            parsed = urlparse(url)
            if not parsed.scheme or not parsed.netloc:
                raise ValueError(f"Invalid DATABASE_URL: {url[:20]}...")
            # SQLAlchemy only accepts the postgresql:// scheme
            if url.startswith("postgres://"):
                url = "postgresql://" + url[len("postgres://"):]

            self._engine = create_engine(
                url,
                poolclass=pool.QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,  # Verify connections before use
                echo=False,
            )
            logger.info("[DB] Using PostgreSQL (%s)", parsed.hostname)
        else:
            logger.info("[DB] Using SQLite (%s)", settings.database_path)

    @property
    def is_postgres(self) -> bool:
        return self._engine is not None

    def connect(self) -> DBConnection:
        """Open a new connection; the caller must close it."""
        if self._engine is not None:
            return self._engine.connect()

        # isolation_level=None: autocommit, transactions are opened explicitly
        conn = sqlite3.connect(
            self.settings.database_path,
            timeout=self.settings.sqlite_busy_timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Generator[DBConnection, None, None]:
        """Context manager for a single connection."""
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


def is_postgres_connection(conn: DBConnection) -> bool:
    return not isinstance(conn, sqlite3.Connection)


def execute_query(conn: DBConnection, query: str, params: Params = None) -> Any:
    """
    Execute a query with named parameters.

    Returns:
        Cursor (SQLite) or CursorResult (PostgreSQL); both expose rowcount.
    """
    if is_postgres_connection(conn):
        return conn.execute(text(query), dict(params or {}))
    return conn.execute(query, dict(params or {}))


def row_to_dict(row: Any) -> Dict[str, Any]:
    """
    Convert a sqlite3.Row or SQLAlchemy row mapping to a plain dict.
    Returns {} for None.
    """
    if row is None:
        return {}
    return dict(row)


def fetch_one(conn: DBConnection, query: str, params: Params = None) -> Optional[Dict[str, Any]]:
    result = execute_query(conn, query, params)
    if is_postgres_connection(conn):
        row = result.mappings().first()
    else:
        row = result.fetchone()
    return row_to_dict(row) if row is not None else None


def fetch_all(conn: DBConnection, query: str, params: Params = None) -> List[Dict[str, Any]]:
    result = execute_query(conn, query, params)
    if is_postgres_connection(conn):
        rows = result.mappings().all()
    else:
        rows = result.fetchall()
    return [row_to_dict(row) for row in rows]


def lock_clause(conn: DBConnection, of: Optional[str] = None) -> str:
    """
    Row-lock suffix for SELECTs inside a transaction.

    of: table alias to lock when the SELECT joins other tables.

    PostgreSQL locks the selected rows; SQLite already holds the database
    write lock from BEGIN IMMEDIATE, so no clause is needed there.
    """
    if not is_postgres_connection(conn):
        return ""
    return f" FOR UPDATE OF {of}" if of else " FOR UPDATE"


@contextmanager
def transaction(conn: DBConnection) -> Generator[DBConnection, None, None]:
    """
    Run a block atomically: commit on success, roll back on any exception.

    Store failures are re-raised as InternalError carrying the cause message;
    constraint violations become BadRequest. Errors already in the taxonomy
    (raised by the block itself) pass through after the rollback.
    Not re-entrant.
    """
    try:
        if is_postgres_connection(conn):
            # End the implicit read transaction SQLAlchemy autobegins
            if conn.in_transaction():
                conn.rollback()
            conn.begin()
        else:
            conn.execute("BEGIN IMMEDIATE")
    except DB_ERRORS as e:
        logger.error("[DB] Failed to start transaction: %s", e)
        raise InternalError(f"Failed to start transaction: {e}") from e

    try:
        yield conn
        if is_postgres_connection(conn):
            conn.commit()
        else:
            conn.execute("COMMIT")
    except Exception as e:
        _rollback_quietly(conn)
        if isinstance(e, INTEGRITY_ERRORS):
            logger.warning("[DB] Integrity error, rolled back: %s", e)
            raise BadRequest("Integrity constraint violation") from e
        if isinstance(e, DB_ERRORS):
            logger.error("[DB] Transaction failed, rolled back: %s", e)
            raise InternalError(f"Transaction failed: {e}") from e
        raise


def _rollback_quietly(conn: DBConnection) -> None:
    try:
        if is_postgres_connection(conn):
            conn.rollback()
        elif conn.in_transaction:
            conn.execute("ROLLBACK")
    except DB_ERRORS as e:
        # The original error is the one worth surfacing
        logger.error("[DB] Rollback failed: %s", e)
