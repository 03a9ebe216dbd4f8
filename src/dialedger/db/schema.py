"""Database schema DDL and initialization."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dialedger.db.migrations import MigrationReport

ENTRY_TYPE_VALUES: tuple[str, ...] = (
    "note",
    "meeting",
    "conversation",
    "email",
    "file",
    "action_items",
)

_CREATE_THREADS = """
CREATE TABLE IF NOT EXISTS threads (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    title           TEXT NOT NULL,
    description     TEXT,
    created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
    display_order   INTEGER DEFAULT 0
)
"""

# Column block shared by the live table and the shadow table built when the
# entry_type constraint is widened (see migrations.py).
_ENTRIES_BODY = """(
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id       INTEGER NOT NULL,
    entry_type      TEXT NOT NULL CHECK(entry_type IN ({types})),
    title           TEXT,
    content         TEXT,
    entry_date      DATETIME NOT NULL,
    created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
    metadata        TEXT,
    FOREIGN KEY (thread_id) REFERENCES threads(id) ON DELETE CASCADE
)"""

_CREATE_ATTACHMENTS = """
CREATE TABLE IF NOT EXISTS attachments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id        INTEGER NOT NULL,
    file_name       TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    file_size       INTEGER,
    mime_type       TEXT,
    created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (entry_id) REFERENCES entries(id) ON DELETE CASCADE
)
"""

ENTRY_INDEXES: tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_entries_thread_id ON entries(thread_id)",
    "CREATE INDEX IF NOT EXISTS idx_entries_entry_date ON entries(entry_date)",
)

ATTACHMENT_INDEXES: tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_attachments_entry_id ON attachments(entry_id)",
)


def entries_ddl(table: str = "entries", *, if_not_exists: bool = True) -> str:
    """Return the CREATE TABLE statement for the entries table under *table*."""
    types = ", ".join(f"'{t}'" for t in ENTRY_TYPE_VALUES)
    guard = "IF NOT EXISTS " if if_not_exists else ""
    return f"CREATE TABLE {guard}{table} " + _ENTRIES_BODY.format(types=types)


def create_tables(conn: sqlite3.Connection) -> None:
    """Create all tables and indices that do not exist yet."""
    conn.execute(_CREATE_THREADS)
    conn.execute(entries_ddl())
    conn.execute(_CREATE_ATTACHMENTS)
    for ddl in ENTRY_INDEXES + ATTACHMENT_INDEXES:
        conn.execute(ddl)
    conn.commit()


def initialize(conn: sqlite3.Connection, *, strict: bool = False) -> MigrationReport:
    """Create the schema and bring an existing one up to date (idempotent).

    Safe on a fresh file, on a legacy store and on an already migrated one.

    Args:
        conn: Open connection (see dialedger.db.connection.Database).
        strict: Raise SchemaError on the first failing migration instead of
            logging it and carrying on.

    Returns:
        The MigrationReport describing every migration step.
    """
    from dialedger.db.migrations import run_migrations

    create_tables(conn)
    return run_migrations(conn, strict=strict)
