"""Additive schema migrations applied on every startup.

There is no version counter: each step inspects the live schema
(PRAGMA table_info / sqlite_master.sql) to decide whether it still has work
to do, so running the list twice is a no-op.

Failures are soft by default: the step is logged, recorded as failed in the
MigrationReport and the remaining steps still run. Pass strict=True to raise
SchemaError on the first failure instead.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from dialedger.db.errors import SchemaError
from dialedger.db.schema import ENTRY_INDEXES, entries_ddl

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class MigrationStep:
    name: str
    status: str
    error: str | None = None


@dataclass
class MigrationReport:
    """Outcome of one run_migrations() call, one step per known migration."""

    steps: list[MigrationStep] = field(default_factory=list)

    def _names(self, status: str) -> list[str]:
        return [s.name for s in self.steps if s.status == status]

    @property
    def applied(self) -> list[str]:
        return self._names(APPLIED)

    @property
    def skipped(self) -> list[str]:
        return self._names(SKIPPED)

    @property
    def failed(self) -> list[str]:
        return self._names(FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class Migration:
    name: str
    description: str
    needed: Callable[[sqlite3.Connection], bool]
    apply: Callable[[sqlite3.Connection], None]


# ------------------------------------------------------------------
# Introspection helpers
# ------------------------------------------------------------------


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return the column names of *table* in declaration order."""
    return [row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def table_sql(conn: sqlite3.Connection, table: str) -> str | None:
    """Return the stored CREATE TABLE text for *table*, or None if absent."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row["sql"] if row else None


def index_sql(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return the CREATE INDEX statements of explicit indices on *table*."""
    rows = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='index' AND tbl_name=? AND sql IS NOT NULL"
        " ORDER BY name",
        (table,),
    ).fetchall()
    return [r["sql"] for r in rows]


@contextmanager
def _atomic(conn: sqlite3.Connection) -> Iterator[None]:
    """Run the block in one explicit transaction (DDL included)."""
    if conn.in_transaction:
        conn.commit()
    conn.execute("BEGIN")
    try:
        yield
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


# ------------------------------------------------------------------
# Step 1: threads.display_order
# ------------------------------------------------------------------


def _needs_display_order(conn: sqlite3.Connection) -> bool:
    return "display_order" not in table_columns(conn, "threads")


def _add_display_order(conn: sqlite3.Connection) -> None:
    with _atomic(conn):
        conn.execute("ALTER TABLE threads ADD COLUMN display_order INTEGER DEFAULT 0")
        # Existing rows keep their creation order.
        conn.execute("UPDATE threads SET display_order = id")


# ------------------------------------------------------------------
# Step 2: widen entries.entry_type CHECK to include action_items
# ------------------------------------------------------------------


def _needs_action_items(conn: sqlite3.Connection) -> bool:
    sql = table_sql(conn, "entries")
    return sql is not None and "'action_items'" not in sql


def _widen_entry_types(conn: sqlite3.Connection) -> None:
    """Shadow-table rebuild: create entries_new, copy, drop, rename, reindex.

    Foreign keys must be off while the old table is dropped, otherwise the
    implicit DELETE would cascade into attachments.
    """
    indexes = index_sql(conn, "entries")
    old_columns = table_columns(conn, "entries")

    if conn.in_transaction:
        conn.commit()
    conn.execute("PRAGMA foreign_keys = OFF")
    try:
        with _atomic(conn):
            conn.execute(entries_ddl("entries_new", if_not_exists=False))
            new_columns = set(table_columns(conn, "entries_new"))
            cols = ", ".join(c for c in old_columns if c in new_columns)
            conn.execute(f"INSERT INTO entries_new ({cols}) SELECT {cols} FROM entries")
            conn.execute("DROP TABLE entries")
            conn.execute("ALTER TABLE entries_new RENAME TO entries")
            for ddl in indexes:
                conn.execute(ddl)
            for ddl in ENTRY_INDEXES:
                conn.execute(ddl)
            dangling = conn.execute("PRAGMA foreign_key_check").fetchall()
            if dangling:
                logger.warning(
                    "%d rows reference missing parents after rebuilding entries", len(dangling)
                )
    finally:
        conn.execute("PRAGMA foreign_keys = ON")


# Ordered. Append new steps at the end; never reorder.
MIGRATIONS: list[Migration] = [
    Migration(
        name="threads_display_order",
        description="add threads.display_order, backfilled from id",
        needed=_needs_display_order,
        apply=_add_display_order,
    ),
    Migration(
        name="entries_action_items_type",
        description="allow entry_type 'action_items' (entries table rebuild)",
        needed=_needs_action_items,
        apply=_widen_entry_types,
    ),
]


def run_migrations(conn: sqlite3.Connection, *, strict: bool = False) -> MigrationReport:
    """Apply every migration whose check says it is still needed.

    Args:
        conn: Open connection with the base tables already created.
        strict: Raise SchemaError on the first failure.

    Returns:
        MigrationReport with one step per entry in MIGRATIONS.
    """
    report = MigrationReport()
    for migration in MIGRATIONS:
        try:
            if not migration.needed(conn):
                report.steps.append(MigrationStep(migration.name, SKIPPED))
                continue
            logger.info("Applying migration %s: %s", migration.name, migration.description)
            migration.apply(conn)
        except sqlite3.Error as exc:
            logger.error("Migration %s failed: %s", migration.name, exc, exc_info=True)
            report.steps.append(MigrationStep(migration.name, FAILED, str(exc)))
            if strict:
                raise SchemaError(f"migration {migration.name!r} failed: {exc}") from exc
            continue
        report.steps.append(MigrationStep(migration.name, APPLIED))
        logger.info("Migration %s applied", migration.name)
    return report
