"""Opening the ledger's SQLite file."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from dialedger.db.errors import StorageError

logger = logging.getLogger(__name__)

# Seconds a writer waits on a lock held by another process (e.g. a second CLI).
BUSY_TIMEOUT = 5.0

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",  # entries/attachments cascade on delete
    "PRAGMA journal_mode = WAL",
)


def open_connection(db_path: Path, timeout: float = BUSY_TIMEOUT) -> sqlite3.Connection:
    """Open *db_path* with name-addressable rows, cascading FKs and WAL.

    Raises:
        StorageError: The file cannot be opened or is not a SQLite database.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = sqlite3.connect(db_path, timeout=timeout)
    except sqlite3.Error as exc:
        raise StorageError(f"cannot open {db_path}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    try:
        for pragma in _PRAGMAS:
            conn.execute(pragma)
    except sqlite3.Error as exc:
        conn.close()
        raise StorageError(f"cannot use {db_path}: {exc}") from exc
    logger.debug("Connected to %s", db_path)
    return conn


class Database:
    """The ledger database file. One per data directory."""

    def __init__(self, db_path: Path | str, timeout: float = BUSY_TIMEOUT) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        return open_connection(self.db_path, self.timeout)

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
