"""Error taxonomy shared by the stores, the file collaborator and the CLI.

Callers can tell the outcomes apart by type:

  ValidationError      - bad input (entry type, empty title/date, ordering list)
  NotFoundError        - a thread/entry/attachment id does not exist
  StorageError         - SQLite failure (wraps the sqlite3 exception)
  PhysicalFileMissing  - attachment row exists but its file is gone
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class LedgerError(Exception):
    """Base class for every error raised by dialedger."""


class ValidationError(LedgerError, ValueError):
    """Caller supplied a value the store refuses to coerce."""


class NotFoundError(LedgerError, LookupError):
    """An operation referenced an id that does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id!r} not found")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(LedgerError):
    """The SQLite engine failed (disk full, corruption, lock timeout, ...)."""


class SchemaError(StorageError):
    """A schema migration failed while strict migrations are enabled."""


class PhysicalFileMissing(LedgerError):
    """The file referenced by an attachment record is no longer on disk."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"attachment file missing on disk: {path}")
        self.path = Path(path)
