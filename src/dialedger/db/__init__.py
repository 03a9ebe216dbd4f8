"""dialedger database layer."""

from dialedger.db.connection import Database
from dialedger.db.errors import (
    LedgerError,
    NotFoundError,
    PhysicalFileMissing,
    SchemaError,
    StorageError,
    ValidationError,
)
from dialedger.db.migrations import MIGRATIONS, MigrationReport, run_migrations
from dialedger.db.repository import UNSET, Repository
from dialedger.db.schema import initialize
from dialedger.db.search import SearchResults, search

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "MigrationReport",
    "Repository",
    "UNSET",
    "search",
    "SearchResults",
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "SchemaError",
    "PhysicalFileMissing",
]
