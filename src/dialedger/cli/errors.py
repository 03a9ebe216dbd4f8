"""dialedger rich error messages - actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Each error class maps to its own exit code so scripts can tell them apart.

Usage:
    from dialedger.cli.errors import reported_errors
    with reported_errors():
        ledger.repo.get_thread(thread_id)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.markup import escape

from dialedger.db.errors import (
    NotFoundError,
    PhysicalFileMissing,
    SchemaError,
    StorageError,
    ValidationError,
)

console = Console()

EXIT_VALIDATION = 2
EXIT_NOT_FOUND = 3
EXIT_FILE_MISSING = 4
EXIT_STORAGE = 5

_LIST_HINTS = {
    "thread": "dialedger thread list",
    "entry": "dialedger entry list <thread-id>",
    "attachment": "dialedger attach list <entry-id>",
}


def err_validation(exc: ValidationError) -> str:
    """Caller input was rejected."""
    return f"[red]Error:[/] {escape(str(exc))}\n  Fix the value and run the command again."


def err_not_found(exc: NotFoundError) -> str:
    """Unknown thread/entry/attachment id."""
    hint = _LIST_HINTS.get(exc.entity, "dialedger thread list")
    return (
        f"[red]Error:[/] No {exc.entity} with id {escape(str(exc.entity_id))}.\n"
        f"  Run:  {hint}  to see existing ids."
    )


def err_file_missing(exc: PhysicalFileMissing) -> str:
    """Attachment row exists but the file on disk is gone."""
    return (
        f"[red]Error:[/] Attachment file is missing on disk: '{escape(str(exc.path))}'\n"
        "  The record is still there. Remove it with:  dialedger attach delete <id>"
    )


def err_storage(exc: StorageError) -> str:
    """SQLite failure."""
    if isinstance(exc, SchemaError):
        return (
            f"[red]Error:[/] Schema migration failed: {escape(str(exc))}\n"
            "  Back up the database file, then set database.strict_migrations: false\n"
            "  in dialedger.yaml to start in degraded mode."
        )
    return (
        f"[red]Error:[/] Database error: {escape(str(exc))}\n"
        "  Check free disk space and that no other process holds the database lock."
    )


def err_config(message: str) -> str:
    """Config file could not be used."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(message)}\n"
        "  Edit dialedger.yaml or ~/.dialedger/config.yaml and try again."
    )


def warn_migrations_failed(names: list[str]) -> str:
    """Startup continued with a partially migrated schema."""
    return (
        f"[yellow]⚠[/] Schema migrations failed: {', '.join(names)}\n"
        "  dialedger keeps running; run  dialedger status -v  for details."
    )


@contextmanager
def reported_errors() -> Iterator[None]:
    """Print a dialedger error and exit with its code."""
    try:
        yield
    except ValidationError as exc:
        console.print(err_validation(exc))
        raise typer.Exit(EXIT_VALIDATION) from exc
    except NotFoundError as exc:
        console.print(err_not_found(exc))
        raise typer.Exit(EXIT_NOT_FOUND) from exc
    except PhysicalFileMissing as exc:
        console.print(err_file_missing(exc))
        raise typer.Exit(EXIT_FILE_MISSING) from exc
    except StorageError as exc:
        console.print(err_storage(exc))
        raise typer.Exit(EXIT_STORAGE) from exc
