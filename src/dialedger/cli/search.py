"""dialedger search command."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.markup import escape
from rich.table import Table

from dialedger.cli.errors import console
from dialedger.cli.session import open_ledger
from dialedger.db.models import EntryType


def search_cmd(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to look for (case-insensitive substring).")],
    entry_type: Annotated[
        Optional[list[EntryType]],
        typer.Option("--type", "-t", help="Only entries of this type (repeatable)."),
    ] = None,
    thread_id: Annotated[
        Optional[int], typer.Option("--thread", help="Only entries of this thread.")
    ] = None,
) -> None:
    """Search thread titles/descriptions, entries and attachment names."""
    with open_ledger(ctx) as ledger:
        results = ledger.search(query, entry_types=entry_type or None, thread_id=thread_id)

    if not results.threads and not results.entries:
        console.print(f"[dim]No matches for '{escape(query)}'.[/]")
        raise typer.Exit(0)

    if results.threads:
        table = Table(title="Threads", show_header=True, header_style="bold")
        table.add_column("ID", justify="right")
        table.add_column("Title", style="bold")
        table.add_column("Description")
        for t in results.threads:
            table.add_row(str(t.id), escape(t.title), escape(t.description or ""))
        console.print(table)

    if results.entries:
        table = Table(title="Entries", show_header=True, header_style="bold")
        table.add_column("ID", justify="right")
        table.add_column("Date", style="dim")
        table.add_column("Type")
        table.add_column("Thread")
        table.add_column("Title", style="bold")
        table.add_column("Match")
        for hit in results.entries:
            table.add_row(
                str(hit.entry.id),
                hit.entry.entry_date[:16],
                hit.entry.entry_type,
                escape(hit.thread_title),
                escape(hit.entry.title or ""),
                escape(hit.preview),
            )
        console.print(table)
