"""dialedger status command.

Shows where the data lives, how big it is, row counts and the outcome of
the startup migrations.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dialedger.cli.errors import console
from dialedger.cli.session import cli_config, open_ledger
from dialedger.db.migrations import FAILED


def status_cmd(
    ctx: typer.Context,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="List every migration step and its error.")
    ] = False,
) -> None:
    """Show data directory, database size, row counts and migration state."""
    cfg = cli_config(ctx)

    if not cfg.db_path.exists():
        console.print(
            Panel(
                f"[yellow]No database found at {escape(str(cfg.db_path))}.[/]\n"
                "  Run:  dialedger init",
                title="[bold]dialedger[/]",
                expand=False,
            )
        )
        raise typer.Exit(0)

    with open_ledger(ctx) as ledger:
        counts = ledger.repo.count_rows()
        report = ledger.migration_report

    size_kb = cfg.db_path.stat().st_size / 1024
    lines = [
        f"Data dir:     {escape(str(cfg.storage.data_dir))}",
        f"Database:     {escape(str(cfg.db_path))}  ({size_kb:.0f} KB)",
        f"Attachments:  {escape(str(cfg.attachments_path))}",
        "",
        f"Threads:      {counts['threads']}",
        f"Entries:      {counts['entries']}",
        f"Attachments:  {counts['attachments']}",
        "",
    ]
    if report.ok:
        lines.append("Schema:       [green]up to date[/]")
    else:
        lines.append(f"Schema:       [red]{len(report.failed)} migration(s) failed[/]")
    console.print(Panel("\n".join(lines), title="[bold]dialedger[/]", expand=False))

    if verbose and report.steps:
        table = Table(title="Migrations", show_header=True, header_style="bold")
        table.add_column("Step")
        table.add_column("Status")
        table.add_column("Error", style="dim")
        for step in report.steps:
            status = f"[red]{step.status}[/]" if step.status == FAILED else step.status
            table.add_row(step.name, status, escape(step.error or ""))
        console.print(table)
