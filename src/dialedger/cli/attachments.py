"""dialedger attachment commands.

Commands:
  dialedger attach add ENTRY FILE [--name N]   - copy FILE into storage, record it
  dialedger attach list ENTRY                  - attachments of an entry
  dialedger attach export ID DEST              - copy the stored file out
  dialedger attach delete ID [--yes]           - remove record and file
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape
from rich.table import Table

from dialedger.cli.errors import console
from dialedger.cli.session import open_ledger

attach_app = typer.Typer(
    name="attach",
    help="Attach files to entries, export and remove them.",
    add_completion=False,
)


def _human_size(size: Optional[int]) -> str:
    if size is None:
        return ""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@attach_app.command("add")
def attach_add_cmd(
    ctx: typer.Context,
    entry_id: Annotated[int, typer.Argument(help="Entry ID.")],
    path: Annotated[Path, typer.Argument(help="File to attach.")],
    name: Annotated[
        Optional[str], typer.Option("--name", help="Name to record instead of the file's name.")
    ] = None,
) -> None:
    """Copy a file into managed storage and attach it to an entry."""
    with open_ledger(ctx) as ledger:
        attachment = ledger.add_attachment(entry_id, path, name)
    console.print(
        f"[green]✓[/] Attached {escape(attachment.file_name)}"
        f" ({_human_size(attachment.file_size)}) as attachment {attachment.id}"
    )


@attach_app.command("list")
def attach_list_cmd(
    ctx: typer.Context,
    entry_id: Annotated[int, typer.Argument(help="Entry ID.")],
) -> None:
    """List the attachments of an entry."""
    with open_ledger(ctx) as ledger:
        attachments = ledger.repo.list_attachments(entry_id)

    if not attachments:
        console.print(f"[dim]Entry {entry_id} has no attachments.[/]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Type", style="dim")
    for a in attachments:
        table.add_row(str(a.id), escape(a.file_name), _human_size(a.file_size), a.mime_type or "")
    console.print(table)


@attach_app.command("export")
def attach_export_cmd(
    ctx: typer.Context,
    attachment_id: Annotated[int, typer.Argument(help="Attachment ID.")],
    dest: Annotated[Path, typer.Argument(help="Target directory or file path.")] = Path("."),
) -> None:
    """Copy an attachment out of storage under its original name."""
    with open_ledger(ctx) as ledger:
        target = ledger.export_attachment(attachment_id, dest)
    console.print(f"[green]✓[/] Exported to {escape(str(target))}")


@attach_app.command("delete")
def attach_delete_cmd(
    ctx: typer.Context,
    attachment_id: Annotated[int, typer.Argument(help="Attachment ID.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Delete an attachment record and its stored file."""
    with open_ledger(ctx) as ledger:
        attachment = ledger.repo.get_attachment(attachment_id)
        console.print(f"\nDelete attachment: [bold]{escape(attachment.file_name)}[/]")
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        result = ledger.delete_attachment(attachment_id)

    console.print(f"[green]✓[/] Deleted attachment {attachment_id}")
    if result.missing_files:
        console.print("[dim]  (file was already gone from disk)[/]")
    if result.failed_files:
        console.print("[yellow]⚠[/] The file could not be removed from disk.")
