"""dialedger thread commands.

Commands:
  dialedger thread list                     - threads in display order
  dialedger thread create TITLE [-d TEXT]   - new thread at the end of the list
  dialedger thread update ID TITLE [-d ..]  - replace title and description
  dialedger thread delete ID [--yes]        - delete with entries + attachment files
  dialedger thread reorder ID [ID ...]      - move these threads to the top, in order
  dialedger thread actions ID               - open action items of a thread
"""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.markup import escape
from rich.table import Table

from dialedger.cli.errors import console
from dialedger.cli.session import open_ledger

threads_app = typer.Typer(
    name="thread",
    help="Create, list, reorder and delete threads.",
    add_completion=False,
)


@threads_app.command("list")
def thread_list_cmd(ctx: typer.Context) -> None:
    """List all threads in display order."""
    with open_ledger(ctx) as ledger:
        threads = ledger.repo.list_threads()

    if not threads:
        console.print("[yellow]No threads yet.[/]\n  Run:  dialedger thread create \"<title>\"")
        raise typer.Exit(0)

    table = Table(title="Threads", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Order", justify="right", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Updated", style="dim")
    table.add_column("Description")
    for t in threads:
        table.add_row(
            str(t.id),
            str(t.display_order),
            escape(t.title),
            (t.updated_at or "")[:16],
            escape(t.description or ""),
        )
    console.print(table)


@threads_app.command("create")
def thread_create_cmd(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Thread title.")],
    description: Annotated[
        Optional[str], typer.Option("--description", "-d", help="Optional description.")
    ] = None,
) -> None:
    """Create a thread."""
    with open_ledger(ctx) as ledger:
        thread = ledger.repo.create_thread(title, description)
    console.print(f"[green]✓[/] Created thread {thread.id}: {escape(thread.title)}")


@threads_app.command("update")
def thread_update_cmd(
    ctx: typer.Context,
    thread_id: Annotated[int, typer.Argument(help="Thread ID.")],
    title: Annotated[str, typer.Argument(help="New title.")],
    description: Annotated[
        Optional[str],
        typer.Option("--description", "-d", help="New description (omit to clear)."),
    ] = None,
) -> None:
    """Replace a thread's title and description."""
    with open_ledger(ctx) as ledger:
        thread = ledger.repo.update_thread(thread_id, title, description)
    console.print(f"[green]✓[/] Updated thread {thread.id}: {escape(thread.title)}")


@threads_app.command("delete")
def thread_delete_cmd(
    ctx: typer.Context,
    thread_id: Annotated[int, typer.Argument(help="Thread ID.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Delete a thread, its entries, and their attachment files."""
    with open_ledger(ctx) as ledger:
        thread = ledger.repo.get_thread(thread_id)
        entry_count = len(ledger.repo.list_entries(thread_id))
        console.print(f"\nDelete thread: [bold]{escape(thread.title)}[/]  ({entry_count} entries)")
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        result = ledger.delete_thread(thread_id)

    console.print(f"[green]✓[/] Deleted thread {thread_id}")
    if result.deleted_attachments:
        console.print(f"  {len(result.removed_files)} attachment files removed")
    if result.failed_files:
        console.print(f"[yellow]⚠[/] {len(result.failed_files)} files could not be removed")


@threads_app.command("reorder")
def thread_reorder_cmd(
    ctx: typer.Context,
    thread_ids: Annotated[
        list[int], typer.Argument(help="Thread IDs in the order they should be listed.")
    ],
) -> None:
    """Set the manual order: the first ID is listed first.

    Threads not named keep their current relative order after the named ones.
    """
    with open_ledger(ctx) as ledger:
        named = set(thread_ids)
        rest = [t.id for t in ledger.repo.list_threads() if t.id not in named]
        ledger.repo.reorder_threads(
            [
                {"id": thread_id, "order": pos}
                for pos, thread_id in enumerate([*thread_ids, *rest], start=1)
            ]
        )
    console.print(f"[green]✓[/] Reordered {len(thread_ids)} threads")


@threads_app.command("actions")
def thread_actions_cmd(
    ctx: typer.Context,
    thread_id: Annotated[int, typer.Argument(help="Thread ID.")],
) -> None:
    """Show incomplete action items of a thread."""
    with open_ledger(ctx) as ledger:
        ledger.repo.get_thread(thread_id)
        items = ledger.open_action_items(thread_id)

    if not items:
        console.print("[dim]No incomplete action items.[/]")
        raise typer.Exit(0)
    for item in items:
        console.print(
            f"[ ] {escape(item.text)}  [dim]({escape(item.entry_title)}, entry {item.entry_id})[/]"
        )
