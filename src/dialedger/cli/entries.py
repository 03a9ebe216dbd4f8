"""dialedger entry commands.

Commands:
  dialedger entry list THREAD                       - entries oldest first
  dialedger entry show ID                           - all fields + attachments
  dialedger entry add THREAD --type T --date D      - new entry
        [--title ..] [--field key=value]... [--item TEXT]... [--done TEXT]...
        [--json '{...}'] [--attach FILE]...
  dialedger entry edit ID [--title ..] [--date ..] [--field key=value]...
        [--item TEXT]... [--complete N]... [--json '{...}']
  dialedger entry delete ID [--yes]                 - entry + its attachment files
  dialedger entry import-eml THREAD FILE [--no-attach]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dialedger.cli.errors import console
from dialedger.cli.session import open_ledger
from dialedger.db.errors import ValidationError
from dialedger.db.models import METADATA_TYPES, Entry, EntryType
from dialedger.db.repository import UNSET

entries_app = typer.Typer(
    name="entry",
    help="Add, list, edit and delete dated entries.",
    add_completion=False,
)


# ---------------------------------------------------------------------------
# Metadata from command-line options
# ---------------------------------------------------------------------------


def _field_keys(entry_type: str) -> list[str]:
    """Metadata keys settable with --field for *entry_type*."""
    return [k for k in METADATA_TYPES[entry_type]().to_dict() if k != "items"]


def _parse_json(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"--json is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("--json must be a JSON object")
    return data


def _apply_fields(data: dict[str, Any], entry_type: str, fields: list[str]) -> None:
    allowed = _field_keys(entry_type)
    for item in fields:
        key, sep, value = item.partition("=")
        if not sep:
            raise ValidationError(f"--field expects key=value, got '{item}'")
        if key not in allowed:
            raise ValidationError(
                f"'{key}' is not a {entry_type} field (allowed: {', '.join(allowed)})"
            )
        data[key] = value


def _apply_items(
    data: dict[str, Any], entry_type: str, todo: list[str], done: list[str], complete: list[int]
) -> None:
    if not (todo or done or complete):
        return
    if entry_type != EntryType.ACTION_ITEMS.value:
        raise ValidationError("--item/--done/--complete only apply to action_items entries")
    items = data.get("items")
    items = list(items) if isinstance(items, list) else []
    items += [{"text": t, "completed": False} for t in todo]
    items += [{"text": t, "completed": True} for t in done]
    for number in complete:
        if not 1 <= number <= len(items) or not isinstance(items[number - 1], dict):
            raise ValidationError(f"no action item #{number} (entry has {len(items)})")
        items[number - 1] = {**items[number - 1], "completed": True}
    data["items"] = items


def _stored_metadata(entry: Entry) -> dict[str, Any]:
    try:
        return entry.metadata_dict
    except ValueError as exc:
        raise ValidationError(
            f"entry {entry.id} has metadata that is not valid JSON;"
            " replace it with --json"
        ) from exc


def _build_metadata(
    entry_type: str,
    base: dict[str, Any],
    raw_json: Optional[str],
    fields: list[str],
    todo: list[str],
    done: list[str],
    complete: list[int],
) -> dict[str, Any]:
    data = dict(base)
    if raw_json is not None:
        data.update(_parse_json(raw_json))
    _apply_fields(data, entry_type, fields)
    _apply_items(data, entry_type, todo, done, complete)
    return data


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@entries_app.command("list")
def entry_list_cmd(
    ctx: typer.Context,
    thread_id: Annotated[int, typer.Argument(help="Thread ID.")],
) -> None:
    """List a thread's entries, oldest first."""
    with open_ledger(ctx) as ledger:
        thread = ledger.repo.get_thread(thread_id)
        entries = ledger.repo.list_entries(thread_id)
        attachment_counts = {e.id: len(ledger.repo.list_attachments(e.id)) for e in entries}

    if not entries:
        console.print(f"[yellow]No entries in '{escape(thread.title)}'.[/]")
        console.print(f"  Run:  dialedger entry add {thread_id} --type note --date <date>")
        raise typer.Exit(0)

    table = Table(title=escape(thread.title), show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Date", style="dim")
    table.add_column("Type")
    table.add_column("Title", style="bold")
    table.add_column("Files", justify="right")
    for e in entries:
        table.add_row(
            str(e.id),
            e.entry_date[:16],
            e.entry_type,
            escape(e.title or ""),
            str(attachment_counts[e.id] or ""),
        )
    console.print(table)


@entries_app.command("show")
def entry_show_cmd(
    ctx: typer.Context,
    entry_id: Annotated[int, typer.Argument(help="Entry ID.")],
) -> None:
    """Show every field of one entry and its attachments."""
    with open_ledger(ctx) as ledger:
        entry = ledger.repo.get_entry(entry_id)
        attachments = ledger.repo.list_attachments(entry_id)

    lines = [
        f"Type:   {entry.entry_type}",
        f"Date:   {escape(entry.entry_date)}",
        f"Thread: {entry.thread_id}",
    ]
    try:
        data = entry.metadata_dict
    except ValueError:
        data = {}
        lines.append("[yellow]Metadata is not valid JSON.[/]")
    for key, value in data.items():
        if key == "items" and isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    mark = "[x]" if item.get("completed") else "[ ]"
                    lines.append(f"  {escape(mark)} {escape(str(item.get('text', '')))}")
        elif value:
            lines.append(f"{escape(key)}: {escape(str(value))}")
    if entry.content:
        lines.append(escape(entry.content))
    for a in attachments:
        lines.append(f"[dim]attachment {a.id}:[/] {escape(a.file_name)}")
    console.print(Panel("\n".join(lines), title=f"[bold]{escape(entry.title or 'Untitled')}[/]"))


@entries_app.command("add")
def entry_add_cmd(
    ctx: typer.Context,
    thread_id: Annotated[int, typer.Argument(help="Thread ID.")],
    entry_type: Annotated[EntryType, typer.Option("--type", "-t", help="Entry type.")],
    entry_date: Annotated[str, typer.Option("--date", help="Entry date, e.g. 2024-05-01T10:00.")],
    title: Annotated[Optional[str], typer.Option("--title", help="Display title.")] = None,
    fields: Annotated[
        Optional[list[str]], typer.Option("--field", "-f", help="Metadata field as key=value.")
    ] = None,
    items: Annotated[
        Optional[list[str]], typer.Option("--item", help="Open action item (action_items only).")
    ] = None,
    done: Annotated[
        Optional[list[str]], typer.Option("--done", help="Completed action item.")
    ] = None,
    raw_json: Annotated[
        Optional[str], typer.Option("--json", help="Metadata as a JSON object.")
    ] = None,
    attach: Annotated[
        Optional[list[Path]], typer.Option("--attach", "-a", help="File to attach (repeatable).")
    ] = None,
) -> None:
    """Add an entry to a thread."""
    with open_ledger(ctx) as ledger:
        metadata = _build_metadata(
            entry_type.value, {}, raw_json, fields or [], items or [], done or [], []
        )
        entry, attached = ledger.add_entry(
            thread_id,
            entry_type,
            entry_date,
            title=title,
            metadata=metadata or None,
            files=attach or [],
        )

    console.print(f"[green]✓[/] Added {entry.entry_type} entry {entry.id}")
    for a in attached:
        console.print(f"  attached {escape(a.file_name)} (attachment {a.id})")


@entries_app.command("edit")
def entry_edit_cmd(
    ctx: typer.Context,
    entry_id: Annotated[int, typer.Argument(help="Entry ID.")],
    title: Annotated[Optional[str], typer.Option("--title", help="New title.")] = None,
    clear_title: Annotated[bool, typer.Option("--clear-title", help="Remove the title.")] = False,
    entry_date: Annotated[Optional[str], typer.Option("--date", help="New entry date.")] = None,
    fields: Annotated[
        Optional[list[str]], typer.Option("--field", "-f", help="Set metadata field key=value.")
    ] = None,
    items: Annotated[
        Optional[list[str]], typer.Option("--item", help="Append an open action item.")
    ] = None,
    complete: Annotated[
        Optional[list[int]], typer.Option("--complete", help="Mark action item N (1-based) done.")
    ] = None,
    raw_json: Annotated[
        Optional[str], typer.Option("--json", help="Replace metadata with this JSON object.")
    ] = None,
) -> None:
    """Change the fields given; everything else is left as it is."""
    if title is not None and clear_title:
        raise typer.BadParameter("use either --title or --clear-title")

    with open_ledger(ctx) as ledger:
        entry = ledger.repo.get_entry(entry_id)
        metadata: Any = UNSET
        if raw_json is not None or fields or items or complete:
            base = {} if raw_json is not None else _stored_metadata(entry)
            metadata = _build_metadata(
                entry.entry_type, base, raw_json, fields or [], items or [], [], complete or []
            )
        if clear_title:
            new_title: Any = None
        else:
            new_title = title if title is not None else UNSET
        entry = ledger.repo.update_entry(
            entry_id,
            title=new_title,
            entry_date=entry_date if entry_date is not None else UNSET,
            metadata=metadata,
        )

    console.print(f"[green]✓[/] Updated entry {entry.id}")


@entries_app.command("delete")
def entry_delete_cmd(
    ctx: typer.Context,
    entry_id: Annotated[int, typer.Argument(help="Entry ID.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Delete an entry and its attachment files."""
    with open_ledger(ctx) as ledger:
        entry = ledger.repo.get_entry(entry_id)
        n_files = len(ledger.repo.list_attachments(entry_id))
        console.print(
            f"\nDelete {entry.entry_type} entry: [bold]{escape(entry.title or 'Untitled')}[/]"
            f"  ({n_files} attachments)"
        )
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        result = ledger.delete_entry(entry_id)

    console.print(f"[green]✓[/] Deleted entry {entry_id}")
    if result.failed_files:
        console.print(f"[yellow]⚠[/] {len(result.failed_files)} files could not be removed")


@entries_app.command("import-eml")
def entry_import_eml_cmd(
    ctx: typer.Context,
    thread_id: Annotated[int, typer.Argument(help="Thread ID.")],
    path: Annotated[Path, typer.Argument(help=".eml file to import.")],
    no_attach: Annotated[
        bool, typer.Option("--no-attach", help="Do not attach the .eml file itself.")
    ] = False,
) -> None:
    """Create an email entry from an .eml file."""
    with open_ledger(ctx) as ledger:
        entry = ledger.import_eml(thread_id, path, attach_original=not no_attach)
    console.print(f"[green]✓[/] Imported email entry {entry.id}: {escape(entry.title or '')}")
