"""dialedger init - create the data directory and database.

Creates:
  <data_dir>/dialedger.db     - database with the current schema
  <data_dir>/attachments/     - managed attachment copies
  ~/.dialedger/config.yaml    - only with --write-config (mode 0o600)

Running it again on an existing database is safe: only pending migrations
are applied.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape

from dialedger.cli.errors import console
from dialedger.cli.session import cli_config, open_ledger
from dialedger.config import ensure_global_config


def init_cmd(
    ctx: typer.Context,
    write_config: Annotated[
        bool,
        typer.Option("--write-config", help="Also create ~/.dialedger/config.yaml with defaults."),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config-path", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Create the data directory and database (safe to re-run)."""
    cfg = cli_config(ctx)
    existed = cfg.db_path.exists()

    with open_ledger(ctx) as ledger:
        cfg.attachments_path.mkdir(parents=True, exist_ok=True)
        report = ledger.migration_report

    verb = "Opened existing" if existed else "Created"
    console.print(f"[green]✓[/] {verb} database {escape(str(cfg.db_path))}")
    console.print(f"[green]✓[/] Attachments in {escape(str(cfg.attachments_path))}")
    for name in report.applied:
        console.print(f"  [green]migrated[/] {name}")
    for name in report.failed:
        console.print(f"  [red]failed[/]   {name}")

    if write_config:
        path = ensure_global_config(config_path)
        console.print(f"[green]✓[/] Global config at {escape(str(path))}")
