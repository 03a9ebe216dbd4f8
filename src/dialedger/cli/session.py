"""Shared CLI plumbing: config from the root callback and the open Ledger."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from dialedger.cli.errors import console, reported_errors, warn_migrations_failed
from dialedger.config import LedgerConfig, load_config
from dialedger.ledger import Ledger


def cli_config(ctx: typer.Context) -> LedgerConfig:
    """Return the config prepared by the root callback (loads it if absent)."""
    root = ctx.find_root()
    if not isinstance(root.obj, LedgerConfig):
        root.obj = load_config()
    return root.obj


@contextmanager
def open_ledger(ctx: typer.Context) -> Iterator[Ledger]:
    """Open the ledger for one command; errors become exit codes."""
    cfg = cli_config(ctx)
    with reported_errors():
        ledger = Ledger.open(cfg)
    try:
        if ledger.migration_report.failed:
            console.print(warn_migrations_failed(ledger.migration_report.failed))
        with reported_errors():
            yield ledger
    finally:
        ledger.close()
