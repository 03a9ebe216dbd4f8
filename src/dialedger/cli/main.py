"""dialedger CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from dialedger.cli.attachments import attach_app
from dialedger.cli.entries import entries_app
from dialedger.cli.errors import EXIT_VALIDATION, console, err_config
from dialedger.cli.init import init_cmd
from dialedger.cli.search import search_cmd
from dialedger.cli.status import status_cmd
from dialedger.cli.threads import threads_app
from dialedger.config import ConfigError, load_config


def _installed_version() -> str:
    try:
        return importlib.metadata.version("dialedger")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dialedger {_installed_version()}")
        raise typer.Exit()


def _setup_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app = typer.Typer(
    name="dialedger",
    help=(
        "dialedger - a personal ledger of threads, dated entries and attachments.\n\n"
        "  dialedger thread create  Start a topic.\n"
        "  dialedger entry add      Record a note, meeting, email, ... under it.\n"
        "  dialedger search         Find anything by substring."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", help="Directory holding dialedger.db and attachments/."),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug output to stderr.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """dialedger - a personal ledger of threads, dated entries and attachments."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(EXIT_VALIDATION) from exc

    if data_dir is not None:
        cfg.storage.data_dir = data_dir.expanduser()
    _setup_logging(logging.DEBUG if verbose else cfg.log_level)
    ctx.obj = cfg


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("search")(search_cmd)
app.add_typer(threads_app, name="thread")
app.add_typer(entries_app, name="entry")
app.add_typer(attach_app, name="attach")


@app.command("version")
def version_cmd() -> None:
    """Show the installed dialedger version."""
    typer.echo(f"dialedger {_installed_version()}")


if __name__ == "__main__":
    app()
