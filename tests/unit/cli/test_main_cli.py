"""Tests for the root command, init and status."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from typer.testing import CliRunner

from dialedger.cli.errors import EXIT_STORAGE, EXIT_VALIDATION
from dialedger.cli.main import app
from dialedger.db.migrations import Migration

runner = CliRunner()


def _run(data_dir: Path, *args: str):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args])


def _broken(conn):
    raise sqlite3.OperationalError("disk I/O error")


_BROKEN = [Migration("always_breaks", "fails", needed=lambda conn: True, apply=_broken)]


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("dialedger ")


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "dialedger" in result.output


# ---------------------------------------------------------------------------
# config handling
# ---------------------------------------------------------------------------


def test_env_data_dir_used(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DIALEDGER_DATA_DIR", str(tmp_path / "env-data"))
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "env-data" / "dialedger.db").exists()


def test_flag_beats_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DIALEDGER_DATA_DIR", str(tmp_path / "env-data"))
    _run(tmp_path / "flag-data", "init")
    assert (tmp_path / "flag-data" / "dialedger.db").exists()
    assert not (tmp_path / "env-data").exists()


def test_invalid_config_exits(tmp_path: Path) -> None:
    (tmp_path / "dialedger.yaml").write_text("logging:\n  level: LOUD\n", encoding="utf-8")
    result = _run(tmp_path / "data", "thread", "list")
    assert result.exit_code == EXIT_VALIDATION
    assert "Invalid configuration" in result.output


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def test_init_creates_db_and_attachments_dir(tmp_path: Path) -> None:
    data = tmp_path / "data"
    result = _run(data, "init")
    assert result.exit_code == 0, result.output
    assert "Created database" in result.output
    assert (data / "dialedger.db").exists()
    assert (data / "attachments").is_dir()


def test_init_twice(tmp_path: Path) -> None:
    data = tmp_path / "data"
    _run(data, "init")
    result = _run(data, "init")
    assert result.exit_code == 0
    assert "Opened existing database" in result.output


def test_init_write_config(tmp_path: Path) -> None:
    target = tmp_path / "cfg" / "config.yaml"
    result = _run(tmp_path / "data", "init", "--write-config", "--config-path", str(target))
    assert result.exit_code == 0, result.output
    assert target.exists()


def test_init_strict_failure_exits_storage(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("dialedger.db.migrations.MIGRATIONS", _BROKEN)
    (tmp_path / "dialedger.yaml").write_text(
        "database:\n  strict_migrations: true\n", encoding="utf-8"
    )
    result = _run(tmp_path / "data", "init")
    assert result.exit_code == EXIT_STORAGE
    assert "strict_migrations" in result.output


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


def test_status_without_db(tmp_path: Path) -> None:
    result = _run(tmp_path / "data", "status")
    assert result.exit_code == 0
    assert "dialedger init" in result.output
    assert not (tmp_path / "data" / "dialedger.db").exists()


def test_status_counts(tmp_path: Path) -> None:
    data = tmp_path / "data"
    _run(data, "thread", "create", "Project X")
    result = _run(data, "status")
    assert result.exit_code == 0, result.output
    assert "Threads:      1" in result.output
    assert "up to date" in result.output


def test_status_reports_failed_migration(tmp_path: Path, monkeypatch) -> None:
    data = tmp_path / "data"
    _run(data, "init")
    monkeypatch.setattr("dialedger.db.migrations.MIGRATIONS", _BROKEN)

    result = _run(data, "status", "-v")

    assert result.exit_code == 0, result.output
    assert "Schema migrations failed: always_breaks" in result.output
    assert "always_breaks" in result.output
    assert "failed" in result.output
