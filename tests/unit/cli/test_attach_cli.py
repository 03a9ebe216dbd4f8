"""Tests for the dialedger attach commands."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from dialedger.cli.errors import EXIT_FILE_MISSING, EXIT_NOT_FOUND, EXIT_VALIDATION
from dialedger.cli.main import app
from dialedger.config import LedgerConfig, StorageCfg
from dialedger.ledger import Ledger

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(data_dir: Path, *args: str, input: str | None = None):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args], input=input)


def _ledger(data_dir: Path) -> Ledger:
    return Ledger.open(LedgerConfig(storage=StorageCfg(data_dir=data_dir)))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    with _ledger(path) as ledger:
        t = ledger.repo.create_thread("t")
        ledger.repo.create_entry(t.id, "file", "2024-01-01")
    return path


@pytest.fixture
def src(tmp_path: Path) -> Path:
    path = tmp_path / "budget.csv"
    path.write_text("q,amount\n3,100\n", encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# add / list
# ---------------------------------------------------------------------------


def test_add_and_list(data_dir: Path, src: Path) -> None:
    result = _run(data_dir, "attach", "add", "1", str(src))
    assert result.exit_code == 0, result.output
    assert "Attached budget.csv" in result.output

    result = _run(data_dir, "attach", "list", "1")
    assert result.exit_code == 0
    assert "budget.csv" in result.output


def test_add_with_name(data_dir: Path, src: Path) -> None:
    _run(data_dir, "attach", "add", "1", str(src), "--name", "q3.csv")
    with _ledger(data_dir) as ledger:
        assert ledger.repo.list_attachments(1)[0].file_name == "q3.csv"


def test_add_directory_rejected(data_dir: Path, tmp_path: Path) -> None:
    result = _run(data_dir, "attach", "add", "1", str(tmp_path))
    assert result.exit_code == EXIT_VALIDATION
    assert "folders cannot be attached" in result.output


def test_add_to_unknown_entry(data_dir: Path, src: Path) -> None:
    assert _run(data_dir, "attach", "add", "9", str(src)).exit_code == EXIT_NOT_FOUND


def test_add_over_limit(data_dir: Path, tmp_path: Path) -> None:
    (tmp_path / "dialedger.yaml").write_text("storage:\n  max_upload_mb: 1\n", encoding="utf-8")
    big = tmp_path / "big.bin"
    big.write_bytes(b"\0" * (1024 * 1024 + 1))
    result = _run(data_dir, "attach", "add", "1", str(big))
    assert result.exit_code == EXIT_VALIDATION


def test_list_none(data_dir: Path) -> None:
    result = _run(data_dir, "attach", "list", "1")
    assert result.exit_code == 0
    assert "no attachments" in result.output


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


def test_export(data_dir: Path, src: Path, tmp_path: Path) -> None:
    _run(data_dir, "attach", "add", "1", str(src))
    out = tmp_path / "out"
    out.mkdir()
    result = _run(data_dir, "attach", "export", "1", str(out))
    assert result.exit_code == 0, result.output
    assert (out / "budget.csv").read_text(encoding="utf-8") == src.read_text(encoding="utf-8")


def test_export_missing_file(data_dir: Path, src: Path, tmp_path: Path) -> None:
    _run(data_dir, "attach", "add", "1", str(src))
    with _ledger(data_dir) as ledger:
        Path(ledger.repo.get_attachment(1).file_path).unlink()
    result = _run(data_dir, "attach", "export", "1", str(tmp_path))
    assert result.exit_code == EXIT_FILE_MISSING


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


def test_delete(data_dir: Path, src: Path) -> None:
    _run(data_dir, "attach", "add", "1", str(src))
    with _ledger(data_dir) as ledger:
        stored = Path(ledger.repo.get_attachment(1).file_path)

    result = _run(data_dir, "attach", "delete", "1", "--yes")

    assert result.exit_code == 0
    assert not stored.exists()
    with _ledger(data_dir) as ledger:
        assert ledger.repo.list_attachments(1) == []


def test_delete_unknown(data_dir: Path) -> None:
    assert _run(data_dir, "attach", "delete", "3", "--yes").exit_code == EXIT_NOT_FOUND
