"""Tests for the SQLite connection layer."""

from __future__ import annotations

import sqlite3

import pytest

from dialedger.db.connection import Database
from dialedger.db.errors import StorageError


def test_connect_creates_file_and_parent_dir(tmp_path):
    db_path = tmp_path / "nested" / "dir" / "dialedger.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_foreign_keys_enabled(tmp_path):
    conn = Database(tmp_path / "t.db").connect()
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    conn.close()


def test_wal_mode(tmp_path):
    conn = Database(tmp_path / "t.db").connect()
    assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    conn.close()


def test_rows_are_addressable_by_name(tmp_path):
    conn = Database(tmp_path / "t.db").connect()
    row = conn.execute("SELECT 1 AS one").fetchone()
    assert isinstance(row, sqlite3.Row)
    assert row["one"] == 1
    conn.close()


def test_context_manager_closes(tmp_path):
    db = Database(tmp_path / "t.db")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    assert db._conn is None


def test_directory_path_raises_storage_error(tmp_path):
    target = tmp_path / "is_a_dir"
    target.mkdir()
    with pytest.raises(StorageError):
        Database(target).connect()


def test_non_database_file_raises_storage_error(tmp_path):
    target = tmp_path / "junk.db"
    target.write_bytes(b"this is not sqlite " * 100)
    with pytest.raises(StorageError):
        Database(target).connect()
