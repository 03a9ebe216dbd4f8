"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from dialedger.config import LedgerConfig, StorageCfg
from dialedger.db.connection import Database
from dialedger.db.repository import Repository
from dialedger.db.schema import initialize
from dialedger.ledger import Ledger


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep the real ~/.dialedger and DIALEDGER_* env vars out of every test."""
    monkeypatch.setattr("dialedger.config._GLOBAL_CONFIG_PATH", tmp_path / "global-config.yaml")
    monkeypatch.delenv("DIALEDGER_DATA_DIR", raising=False)
    monkeypatch.delenv("DIALEDGER_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "dialedger.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def ledger_config(tmp_path):
    return LedgerConfig(storage=StorageCfg(data_dir=tmp_path / "data"))


@pytest.fixture
def ledger(ledger_config):
    with Ledger.open(ledger_config) as opened:
        yield opened
