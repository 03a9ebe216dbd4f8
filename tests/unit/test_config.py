"""Tests for the dialedger config loader."""

from __future__ import annotations

import logging
import stat
from pathlib import Path

import pytest
import yaml

from dialedger.config import (
    ConfigError,
    LedgerConfig,
    ensure_global_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _missing(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))

    assert cfg.storage.data_dir == Path.home() / ".dialedger" / "data"
    assert cfg.storage.db_name == "dialedger.db"
    assert cfg.max_upload_bytes == 100 * 1024 * 1024
    assert cfg.database.strict_migrations is False
    assert cfg.log_level == logging.WARNING


def test_derived_paths() -> None:
    cfg = LedgerConfig()
    cfg.storage.data_dir = Path("/srv/ledger")
    assert cfg.db_path == Path("/srv/ledger/dialedger.db")
    assert cfg.attachments_path == Path("/srv/ledger/attachments")


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"storage": {"data_dir": str(tmp_path / "g")}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.storage.data_dir == tmp_path / "g"
    assert cfg.storage.max_upload_mb == 100


def test_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"storage": {"data_dir": str(tmp_path / "g"), "max_upload_mb": 5}})
    _write_yaml(tmp_path / "dialedger.yaml", {"storage": {"data_dir": str(tmp_path / "p")}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.storage.data_dir == tmp_path / "p"
    # deep merge keeps the global value for keys the project file does not set
    assert cfg.storage.max_upload_mb == 5


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "dialedger.yaml", {"storage": {"data_dir": str(tmp_path / "p")}})
    monkeypatch.setenv("DIALEDGER_DATA_DIR", str(tmp_path / "env"))
    monkeypatch.setenv("DIALEDGER_LOG_LEVEL", "debug")

    cfg = load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))
    assert cfg.storage.data_dir == tmp_path / "env"
    assert cfg.logging.level == "DEBUG"


def test_empty_file_gives_defaults(tmp_path: Path) -> None:
    (tmp_path / "dialedger.yaml").write_text("", encoding="utf-8")
    cfg = load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))
    assert cfg.storage.db_name == "dialedger.db"


def test_strict_migrations_flag(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "dialedger.yaml", {"database": {"strict_migrations": True}})
    cfg = load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))
    assert cfg.database.strict_migrations is True


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "dialedger.yaml", {"embedding": {"model": "x"}})
    with pytest.warns(UserWarning, match="embedding"):
        load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))


def test_bad_log_level(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "dialedger.yaml", {"logging": {"level": "LOUD"}})
    with pytest.raises(ConfigError, match="logging.level"):
        load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))


@pytest.mark.parametrize("value", ["lots", 0, -3])
def test_bad_upload_limit(tmp_path: Path, value) -> None:
    _write_yaml(tmp_path / "dialedger.yaml", {"storage": {"max_upload_mb": value}})
    with pytest.raises(ConfigError, match="max_upload_mb"):
        load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))


def test_top_level_list_rejected(tmp_path: Path) -> None:
    (tmp_path / "dialedger.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))


def test_malformed_yaml_is_config_error(tmp_path: Path) -> None:
    (tmp_path / "dialedger.yaml").write_text("storage: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(project_dir=tmp_path, global_config_path=_missing(tmp_path))


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".dialedger" / "config.yaml"
    path = ensure_global_config(target)

    assert path == target
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert set(data) == {"storage", "database", "logging"}


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("storage:\n  max_upload_mb: 7\n", encoding="utf-8")
    ensure_global_config(target)
    assert "max_upload_mb: 7" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = ensure_global_config(tmp_path / "config.yaml")
    cfg = load_config(project_dir=tmp_path, global_config_path=target)
    assert cfg.storage.max_upload_mb == 100
