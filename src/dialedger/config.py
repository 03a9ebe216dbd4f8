"""dialedger configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site - not in this module)
  2. Environment variables  (DIALEDGER_DATA_DIR, DIALEDGER_LOG_LEVEL)
  3. Per-directory dialedger.yaml  (in the working directory)
  4. Global ~/.dialedger/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load() - never yaml.load().
"""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".dialedger"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "dialedger.yaml"

# Known top-level sections - unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(["storage", "database", "logging"])

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Where the database and attachment copies live (dialedger.yaml: storage:).

    Attributes:
        data_dir: Root directory for the database and attachments.
        db_name: SQLite file name inside data_dir.
        attachments_dir: Attachment directory; relative paths are resolved
            against data_dir.
        max_upload_mb: Largest file accepted as an attachment.
    """

    data_dir: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR / "data")
    db_name: str = "dialedger.db"
    attachments_dir: str = "attachments"
    max_upload_mb: int = 100


@dataclass
class DatabaseCfg:
    """Schema management (dialedger.yaml: database:)."""

    strict_migrations: bool = False


@dataclass
class LoggingCfg:
    """Log verbosity (dialedger.yaml: logging:)."""

    level: str = "WARNING"


@dataclass
class LedgerConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)

    @property
    def db_path(self) -> Path:
        return self.storage.data_dir / self.storage.db_name

    @property
    def attachments_path(self) -> Path:
        return self.storage.data_dir / self.storage.attachments_dir

    @property
    def max_upload_bytes(self) -> int:
        return self.storage.max_upload_mb * 1024 * 1024

    @property
    def log_level(self) -> int:
        return getattr(logging, self.logging.level)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' - ignored.",
                UserWarning,
                stacklevel=4,
            )


def _check_level(level: str) -> str:
    level = level.upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {', '.join(sorted(_LOG_LEVELS))}, got '{level}'"
        )
    return level


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return data


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> LedgerConfig:
    """Build a *LedgerConfig* from a merged raw YAML dict."""
    cfg = LedgerConfig()

    if "storage" in data:
        s = data["storage"] or {}
        try:
            max_upload_mb = int(s.get("max_upload_mb", cfg.storage.max_upload_mb))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"storage.max_upload_mb must be an integer: {exc}") from exc
        if max_upload_mb < 1:
            raise ConfigError(f"storage.max_upload_mb must be >= 1, got {max_upload_mb}")
        cfg.storage = StorageCfg(
            data_dir=Path(s["data_dir"]).expanduser() if s.get("data_dir") else cfg.storage.data_dir,
            db_name=str(s.get("db_name", cfg.storage.db_name)),
            attachments_dir=str(s.get("attachments_dir", cfg.storage.attachments_dir)),
            max_upload_mb=max_upload_mb,
        )

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(
            strict_migrations=bool(d.get("strict_migrations", cfg.database.strict_migrations)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(level=_check_level(str(lg.get("level", cfg.logging.level))))

    return cfg


def _apply_env_overrides(cfg: LedgerConfig) -> LedgerConfig:
    """Apply DIALEDGER_* environment variable overrides (layer 2)."""
    if data_dir := os.environ.get("DIALEDGER_DATA_DIR"):
        cfg.storage.data_dir = Path(data_dir).expanduser()
    if level := os.environ.get("DIALEDGER_LOG_LEVEL"):
        cfg.logging.level = _check_level(level)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> LedgerConfig:
    """Merge the global file, the per-directory file and DIALEDGER_* env vars.

    --data-dir and --verbose are applied by the CLI on the returned object.

    Raises:
        ConfigError: A file is not valid YAML or holds an invalid value.
    """
    layers = [
        global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH,
        (project_dir if project_dir is not None else Path.cwd()) / _PROJECT_CONFIG_NAME,
    ]
    merged: dict[str, Any] = {}
    for path in layers:
        if not path.is_file():
            continue
        raw = _load_yaml(path)
        _warn_unknown_keys(raw, path)
        merged = _deep_merge(merged, raw)
    return _apply_env_overrides(_cfg_from_dict(merged))


_DEFAULT_GLOBAL_YAML = """\
# dialedger global configuration.
# Override per directory with dialedger.yaml or DIALEDGER_DATA_DIR.

storage:
  data_dir: {data_dir}
  max_upload_mb: 100

database:
  strict_migrations: false

logging:
  level: WARNING
"""


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Write ``~/.dialedger/config.yaml`` with defaults unless it already exists.

    The directory is made 0o700 and the file 0o600. Returns the file's path.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if not target.exists():
        target.write_text(
            _DEFAULT_GLOBAL_YAML.format(data_dir=_GLOBAL_CONFIG_DIR / "data"), encoding="utf-8"
        )
        target.chmod(0o600)
    return target
