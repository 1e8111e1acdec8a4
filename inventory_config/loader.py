"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a configuration set's ``root.yaml`` and parses it into the frozen
dataclasses of ``inventory_config.schema``.  This is internal tooling;
runtime callers go through ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Required keys (``config_id``, ``version``) raise ``KeyError`` when
  missing; optional sections fall back to the schema defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed set for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrongly typed section  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from inventory_config.lifecycle import ConfigStatus
from inventory_config.schema import (
    ConfigScope,
    DatabaseSettings,
    LedgerConfigPack,
    LedgerSettings,
    LoggingSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section '{name}' must be a mapping, got {type(value).__name__}")
    return value


def parse_scope(data: dict[str, Any]) -> ConfigScope:
    """Parse a ConfigScope from a dict."""
    return ConfigScope(site=str(data.get("site", "*")))


def parse_ledger(data: dict[str, Any]) -> LedgerSettings:
    defaults = LedgerSettings()
    return LedgerSettings(
        negative_quantity_policy=str(
            data.get("negative_quantity_policy", defaults.negative_quantity_policy)
        ),
        max_retries=int(data.get("max_retries", defaults.max_retries)),
        retry_backoff_seconds=float(
            data.get("retry_backoff_seconds", defaults.retry_backoff_seconds)
        ),
        chemical_audit_enabled=bool(
            data.get("chemical_audit_enabled", defaults.chemical_audit_enabled)
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        busy_timeout_seconds=float(
            data.get("busy_timeout_seconds", defaults.busy_timeout_seconds)
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", LoggingSettings().level)).upper())


def parse_config_set(data: dict[str, Any]) -> LedgerConfigPack:
    """
    Parse a whole configuration set.

    Postconditions:
        - Returns a LedgerConfigPack whose ``checksum`` covers the parsed
          content.
    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: on an unknown status or a non-mapping section.
    """
    pack = LedgerConfigPack(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        status=ConfigStatus(data.get("status", ConfigStatus.PUBLISHED.value)),
        scope=parse_scope(_section(data, "scope")),
        ledger=parse_ledger(_section(data, "ledger")),
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
    )
    return _with_checksum(pack)


def load_config_set(directory: Path) -> LedgerConfigPack:
    """Load and parse ``directory/root.yaml``."""
    return parse_config_set(load_yaml_file(directory / "root.yaml"))


def pack_to_dict(pack: LedgerConfigPack) -> dict[str, Any]:
    """Canonical dict form of a pack, excluding the checksum itself."""
    return {
        "config_id": pack.config_id,
        "version": pack.version,
        "status": pack.status.value,
        "scope": {"site": pack.scope.site},
        "ledger": {
            "negative_quantity_policy": pack.ledger.negative_quantity_policy,
            "max_retries": pack.ledger.max_retries,
            "retry_backoff_seconds": pack.ledger.retry_backoff_seconds,
            "chemical_audit_enabled": pack.ledger.chemical_audit_enabled,
        },
        "database": {
            "url": pack.database.url,
            "echo": pack.database.echo,
            "pool_size": pack.database.pool_size,
            "max_overflow": pack.database.max_overflow,
            "busy_timeout_seconds": pack.database.busy_timeout_seconds,
        },
        "logging": {"level": pack.logging.level},
    }


def _with_checksum(pack: LedgerConfigPack) -> LedgerConfigPack:
    return replace(pack, checksum=compute_checksum(pack_to_dict(pack)))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
