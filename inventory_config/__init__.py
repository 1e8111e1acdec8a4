"""
inventory_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables.  Returns a ``LedgerConfigPack``.

Architecture position:
    Configuration.  This package sits above ``inventory_kernel``.  The
    kernel MUST NEVER import from ``inventory_config``; bridges in this
    package translate a pack into kernel inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: a set must pass ``validate_configuration``
      before a pack is returned.
    - Deterministic checksum: the same YAML always yields the same checksum.
    - Only PUBLISHED sets are selected.

Failure modes:
    - ``FileNotFoundError`` -- no matching configuration set for the site.
    - ``ValueError`` -- schema or value validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVENTORY_CONFIG_TRACE`` log entry with the config id, version,
    checksum, site and negative-quantity policy.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from inventory_config.lifecycle import ConfigStatus
from inventory_config.loader import load_config_set
from inventory_config.schema import LedgerConfigPack
from inventory_config.validator import validate_configuration

_logger = logging.getLogger("inventory_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"


def get_active_config(
    site: str = "*",
    config_dir: Path | None = None,
) -> LedgerConfigPack:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned pack has passed validation.
        - ``INVENTORY_DATABASE_URL``, when set, replaces ``database.url``
          (the checksum still identifies the source YAML).
        - An ``INVENTORY_CONFIG_TRACE`` log entry is emitted.

    Args:
        site: Site identifier for scope matching; ``"*"`` sets match any site.
        config_dir: Override path to the configuration sets directory.
            Defaults to inventory_config/sets/.

    Raises:
        FileNotFoundError: If no matching configuration set is found.
        ValueError: If configuration validation fails.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR

    pack = _find_matching_config(sets_dir, site)

    validation = validate_configuration(pack)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        pack = replace(pack, database=replace(pack.database, url=env_url))

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_set_id": pack.config_id,
            "config_set_version": pack.version,
            "checksum": pack.checksum,
            "scope_site": pack.scope.site,
            "negative_quantity_policy": pack.ledger.negative_quantity_policy,
            "database_url_overridden": bool(env_url),
        },
    )
    return pack


def _find_matching_config(sets_dir: Path, site: str) -> LedgerConfigPack:
    """Find the PUBLISHED configuration set for a site.

    An exact site match wins over a ``"*"`` set; among equals the highest
    version wins.  Falls back to the only available set if exactly one
    exists (for development/testing convenience).

    Raises:
        FileNotFoundError: If ``sets_dir`` does not exist or no
            configuration set matches.
    """
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    available: list[LedgerConfigPack] = []
    for subdir in sorted(sets_dir.iterdir()):
        if not subdir.is_dir() or not (subdir / "root.yaml").exists():
            continue
        available.append(load_config_set(subdir))

    published = [p for p in available if p.status == ConfigStatus.PUBLISHED]
    exact = [p for p in published if p.scope.site == site]
    wildcard = [p for p in published if p.scope.site == "*"]
    for candidates in (exact, wildcard):
        if candidates:
            return max(candidates, key=lambda p: p.version)

    if len(available) == 1:
        return available[0]

    raise FileNotFoundError(
        f"No configuration set found for site={site!r} in {sets_dir}"
    )


__all__ = [
    "ConfigStatus",
    "DATABASE_URL_ENV",
    "LedgerConfigPack",
    "get_active_config",
]
