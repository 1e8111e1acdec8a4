"""
LedgerConfigPack schema.

YAML configuration sets are parsed by the loader into these frozen
dataclasses.  The pack is the only runtime configuration artifact; bridges
turn it into kernel inputs (LedgerPolicy, engine, InventoryLedger).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_config.lifecycle import ConfigStatus

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigScope:
    """Site a configuration set applies to; ``"*"`` matches any site."""

    site: str = "*"


@dataclass(frozen=True)
class LedgerSettings:
    """Posting behaviour, mirrored onto the kernel's LedgerPolicy."""

    negative_quantity_policy: str = "reject"
    max_retries: int = 5
    retry_backoff_seconds: float = 0.05
    chemical_audit_enabled: bool = True


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///inventory_ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    busy_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Pack
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfigPack:
    """
    A validated configuration set.

    ``checksum`` is the SHA-256 of the canonical JSON form of the parsed
    set, computed before any environment override is applied, so it
    identifies the reviewed source rather than the deployment.
    """

    config_id: str
    version: int
    status: ConfigStatus = ConfigStatus.PUBLISHED
    scope: ConfigScope = field(default_factory=ConfigScope)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
