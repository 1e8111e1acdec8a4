"""
Configuration Validator (``inventory_config.validator``).

Responsibility
--------------
Validates a parsed LedgerConfigPack before it is handed to callers, so a
bad value fails at load time rather than at the first posting.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the set MUST
  NOT be used.
* Validation warnings  -> the set is usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_config.schema import LedgerConfigPack

_NEGATIVE_POLICIES = frozenset({"reject", "allow_and_flag"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(pack: LedgerConfigPack) -> ConfigValidationResult:
    """Validate every section of a configuration set."""
    result = ConfigValidationResult()

    _validate_identity(pack, result)
    _validate_ledger(pack, result)
    _validate_database(pack, result)
    _validate_logging(pack, result)

    return result


def _validate_identity(pack: LedgerConfigPack, result: ConfigValidationResult) -> None:
    if not pack.config_id.strip():
        result.add_error("config_id must not be empty")
    if pack.version < 1:
        result.add_error(f"version must be >= 1, got {pack.version}")


def _validate_ledger(pack: LedgerConfigPack, result: ConfigValidationResult) -> None:
    ledger = pack.ledger
    if ledger.negative_quantity_policy not in _NEGATIVE_POLICIES:
        result.add_error(
            f"Unknown ledger.negative_quantity_policy '{ledger.negative_quantity_policy}' "
            f"(expected one of {sorted(_NEGATIVE_POLICIES)})"
        )
    if ledger.max_retries < 1:
        result.add_error(f"ledger.max_retries must be >= 1, got {ledger.max_retries}")
    if ledger.retry_backoff_seconds < 0:
        result.add_error(
            f"ledger.retry_backoff_seconds must be >= 0, got {ledger.retry_backoff_seconds}"
        )
    if not ledger.chemical_audit_enabled:
        result.add_warning("ledger.chemical_audit_enabled is off; no chemical audit trail")


def _validate_database(pack: LedgerConfigPack, result: ConfigValidationResult) -> None:
    db = pack.database
    if not db.url:
        result.add_error("database.url must not be empty")
    elif not db.url.startswith(("sqlite", "postgresql")):
        result.add_error(f"database.url must be a SQLite or PostgreSQL URL, got '{db.url}'")
    if db.pool_size < 1:
        result.add_error(f"database.pool_size must be >= 1, got {db.pool_size}")
    if db.max_overflow < 0:
        result.add_error(f"database.max_overflow must be >= 0, got {db.max_overflow}")
    if db.busy_timeout_seconds < 0:
        result.add_error(
            f"database.busy_timeout_seconds must be >= 0, got {db.busy_timeout_seconds}"
        )


def _validate_logging(pack: LedgerConfigPack, result: ConfigValidationResult) -> None:
    if pack.logging.level not in _LOG_LEVELS:
        result.add_error(f"Unknown logging.level '{pack.logging.level}'")
