"""
Config -> Kernel Bridges.

Functions that convert a LedgerConfigPack into kernel inputs.  These live
in inventory_config (the producer) because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_inventory_ledger

    ledger = build_inventory_ledger(get_active_config())
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from inventory_config.schema import LedgerConfigPack
from inventory_kernel.db.engine import get_session_factory, init_engine_from_url
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.policy import LedgerPolicy
from inventory_kernel.logging_config import configure_logging
from inventory_kernel.services.ledger_orchestrator import InventoryLedger


def build_ledger_policy(config: LedgerConfigPack) -> LedgerPolicy:
    """Translate the ``ledger`` section into the kernel's LedgerPolicy."""
    return LedgerPolicy(
        negative_quantity_policy=config.ledger.negative_quantity_policy,
        max_retries=config.ledger.max_retries,
        retry_backoff_seconds=config.ledger.retry_backoff_seconds,
        chemical_audit_enabled=config.ledger.chemical_audit_enabled,
    )


def build_engine(config: LedgerConfigPack) -> Engine:
    """Initialize the kernel engine and session factory from the pack."""
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        busy_timeout_seconds=db.busy_timeout_seconds,
    )


def configure_logging_from_config(config: LedgerConfigPack) -> None:
    configure_logging(level=getattr(logging, config.logging.level))


def build_inventory_ledger(
    config: LedgerConfigPack,
    clock: Clock | None = None,
) -> InventoryLedger:
    """
    Engine, logging and policy from one pack, wired into an InventoryLedger.

    Also registers the immutability and quantity listeners, so every
    ledger built here runs with the ORM guards on.
    """
    configure_logging_from_config(config)
    register_immutability_listeners()
    build_engine(config)
    return InventoryLedger(
        get_session_factory(),
        policy=build_ledger_policy(config),
        clock=clock,
    )
