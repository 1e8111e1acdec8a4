"""Pure domain layer: DTOs, policy, clock, quantity helpers."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    Actor,
    ChemicalAuditRecord,
    IntegrityIssue,
    ItemSnapshot,
    ItemStats,
    LineRecord,
    LineRequest,
    LineHistoryEntry,
    LotSnapshot,
    PostingRequest,
    PostingResult,
    TransactionRecord,
)
from inventory_kernel.domain.policy import LedgerPolicy, NegativeQuantityPolicy
from inventory_kernel.domain.quantities import classify_chemical_action, parse_quantity

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Actor",
    "LineRequest",
    "PostingRequest",
    "LineRecord",
    "TransactionRecord",
    "LotSnapshot",
    "ItemSnapshot",
    "PostingResult",
    "ItemStats",
    "LineHistoryEntry",
    "ChemicalAuditRecord",
    "IntegrityIssue",
    "LedgerPolicy",
    "NegativeQuantityPolicy",
    "classify_chemical_action",
    "parse_quantity",
]
