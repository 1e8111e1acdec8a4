"""ORM models for the inventory ledger."""

from inventory_kernel.models.chemical_audit import ChemicalAudit, ChemicalAuditAction
from inventory_kernel.models.item import BomComponent, Item, ItemLot, ItemType
from inventory_kernel.models.sequence import SequenceCounter
from inventory_kernel.models.transaction import (
    InventoryTransaction,
    TransactionLine,
    TxnStatus,
    TxnType,
)

__all__ = [
    "Item",
    "ItemLot",
    "ItemType",
    "BomComponent",
    "InventoryTransaction",
    "TransactionLine",
    "TxnType",
    "TxnStatus",
    "ChemicalAudit",
    "ChemicalAuditAction",
    "SequenceCounter",
]
