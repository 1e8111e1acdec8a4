"""Read-only query selectors."""

from inventory_kernel.selectors.chemical_audit_selector import ChemicalAuditSelector
from inventory_kernel.selectors.integrity_selector import IntegritySelector
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "ChemicalAuditSelector",
    "IntegritySelector",
    "ItemSelector",
    "TransactionSelector",
]
