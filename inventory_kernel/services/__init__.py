"""Write services and the InventoryLedger orchestrator."""

from inventory_kernel.services.audit_mirror import AuditMirror
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_orchestrator import InventoryLedger
from inventory_kernel.services.ledger_writer import LedgerWriter
from inventory_kernel.services.reversal_service import ReversalService
from inventory_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditMirror",
    "CatalogService",
    "InventoryLedger",
    "LedgerWriter",
    "ReversalService",
    "SequenceService",
]
