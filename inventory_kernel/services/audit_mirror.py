"""
AuditMirror -- best-effort chemical audit trail.

Responsibility:
    For every posting line on a chemical item, appends one denormalized
    ChemicalAudit row (chemical, lot, actor and quantities copied at write
    time).  Also records REMOVE entries when a chemical lot is deleted.

Architecture position:
    Kernel > Services.  Called by LedgerWriter after the posting flush and
    by CatalogService.delete_lot.

Invariants enforced:
    - Failure isolation: entries are written inside a SAVEPOINT.  Any error
      rolls back the savepoint only, is logged as chemical_audit_failed and
      never propagates, so the quantity/transaction pair commits regardless.
    - Classification comes from classify_chemical_action (pure).
"""

from decimal import Decimal

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import Actor
from inventory_kernel.domain.quantities import classify_chemical_action
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.chemical_audit import ChemicalAudit, ChemicalAuditAction
from inventory_kernel.models.item import Item, ItemLot
from inventory_kernel.models.transaction import InventoryTransaction, TransactionLine
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.audit_mirror")

SYSTEM_ACTOR_ID = "system"


class AuditMirror:
    """Writes ChemicalAudit rows in a savepoint, swallowing (and logging) failures."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        sequence_service: SequenceService | None = None,
    ):
        self.session = session
        self._clock = clock
        self._sequences = sequence_service or SequenceService(session)

    def _stamp(self, entry: ChemicalAudit) -> ChemicalAudit:
        entry.seq = self._sequences.next_value(SequenceService.CHEMICAL_AUDIT)
        entry.recorded_at = self._clock.now()
        return entry

    def record_posting(
        self,
        txn: InventoryTransaction,
        items: dict,
    ) -> int:
        """
        Mirror a flushed posting.  Returns the number of entries written
        (0 when the item set holds no chemicals or the write failed).
        """
        chemical_lines = [
            line for line in txn.lines if items[line.item_id].is_chemical
        ]
        if not chemical_lines:
            return 0

        try:
            with self.session.begin_nested():
                for line in chemical_lines:
                    self.session.add(
                        self._stamp(self._entry_for_line(txn, line, items[line.item_id]))
                    )
                self.session.flush()
        except Exception:
            logger.exception(
                "chemical_audit_failed",
                extra={
                    "transaction_id": str(txn.id),
                    "line_count": len(chemical_lines),
                },
            )
            return 0

        logger.info(
            "chemical_audit_written",
            extra={"transaction_id": str(txn.id), "entries": len(chemical_lines)},
        )
        return len(chemical_lines)

    def record_lot_removal(self, item: Item, lot: ItemLot, actor: Actor | None) -> bool:
        """Record a REMOVE entry for a chemical lot that is being deleted."""
        try:
            with self.session.begin_nested():
                quantity = Decimal(lot.quantity)
                self.session.add(
                    self._stamp(ChemicalAudit(
                        item_id=item.id,
                        sku=item.sku,
                        display_name=item.display_name,
                        cas_number=item.cas_number,
                        location=lot.location or item.location,
                        lot_id=lot.id,
                        lot_number=lot.lot_number,
                        quantity_previous=quantity,
                        quantity_used=Decimal("0"),
                        quantity_remaining=quantity,
                        uom=item.uom,
                        actor_id=actor.id if actor else SYSTEM_ACTOR_ID,
                        actor_name=actor.name if actor else None,
                        actor_email=actor.email if actor else None,
                        action=ChemicalAuditAction.REMOVE.value,
                        notes="Lot deleted",
                    ))
                )
                self.session.flush()
        except Exception:
            logger.exception(
                "chemical_audit_failed",
                extra={"item_id": str(item.id), "lot_id": str(lot.id)},
            )
            return False
        return True

    def _entry_for_line(
        self,
        txn: InventoryTransaction,
        line: TransactionLine,
        item: Item,
    ) -> ChemicalAudit:
        if line.lot_id is not None:
            previous, remaining = line.lot_qty_before, line.lot_qty_after
        else:
            previous, remaining = line.item_qty_before, line.item_qty_after
        action = classify_chemical_action(
            getattr(txn.txn_type, "value", txn.txn_type),
            Decimal(line.qty),
            Decimal(remaining),
        )
        return ChemicalAudit(
            item_id=item.id,
            sku=item.sku,
            display_name=item.display_name,
            cas_number=item.cas_number,
            location=line.location or item.location,
            lot_id=line.lot_id,
            lot_number=line.lot_number,
            quantity_previous=previous,
            quantity_used=line.qty,
            quantity_remaining=remaining,
            uom=item.uom,
            actor_id=txn.created_by_id,
            actor_name=txn.created_by_name,
            actor_email=txn.created_by_email,
            action=action,
            notes=line.notes or txn.memo,
            project=txn.project,
            department=txn.department,
            transaction_id=txn.id,
        )
