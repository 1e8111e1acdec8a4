"""
ReversalService -- equal-and-opposite postings.

Responsibility:
    Validates reversal preconditions, builds the negated line set, posts it
    through LedgerWriter as an ``adjustment`` and stamps the reversal marker
    on the original, all inside the caller's transaction.

Architecture position:
    Kernel > Services.  Consumes LedgerWriter.  Flush-only.

Invariants enforced:
    - At most one reversal per transaction: the original row is locked
      before its status is checked, and reversal_of_id is UNIQUE.
    - Exact negation: same item, same lot id, same unit cost, qty and
      total value negated.
    - All-or-nothing: the negative-quantity policy applies to every negated
      line; one violation rejects the whole reversal and the marker is
      never written.
    - Lock order: transaction row, then items (ascending id), then the
      sequence counter.  Plain postings never lock transaction rows, so the
      order is acyclic.

Failure modes:
    - TransactionNotFoundError, AlreadyReversedError.
    - Everything LedgerWriter.post() raises (InsufficientQuantityError,
      LotNotFoundError for a lot deleted since, ...).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import Actor, LineRequest, PostingRequest
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.exceptions import (
    AlreadyReversedError,
    LedgerValidationError,
    TransactionNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.models.transaction import InventoryTransaction, TxnStatus, TxnType
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.reversal")

REVERSAL_REF_DOC_TYPE = "reversal"


class ReversalService(BaseService[InventoryTransaction]):
    """
    Reverses posted transactions.

    Non-goals:
        - Does NOT commit; InventoryLedger owns the transaction.
        - Does NOT support partial (per-line) reversal.
    """

    def __init__(self, session: Session, writer: LedgerWriter, clock: Clock):
        super().__init__(session)
        self._writer = writer
        self._clock = clock

    def _lock_original(self, transaction_id: UUID) -> InventoryTransaction:
        txn = self.session.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def reverse(
        self,
        transaction_id,
        actor: Actor,
        reason: str,
    ) -> tuple[InventoryTransaction, list[Item]]:
        """
        Post the reversal of ``transaction_id`` and mark the original.

        Returns:
            The reversing transaction and the touched items.
        """
        original_id = parse_uuid(transaction_id, "transaction_id")
        if actor is None or not getattr(actor, "id", None):
            raise LedgerValidationError("An actor is required", field="actor")
        if not isinstance(reason, str) or not reason.strip():
            raise LedgerValidationError("A reversal reason is required", field="reason")

        original = self._lock_original(original_id)
        if original.status == TxnStatus.REVERSED:
            raise AlreadyReversedError(
                str(original.id),
                str(original.reversed_by_id) if original.reversed_by_id else None,
            )

        original_type = getattr(original.txn_type, "value", original.txn_type)
        request = PostingRequest(
            txn_type=TxnType.ADJUSTMENT.value,
            lines=tuple(
                LineRequest(
                    item_id=line.item_id,
                    lot_id=line.lot_id,
                    qty=-line.qty,
                    unit_cost=line.unit_cost,
                    notes=line.notes,
                )
                for line in original.lines
            ),
            actor=actor,
            memo=f"Reversal of {original_type} {original.id}: {reason.strip()}",
            reason=reason.strip(),
            project=original.project,
            department=original.department,
            batch_id=original.batch_id,
            work_order_id=original.work_order_id,
            ref_doc=str(original.id),
            ref_doc_type=REVERSAL_REF_DOC_TYPE,
        )

        reversal, items = self._writer.post(request, reversal_of_id=original.id)

        original.status = TxnStatus.REVERSED.value
        original.reversed_by_id = reversal.id
        original.reversed_at = self._clock.now()
        original.reversed_by_actor_id = str(actor.id)
        self.session.flush()

        logger.info(
            "reversal_posted",
            extra={
                "original_transaction_id": str(original.id),
                "reversal_transaction_id": str(reversal.id),
                "line_count": reversal.line_count,
            },
        )
        return reversal, items
