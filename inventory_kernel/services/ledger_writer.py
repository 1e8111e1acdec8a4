"""
LedgerWriter -- the posting algorithm.

Responsibility:
    Validates a PostingRequest, locks and loads the referenced items,
    resolves lots, computes before/after snapshots, applies the quantity
    changes and inserts the transaction with its lines.  Chemical lines are
    mirrored to the audit trail afterwards.

Architecture position:
    Kernel > Services.  Flush-only: InventoryLedger owns commit, rollback
    and retries.  ReversalService re-enters post() with negated lines.

Invariants enforced:
    - Validation before I/O: a malformed request raises
      LedgerValidationError before any row is read or locked.
    - Lock order: items are locked one by one in ascending id order, then
      the sequence counter.  Every writer uses this order, so concurrent
      postings cannot deadlock on each other.
    - Snapshot arithmetic: after == before + qty for the lot and for the
      item aggregate; several lines on the same item or lot chain.
    - Plan before apply: every line is checked against the negative
      quantity policy before any ORM object changes.
    - Quantity writes happen inside posting_window(), the only place the
      quantity guard in db/immutability.py lets them through.

Failure modes:
    - LedgerValidationError: empty lines, bad qty/cost, unknown txn_type,
      missing actor, bad ids, lot rules.
    - ItemNotFoundError / LotNotFoundError.
    - InsufficientQuantityError under the REJECT policy.
    - StaleDataError / OperationalError from the database on contention
      (retried by InventoryLedger).

Audit relevance:
    Anomalous (negative) results under ALLOW_AND_FLAG are logged as
    negative_quantity_anomaly warnings and persisted as line/header flags.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.immutability import posting_window
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import LineRequest, PostingRequest
from inventory_kernel.domain.identifiers import parse_optional_uuid, parse_uuid
from inventory_kernel.domain.policy import LedgerPolicy
from inventory_kernel.domain.quantities import (
    INBOUND_TXN_TYPES,
    LEDGER_CONTEXT,
    ZERO,
    check_storable,
    line_value,
    parse_optional_amount,
    parse_quantity,
)
from inventory_kernel.exceptions import (
    InsufficientQuantityError,
    ItemNotFoundError,
    LedgerValidationError,
    LotNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import Item, ItemLot
from inventory_kernel.models.transaction import (
    InventoryTransaction,
    TransactionLine,
    TxnStatus,
    TxnType,
)
from inventory_kernel.services.audit_mirror import AuditMirror
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.catalog_service import new_lot
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger_writer")

_TXN_TYPES = frozenset(t.value for t in TxnType)


@dataclass(frozen=True)
class _ParsedLine:
    """A validated line whose item and lot are still unresolved."""

    index: int
    item_id: UUID
    qty: Decimal
    lot_id: UUID | None
    lot_number: str | None
    unit_cost: Decimal | None
    source: LineRequest


@dataclass
class _PlannedLine:
    """A resolved line with its computed snapshots, not yet applied."""

    parsed: _ParsedLine
    item: Item
    lot: ItemLot | None
    unit_cost: Decimal
    lot_before: Decimal | None
    lot_after: Decimal | None
    item_before: Decimal
    item_after: Decimal
    value: Decimal
    is_anomaly: bool


class LedgerWriter(BaseService[InventoryTransaction]):
    """
    Posts transactions against locked items.

    Contract:
        post() returns the flushed InventoryTransaction and the touched
        items (ascending id).  Nothing is committed.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        policy: LedgerPolicy | None = None,
        audit_mirror: AuditMirror | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._policy = policy or LedgerPolicy()
        self._audit_mirror = audit_mirror
        self._sequences = sequence_service or SequenceService(session)

    # ------------------------------------------------------------------
    # Validation (no I/O)
    # ------------------------------------------------------------------

    def validate(self, request: PostingRequest) -> list[_ParsedLine]:
        """Reject malformed requests before touching the database."""
        if request.txn_type not in _TXN_TYPES:
            raise LedgerValidationError(
                f"Unknown txn_type: {request.txn_type!r}", field="txn_type"
            )
        actor = request.actor
        if actor is None or not getattr(actor, "id", None):
            raise LedgerValidationError("An actor is required", field="actor")
        if not request.lines:
            raise LedgerValidationError("A posting needs at least one line", field="lines")

        parsed = []
        for index, line in enumerate(request.lines):
            prefix = f"lines[{index}]"
            if line.lot_id is not None and line.lot_number is not None:
                raise LedgerValidationError(
                    "Give either lot_id or lot_number, not both", field=f"{prefix}.lot"
                )
            lot_number = str(line.lot_number).strip() if line.lot_number is not None else None
            if lot_number == "":
                raise LedgerValidationError(
                    "lot_number must not be blank", field=f"{prefix}.lot_number"
                )
            unit_cost = parse_optional_amount(line.unit_cost, f"{prefix}.unit_cost")
            if unit_cost is not None and unit_cost < ZERO:
                raise LedgerValidationError(
                    "unit_cost must not be negative", field=f"{prefix}.unit_cost"
                )
            parsed.append(
                _ParsedLine(
                    index=index,
                    item_id=parse_uuid(line.item_id, f"{prefix}.item_id"),
                    qty=parse_quantity(line.qty, f"{prefix}.qty"),
                    lot_id=parse_optional_uuid(line.lot_id, f"{prefix}.lot_id"),
                    lot_number=lot_number,
                    unit_cost=unit_cost,
                    source=line,
                )
            )
        return parsed

    # ------------------------------------------------------------------
    # Load / resolve / plan
    # ------------------------------------------------------------------

    def lock_items(self, item_ids) -> dict[UUID, Item]:
        """Lock each item in ascending id order and return them by id."""
        items: dict[UUID, Item] = {}
        for item_id in sorted(set(item_ids), key=str):
            item = self.session.execute(
                select(Item)
                .where(Item.id == item_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if item is None:
                raise ItemNotFoundError(str(item_id))
            items[item_id] = item
        return items

    def _resolve_lot(
        self,
        txn_type: str,
        parsed: _ParsedLine,
        item: Item,
    ) -> ItemLot | None:
        has_lot_ref = parsed.lot_id is not None or parsed.lot_number is not None
        if not item.lot_tracked:
            if has_lot_ref:
                raise LedgerValidationError(
                    f"Item {item.sku} is not lot-tracked",
                    field=f"lines[{parsed.index}].lot",
                )
            return None
        if not has_lot_ref:
            raise LedgerValidationError(
                f"Item {item.sku} is lot-tracked; a lot is required",
                field=f"lines[{parsed.index}].lot",
            )

        if parsed.lot_id is not None:
            lot = item.find_lot(parsed.lot_id)
            if lot is None:
                raise LotNotFoundError(str(item.id), str(parsed.lot_id))
            return lot

        lot = item.find_lot_by_number(parsed.lot_number)
        if lot is not None:
            return lot
        if txn_type in INBOUND_TXN_TYPES and parsed.qty > ZERO:
            source = parsed.source
            lot = new_lot(
                item,
                parsed.lot_number,
                expiry_date=source.expiry_date,
                vendor_lot_number=source.vendor_lot_number,
                location=source.location,
            )
            logger.info(
                "lot_created_on_posting",
                extra={
                    "item_id": str(item.id),
                    "lot_id": str(lot.id),
                    "lot_number": lot.lot_number,
                },
            )
            return lot
        raise LotNotFoundError(str(item.id), parsed.lot_number)

    def plan(
        self,
        txn_type: str,
        parsed_lines: list[_ParsedLine],
        items: dict[UUID, Item],
    ) -> list[_PlannedLine]:
        """
        Resolve lots and compute snapshots, chaining lines that hit the same
        item or lot.  Raises before any quantity is changed.
        """
        item_running: dict[UUID, Decimal] = {}
        lot_running: dict[int, Decimal] = {}
        planned = []

        for parsed in parsed_lines:
            item = items[parsed.item_id]
            lot = self._resolve_lot(txn_type, parsed, item)

            field = f"lines[{parsed.index}].qty"
            item_before = item_running.get(item.id, Decimal(item.qty_on_hand))
            with localcontext(LEDGER_CONTEXT):
                item_after = check_storable(item_before + parsed.qty, field)
            lot_before = lot_after = None
            if lot is not None:
                lot_before = lot_running.get(id(lot), Decimal(lot.quantity))
                with localcontext(LEDGER_CONTEXT):
                    lot_after = check_storable(lot_before + parsed.qty, field)

            is_anomaly = parsed.qty < ZERO and (
                item_after < ZERO or (lot_after is not None and lot_after < ZERO)
            )
            if is_anomaly and self._policy.rejects_negative:
                if lot_after is not None and lot_after < ZERO:
                    raise InsufficientQuantityError(
                        item_id=str(item.id),
                        available=lot_before,
                        requested=parsed.qty,
                        lot_id=str(lot.id),
                    )
                raise InsufficientQuantityError(
                    item_id=str(item.id),
                    available=item_before,
                    requested=parsed.qty,
                )

            item_running[item.id] = item_after
            if lot is not None:
                lot_running[id(lot)] = lot_after

            if parsed.unit_cost is not None:
                unit_cost = parsed.unit_cost
            elif item.cost is not None:
                unit_cost = Decimal(item.cost)
            else:
                unit_cost = ZERO

            planned.append(
                _PlannedLine(
                    parsed=parsed,
                    item=item,
                    lot=lot,
                    unit_cost=unit_cost,
                    lot_before=lot_before,
                    lot_after=lot_after,
                    item_before=item_before,
                    item_after=item_after,
                    value=line_value(parsed.qty, unit_cost, f"lines[{parsed.index}].unit_cost"),
                    is_anomaly=is_anomaly,
                )
            )
        return planned

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def post(
        self,
        request: PostingRequest,
        reversal_of_id: UUID | None = None,
    ) -> tuple[InventoryTransaction, list[Item]]:
        """
        Post a transaction.

        Preconditions: the session is inside a transaction the caller will
            commit or roll back.
        Postconditions: items, lots and the new transaction are flushed;
            chemical audit entries are flushed inside a savepoint.
        """
        parsed_lines = self.validate(request)
        items = self.lock_items(p.item_id for p in parsed_lines)
        planned = self.plan(request.txn_type, parsed_lines, items)

        posted_at = self._clock.now()
        actor = request.actor

        txn = InventoryTransaction(
            txn_type=request.txn_type,
            status=TxnStatus.POSTED.value,
            posted_at=posted_at,
            effective_date=request.effective_date or posted_at.date(),
            created_by_id=str(actor.id),
            created_by_name=actor.name,
            created_by_email=actor.email,
            created_by_role=actor.role,
            memo=request.memo,
            project=request.project,
            department=request.department,
            reason=request.reason,
            batch_id=request.batch_id,
            work_order_id=request.work_order_id,
            ref_doc=request.ref_doc,
            ref_doc_type=request.ref_doc_type,
            reversal_of_id=reversal_of_id,
        )

        total_value = ZERO
        with posting_window(self.session):
            for line_seq, plan in enumerate(planned, start=1):
                plan.item.qty_on_hand = plan.item_after
                if plan.lot is not None:
                    plan.lot.quantity = plan.lot_after

                source = plan.parsed.source
                with localcontext(LEDGER_CONTEXT):
                    total_value += plan.value
                txn.lines.append(
                    TransactionLine(
                        line_seq=line_seq,
                        item_id=plan.item.id,
                        lot_id=plan.lot.id if plan.lot is not None else None,
                        lot_number=plan.lot.lot_number if plan.lot is not None else None,
                        qty=plan.parsed.qty,
                        unit_cost=plan.unit_cost,
                        total_value=plan.value,
                        lot_qty_before=plan.lot_before,
                        lot_qty_after=plan.lot_after,
                        item_qty_before=plan.item_before,
                        item_qty_after=plan.item_after,
                        expiry_date=source.expiry_date
                        or (plan.lot.expiry_date if plan.lot is not None else None),
                        vendor_lot_number=source.vendor_lot_number,
                        location=source.location,
                        notes=source.notes,
                        is_negative_anomaly=plan.is_anomaly,
                    )
                )

            txn.total_value = check_storable(total_value, "total_value")
            txn.line_count = len(planned)
            txn.has_anomaly = any(plan.is_anomaly for plan in planned)
            txn.seq = self._sequences.next_value(SequenceService.INVENTORY_TRANSACTION)

            self.session.add(txn)
            self.session.flush()

        for plan in planned:
            if plan.is_anomaly:
                logger.warning(
                    "negative_quantity_anomaly",
                    extra={
                        "transaction_id": str(txn.id),
                        "item_id": str(plan.item.id),
                        "lot_id": str(plan.lot.id) if plan.lot is not None else None,
                        "item_qty_after": plan.item_after,
                        "lot_qty_after": plan.lot_after,
                    },
                )

        logger.info(
            "transaction_posted",
            extra={
                "transaction_id": str(txn.id),
                "seq": txn.seq,
                "txn_type": request.txn_type,
                "line_count": txn.line_count,
                "has_anomaly": txn.has_anomaly,
            },
        )

        if self._audit_mirror is not None and self._policy.chemical_audit_enabled:
            self._audit_mirror.record_posting(txn, items)

        ordered = [items[item_id] for item_id in sorted(items, key=str)]
        return txn, ordered
