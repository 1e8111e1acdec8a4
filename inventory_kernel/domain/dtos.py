"""
DTOs -- immutable data crossing the kernel boundary.

Responsibility:
    Request types (Actor, LineRequest, PostingRequest) carry unresolved
    caller input: item and lot references are bare ids or lot numbers.
    Record types (LineRecord, TransactionRecord, ItemSnapshot, ...) carry
    resolved, persisted state: every line names its item's SKU and display
    name and its lot number.  Callers never receive ORM entities.

Architecture position:
    Kernel > Domain -- zero I/O.  from_model() converters exist at the
    boundary but are only invoked from services and selectors.

Data flow:
    PostingRequest -> LedgerWriter -> InventoryTransaction (ORM)
        -> TransactionRecord / PostingResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from inventory_kernel.models.chemical_audit import ChemicalAudit as ChemicalAuditModel
    from inventory_kernel.models.item import Item as ItemModel
    from inventory_kernel.models.item import ItemLot as ItemLotModel
    from inventory_kernel.models.transaction import (
        InventoryTransaction as InventoryTransactionModel,
    )
    from inventory_kernel.models.transaction import (
        TransactionLine as TransactionLineModel,
    )


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _dec(value: Any) -> Decimal | None:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _value(enum_or_str: Any) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


# ---------------------------------------------------------------------------
# Requests (unresolved references)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Actor:
    """Who performed an operation, as resolved by the caller's auth layer."""

    id: str
    name: str | None = None
    email: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class LineRequest:
    """
    One requested quantity change.

    Reference the lot either by ``lot_id`` or by ``lot_number``; supplying
    both is a validation error.  ``qty`` is raw caller input and is parsed
    by the LedgerWriter.
    """

    item_id: UUID | str
    qty: Any
    lot_id: UUID | str | None = None
    lot_number: str | None = None
    unit_cost: Any = None
    expiry_date: date | None = None
    vendor_lot_number: str | None = None
    location: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PostingRequest:
    """Input to LedgerWriter.post()."""

    txn_type: str
    lines: tuple[LineRequest, ...]
    actor: Actor | None
    memo: str | None = None
    project: str | None = None
    department: str | None = None
    reason: str | None = None
    batch_id: str | None = None
    work_order_id: str | None = None
    ref_doc: str | None = None
    ref_doc_type: str | None = None
    effective_date: date | None = None

    def __post_init__(self) -> None:
        # Lists are accepted for convenience; stored as a tuple
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines or ()))
        txn_type = _value(self.txn_type)
        object.__setattr__(self, "txn_type", txn_type)


# ---------------------------------------------------------------------------
# Records (resolved, persisted state)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineRecord:
    line_seq: int
    item_id: UUID
    item_sku: str | None
    item_name: str | None
    lot_id: UUID | None
    lot_number: str | None
    qty: Decimal
    unit_cost: Decimal
    total_value: Decimal
    lot_qty_before: Decimal | None
    lot_qty_after: Decimal | None
    item_qty_before: Decimal
    item_qty_after: Decimal
    expiry_date: date | None = None
    vendor_lot_number: str | None = None
    location: str | None = None
    notes: str | None = None
    is_negative_anomaly: bool = False

    @classmethod
    def from_model(cls, model: TransactionLineModel) -> LineRecord:
        item = model.item
        return cls(
            line_seq=model.line_seq,
            item_id=model.item_id,
            item_sku=item.sku if item is not None else None,
            item_name=item.display_name if item is not None else None,
            lot_id=model.lot_id,
            lot_number=model.lot_number,
            qty=_dec(model.qty),
            unit_cost=_dec(model.unit_cost),
            total_value=_dec(model.total_value),
            lot_qty_before=_dec(model.lot_qty_before),
            lot_qty_after=_dec(model.lot_qty_after),
            item_qty_before=_dec(model.item_qty_before),
            item_qty_after=_dec(model.item_qty_after),
            expiry_date=model.expiry_date,
            vendor_lot_number=model.vendor_lot_number,
            location=model.location,
            notes=model.notes,
            is_negative_anomaly=bool(model.is_negative_anomaly),
        )


@dataclass(frozen=True)
class TransactionRecord:
    """
    Read-side view of a posted transaction.

    When produced for an item-scoped query, ``lines`` holds only that
    item's lines while ``line_count`` and ``total_value`` still describe
    the whole transaction.
    """

    id: UUID
    seq: int
    txn_type: str
    status: str
    posted_at: datetime
    effective_date: date
    actor: Actor
    lines: tuple[LineRecord, ...]
    total_value: Decimal
    line_count: int
    has_anomaly: bool = False
    memo: str | None = None
    project: str | None = None
    department: str | None = None
    reason: str | None = None
    batch_id: str | None = None
    work_order_id: str | None = None
    ref_doc: str | None = None
    ref_doc_type: str | None = None
    reversal_of_id: UUID | None = None
    reversed_by_id: UUID | None = None
    reversed_at: datetime | None = None
    reversed_by_actor_id: str | None = None

    @property
    def is_reversed(self) -> bool:
        return self.status == "reversed"

    @classmethod
    def from_model(
        cls,
        model: InventoryTransactionModel,
        item_id: UUID | None = None,
    ) -> TransactionRecord:
        lines = model.lines
        if item_id is not None:
            lines = [line for line in lines if line.item_id == item_id]
        return cls(
            id=model.id,
            seq=model.seq,
            txn_type=_value(model.txn_type),
            status=_value(model.status),
            posted_at=_as_utc(model.posted_at),
            effective_date=model.effective_date,
            actor=Actor(
                id=model.created_by_id,
                name=model.created_by_name,
                email=model.created_by_email,
                role=model.created_by_role,
            ),
            lines=tuple(LineRecord.from_model(line) for line in lines),
            total_value=_dec(model.total_value),
            line_count=model.line_count,
            has_anomaly=bool(model.has_anomaly),
            memo=model.memo,
            project=model.project,
            department=model.department,
            reason=model.reason,
            batch_id=model.batch_id,
            work_order_id=model.work_order_id,
            ref_doc=model.ref_doc,
            ref_doc_type=model.ref_doc_type,
            reversal_of_id=model.reversal_of_id,
            reversed_by_id=model.reversed_by_id,
            reversed_at=_as_utc(model.reversed_at),
            reversed_by_actor_id=model.reversed_by_actor_id,
        )


@dataclass(frozen=True)
class LotSnapshot:
    id: UUID
    lot_number: str
    quantity: Decimal
    expiry_date: date | None = None
    vendor_lot_number: str | None = None
    location: str | None = None

    @classmethod
    def from_model(cls, model: ItemLotModel) -> LotSnapshot:
        return cls(
            id=model.id,
            lot_number=model.lot_number,
            quantity=_dec(model.quantity),
            expiry_date=model.expiry_date,
            vendor_lot_number=model.vendor_lot_number,
            location=model.location,
        )


@dataclass(frozen=True)
class BomLine:
    component_item_id: UUID
    qty: Decimal
    uom: str


@dataclass(frozen=True)
class ItemSnapshot:
    """Point-in-time view of an item and its lots."""

    id: UUID
    sku: str
    display_name: str
    item_type: str
    uom: str
    lot_tracked: bool
    qty_on_hand: Decimal
    version: int
    lots: tuple[LotSnapshot, ...] = ()
    bom: tuple[BomLine, ...] = ()
    cost: Decimal | None = None
    description: str | None = None
    cas_number: str | None = None
    location: str | None = None
    netsuite_internal_id: str | None = None

    def lot(self, lot_id: UUID) -> LotSnapshot | None:
        for lot in self.lots:
            if lot.id == lot_id:
                return lot
        return None

    def lot_by_number(self, lot_number: str) -> LotSnapshot | None:
        for lot in self.lots:
            if lot.lot_number == lot_number:
                return lot
        return None

    @classmethod
    def from_model(cls, model: ItemModel) -> ItemSnapshot:
        return cls(
            id=model.id,
            sku=model.sku,
            display_name=model.display_name,
            item_type=_value(model.item_type),
            uom=model.uom,
            lot_tracked=bool(model.lot_tracked),
            qty_on_hand=_dec(model.qty_on_hand),
            version=model.version,
            lots=tuple(LotSnapshot.from_model(lot) for lot in model.lots),
            bom=tuple(
                BomLine(
                    component_item_id=row.component_item_id,
                    qty=_dec(row.qty),
                    uom=row.uom,
                )
                for row in model.bom
            ),
            cost=_dec(model.cost),
            description=model.description,
            cas_number=model.cas_number,
            location=model.location,
            netsuite_internal_id=model.netsuite_internal_id,
        )


@dataclass(frozen=True)
class PostingResult:
    """What post() returns: the transaction and every touched item, post-update."""

    transaction: TransactionRecord
    items: tuple[ItemSnapshot, ...]

    def item(self, item_id: UUID) -> ItemSnapshot | None:
        for snapshot in self.items:
            if snapshot.id == item_id:
                return snapshot
        return None


@dataclass(frozen=True)
class ItemStats:
    """
    Aggregated movement for one item within an optional posted_at window.

    total_in is the sum of positive deltas, total_out the sum of absolute
    negative deltas.  Per-type totals: total_received and total_built are
    signed sums, total_issued is absolute, total_adjusted is signed.
    """

    item_id: UUID
    start_date: date | datetime | None
    end_date: date | datetime | None
    transaction_count: int = 0
    count_by_type: dict[str, int] = field(default_factory=dict)
    total_in: Decimal = Decimal("0")
    total_out: Decimal = Decimal("0")
    total_received: Decimal = Decimal("0")
    total_issued: Decimal = Decimal("0")
    total_adjusted: Decimal = Decimal("0")
    total_built: Decimal = Decimal("0")

    @property
    def net_change(self) -> Decimal:
        return self.total_in - self.total_out


@dataclass(frozen=True)
class LineHistoryEntry:
    """One ledger line with the header fields needed to read it on its own."""

    transaction_id: UUID
    seq: int
    txn_type: str
    status: str
    posted_at: datetime
    actor_id: str
    memo: str | None
    line: LineRecord

    @classmethod
    def from_models(
        cls,
        txn: InventoryTransactionModel,
        line: TransactionLineModel,
    ) -> LineHistoryEntry:
        return cls(
            transaction_id=txn.id,
            seq=txn.seq,
            txn_type=_value(txn.txn_type),
            status=_value(txn.status),
            posted_at=_as_utc(txn.posted_at),
            actor_id=txn.created_by_id,
            memo=txn.memo,
            line=LineRecord.from_model(line),
        )


@dataclass(frozen=True)
class ChemicalAuditRecord:
    id: UUID
    seq: int
    item_id: UUID
    sku: str
    display_name: str
    lot_number: str | None
    quantity_previous: Decimal
    quantity_used: Decimal
    quantity_remaining: Decimal
    action: str
    actor_id: str
    recorded_at: datetime
    cas_number: str | None = None
    location: str | None = None
    uom: str | None = None
    actor_name: str | None = None
    actor_email: str | None = None
    notes: str | None = None
    project: str | None = None
    department: str | None = None
    transaction_id: UUID | None = None

    @classmethod
    def from_model(cls, model: ChemicalAuditModel) -> ChemicalAuditRecord:
        return cls(
            id=model.id,
            seq=model.seq,
            item_id=model.item_id,
            sku=model.sku,
            display_name=model.display_name,
            lot_number=model.lot_number,
            quantity_previous=_dec(model.quantity_previous),
            quantity_used=_dec(model.quantity_used),
            quantity_remaining=_dec(model.quantity_remaining),
            action=_value(model.action),
            actor_id=model.actor_id,
            recorded_at=_as_utc(model.recorded_at),
            cas_number=model.cas_number,
            location=model.location,
            uom=model.uom,
            actor_name=model.actor_name,
            actor_email=model.actor_email,
            notes=model.notes,
            project=model.project,
            department=model.department,
            transaction_id=model.transaction_id,
        )


@dataclass(frozen=True)
class IntegrityIssue:
    """A stored state that contradicts the ledger."""

    item_id: UUID
    kind: str
    detail: str
    lot_id: UUID | None = None
    transaction_id: UUID | None = None
    expected: Decimal | None = None
    actual: Decimal | None = None
