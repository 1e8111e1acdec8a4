"""
Module: inventory_kernel.models.transaction
Responsibility: ORM persistence for inventory transactions and their lines --
    the append-only ledger of every quantity change.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Sequence ordering: seq is allocated from a locked counter row and is
      UNIQUE, so "newest first" and "chronological" are total orders.
    - Snapshot arithmetic: every line satisfies
      lot_qty_after == lot_qty_before + qty (when a lot is referenced) and
      item_qty_after == item_qty_before + qty.  Written by the LedgerWriter,
      verified by IntegritySelector.
    - Immutability (ORM listeners in db/immutability.py): a transaction is
      frozen after insert except for the reversal marker
      (status POSTED -> REVERSED, reversed_by_id, reversed_at,
      reversed_by_actor_id).  Lines are always frozen.

Failure modes:
    - ImmutabilityViolationError on any other UPDATE/DELETE.
    - IntegrityError on a duplicate seq (concurrent allocation bug) or on a
      second reversal of the same transaction (UNIQUE reversal_of_id).

Audit relevance:
    The before/after pair on every line reconstructs the exact state
    transition without re-reading history.  The actor snapshot is copied
    at posting time so later user changes never alter the record.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TimestampedBase, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.models.item import Item


class TxnType(str, Enum):
    """Kind of ledger transaction."""

    RECEIPT = "receipt"
    ISSUE = "issue"
    ADJUSTMENT = "adjustment"
    BUILD = "build"


class TxnStatus(str, Enum):
    """Lifecycle status of a posted transaction.

    Contract: the only transition is POSTED -> REVERSED.
    """

    POSTED = "posted"
    REVERSED = "reversed"


class InventoryTransaction(TimestampedBase):
    """
    One posting: a header plus its ordered lines.

    Contract:
        Created atomically with the item/lot mutation it records.  Never
        updated except by the reversal marker, never deleted.

    Guarantees:
        - line_count == len(lines).
        - total_value == sum(line.total_value).
        - has_anomaly is True iff any line is_negative_anomaly.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_inventory_txn_seq"),
        Index("idx_txn_posted_at", "posted_at"),
        Index("idx_txn_type", "txn_type"),
        Index("idx_txn_status", "status"),
        UniqueConstraint("reversal_of_id", name="uq_inventory_txn_reversal_of"),
        Index("idx_txn_batch", "batch_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    txn_type: Mapped[TxnType] = mapped_column(String(20), nullable=False)

    status: Mapped[TxnStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TxnStatus.POSTED,
    )

    posted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Actor snapshot at posting time
    created_by_id: Mapped[str] = mapped_column(String(100), nullable=False)
    created_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_by_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_by_role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    memo: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    project: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Opaque correlation ids owned by batch / work-order management
    batch_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    work_order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    ref_doc: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ref_doc_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Set on a reversing transaction
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_transactions.id"),
        nullable=True,
    )

    # Reversal marker, set on the original when it is reversed
    reversed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reversed_by_actor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    total_value: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    line_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    has_anomaly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    lines: Mapped[list["TransactionLine"]] = relationship(
        back_populates="transaction",
        cascade="save-update, merge",
        order_by="TransactionLine.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InventoryTransaction #{self.seq} {self.txn_type} {self.status}>"

    @property
    def is_reversed(self) -> bool:
        return self.status == TxnStatus.REVERSED


class TransactionLine(TimestampedBase):
    """
    One signed quantity change on one item (and optionally one lot).

    qty is signed: positive adds stock, negative consumes it.
    """

    __tablename__ = "inventory_transaction_lines"

    __table_args__ = (
        UniqueConstraint("transaction_id", "line_seq", name="uq_txn_line_seq"),
        Index("idx_txn_line_txn", "transaction_id"),
        Index("idx_txn_line_item", "item_id"),
        Index("idx_txn_line_lot", "lot_id"),
        Index("idx_txn_line_anomaly", "is_negative_anomaly"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_transactions.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    # No FK: a lot may later be deleted while its history must remain
    lot_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    qty: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    total_value: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    lot_qty_before: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    lot_qty_after: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    item_qty_before: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    item_qty_after: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vendor_lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    is_negative_anomaly: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    transaction: Mapped["InventoryTransaction"] = relationship(back_populates="lines")

    item: Mapped["Item"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<TransactionLine {self.line_seq} item={self.item_id} qty={self.qty}>"
