"""
Module: inventory_kernel.models.chemical_audit
Responsibility: ORM persistence for the chemical audit trail, a denormalized
    human-oriented log derived from ledger postings on chemical items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are blocked by ORM listeners
      (db/immutability.py).
    - Snapshot, not reference: chemical and lot fields are copied at write
      time, so later catalog edits never alter history.  item_id has no
      foreign key for the same reason.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TimestampedBase, UUIDString


class ChemicalAuditAction(str, Enum):
    USE = "USE"
    DEPLETE = "DEPLETE"
    ADJUST = "ADJUST"
    REMOVE = "REMOVE"
    ADD = "ADD"


class ChemicalAudit(TimestampedBase):
    """One audit entry per affected chemical lot per posting."""

    __tablename__ = "chemical_audits"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_chem_audit_seq"),
        Index("idx_chem_audit_item", "item_id"),
        Index("idx_chem_audit_lot", "item_id", "lot_number"),
        Index("idx_chem_audit_txn", "transaction_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Chemical snapshot
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(300), nullable=False)
    cas_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Lot snapshot
    lot_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity_previous: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    quantity_used: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    quantity_remaining: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    uom: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Actor snapshot
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    actor_email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    action: Mapped[ChemicalAuditAction] = mapped_column(String(10), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    project: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Null for catalog-originated entries (lot removal)
    transaction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<ChemicalAudit {self.action} {self.sku}/{self.lot_number}>"
