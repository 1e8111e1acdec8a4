"""
Module: inventory_kernel.models.item
Responsibility: ORM persistence for catalog items, their embedded lots, and
    bill-of-materials rows.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - SKU uniqueness (UNIQUE constraint on items.sku).
    - Lot number uniqueness per item (UNIQUE(item_id, lot_number)).
    - For lot-tracked items, qty_on_hand == sum(lot.quantity).  Maintained
      by the LedgerWriter, verified by IntegritySelector.
    - qty_on_hand and lot quantity change only inside a ledger posting
      (ORM listener in db/immutability.py).
    - version is a SQLAlchemy version_id_col: every UPDATE is conditional
      on the version read, so a lost update surfaces as StaleDataError.

Failure modes:
    - IntegrityError on duplicate SKU or duplicate lot number.
    - StaleDataError when a concurrent writer bumped the version first.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TimestampedBase, UUIDString


class ItemType(str, Enum):
    """Catalog item kind."""

    CHEMICAL = "chemical"
    SOLUTION = "solution"
    PRODUCT = "product"


class Item(TimestampedBase):
    """
    Catalog item with an on-hand quantity and optional lots.

    Contract:
        qty_on_hand is a cached aggregate.  When lot_tracked is True it
        mirrors the sum of the item's lot quantities; otherwise it is the
        item's sole quantity.  Both are written exclusively by the
        LedgerWriter.

    Non-goals:
        - Item does not enforce non-negativity; the posting policy decides.
    """

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_item_sku"),
        Index("idx_item_type", "item_type"),
        Index("idx_item_netsuite_id", "netsuite_internal_id"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    display_name: Mapped[str] = mapped_column(String(300), nullable=False)

    item_type: Mapped[ItemType] = mapped_column(String(20), nullable=False)

    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="ea")

    lot_tracked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Cached aggregate; see class docstring
    qty_on_hand: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    cost: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Chemical-only attributes
    cas_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Opaque ERP identifier supplied by the catalog collaborator
    netsuite_internal_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lots: Mapped[list["ItemLot"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemLot.position",
        lazy="selectin",
    )

    bom: Mapped[list["BomComponent"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="BomComponent.position",
        foreign_keys="BomComponent.item_id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Item {self.sku} type={self.item_type} qty={self.qty_on_hand}>"

    @property
    def is_chemical(self) -> bool:
        return self.item_type == ItemType.CHEMICAL

    def find_lot(self, lot_id: UUID) -> "ItemLot | None":
        for lot in self.lots:
            if lot.id == lot_id:
                return lot
        return None

    def find_lot_by_number(self, lot_number: str) -> "ItemLot | None":
        for lot in self.lots:
            if lot.lot_number == lot_number:
                return lot
        return None

    @property
    def lot_total(self) -> Decimal:
        """Sum of lot quantities (plain sum, negatives included)."""
        return sum((lot.quantity for lot in self.lots), Decimal("0"))


class ItemLot(TimestampedBase):
    """
    A tracked sub-quantity of an item.

    lot_number is a human string; it is unique within the item but not
    across items.
    """

    __tablename__ = "item_lots"

    __table_args__ = (
        UniqueConstraint("item_id", "lot_number", name="uq_item_lot_number"),
        Index("idx_lot_item", "item_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    vendor_lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Insertion order within the item's lot collection
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item: Mapped["Item"] = relationship(back_populates="lots")

    def __repr__(self) -> str:
        return f"<ItemLot {self.lot_number} qty={self.quantity}>"


class BomComponent(TimestampedBase):
    """One ordered bill-of-materials row of a solution or product."""

    __tablename__ = "item_bom_components"

    __table_args__ = (
        Index("idx_bom_item", "item_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    component_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    qty: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="ea")

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item: Mapped["Item"] = relationship(
        back_populates="bom",
        foreign_keys=[item_id],
    )

    component: Mapped["Item"] = relationship(
        foreign_keys=[component_item_id],
        lazy="joined",
    )
