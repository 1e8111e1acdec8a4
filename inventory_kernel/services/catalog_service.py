"""
CatalogService -- item and lot lifecycle outside the ledger.

Responsibility:
    Creates items (with optional bill of materials), adds and deletes lots,
    and deletes items.  Never changes a quantity: new items and lots start
    at zero and only the LedgerWriter moves stock.

Architecture position:
    Kernel > Services.  Flush-only; InventoryLedger owns the transaction.

Invariants enforced:
    - SKU uniqueness (DuplicateSkuError before the UNIQUE constraint fires).
    - Lot number uniqueness per item (DuplicateLotError).
    - Sum invariant survives deletion: only zero-quantity lots and items
      may be deleted.
    - History survives deletion: an item referenced by ledger lines or by
      another item's BOM cannot be deleted (ItemReferencedError).
    - Lot mutations lock the owning item row first, the same lock the
      LedgerWriter takes, so lot collections never change mid-posting.

Failure modes:
    - LedgerValidationError, ItemNotFoundError, LotNotFoundError,
      DuplicateSkuError, DuplicateLotError, LotNotEmptyError,
      ItemNotEmptyError, ItemReferencedError.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import Actor
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.domain.quantities import parse_optional_amount
from inventory_kernel.exceptions import (
    DuplicateLotError,
    DuplicateSkuError,
    ItemNotEmptyError,
    ItemNotFoundError,
    ItemReferencedError,
    LedgerValidationError,
    LotNotEmptyError,
    LotNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import BomComponent, Item, ItemLot, ItemType
from inventory_kernel.models.transaction import TransactionLine
from inventory_kernel.services.audit_mirror import AuditMirror
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")

_BOM_ITEM_TYPES = frozenset({ItemType.SOLUTION.value, ItemType.PRODUCT.value})


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise LedgerValidationError(f"{field} is required", field=field)
    return value.strip()


class CatalogService(BaseService[Item]):
    """Item catalog writes.  Reads go through ItemSelector."""

    def __init__(self, session: Session, audit_mirror: AuditMirror | None = None):
        super().__init__(session)
        self._audit_mirror = audit_mirror

    def lock_item(self, item_id: UUID) -> Item:
        """Load an item with a row lock (FOR UPDATE on PostgreSQL)."""
        item = self.session.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def create_item(
        self,
        sku: str,
        display_name: str,
        item_type: str,
        uom: str = "ea",
        lot_tracked: bool = False,
        cost: Any = None,
        description: str | None = None,
        cas_number: str | None = None,
        location: str | None = None,
        netsuite_internal_id: str | None = None,
        bom: Iterable[dict[str, Any]] | None = None,
    ) -> Item:
        """
        Create a catalog item with zero quantity.

        ``bom`` rows are mappings with ``component_item_id``, ``qty`` and
        optional ``uom``; only solutions and products may carry one.
        """
        sku = _require_text(sku, "sku")
        display_name = _require_text(display_name, "display_name")
        try:
            kind = ItemType(getattr(item_type, "value", item_type))
        except ValueError:
            raise LedgerValidationError(
                f"Unknown item_type: {item_type!r}", field="item_type"
            ) from None
        unit_cost = parse_optional_amount(cost, "cost")
        if unit_cost is not None and unit_cost < 0:
            raise LedgerValidationError("cost must not be negative", field="cost")

        existing = self.session.execute(
            select(Item.id).where(Item.sku == sku)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateSkuError(sku)

        item = Item(
            id=uuid4(),
            sku=sku,
            display_name=display_name,
            item_type=kind.value,
            uom=uom or "ea",
            lot_tracked=bool(lot_tracked),
            cost=unit_cost,
            description=description,
            cas_number=cas_number if kind == ItemType.CHEMICAL else None,
            location=location,
            netsuite_internal_id=netsuite_internal_id,
        )

        rows = list(bom or ())
        if rows and kind.value not in _BOM_ITEM_TYPES:
            raise LedgerValidationError(
                "Only solutions and products can have a bill of materials",
                field="bom",
            )
        for position, row in enumerate(rows):
            item.bom.append(self._build_bom_row(item, row, position))

        self.session.add(item)
        self.session.flush()

        logger.info(
            "item_created",
            extra={
                "item_id": str(item.id),
                "sku": sku,
                "item_type": kind.value,
                "lot_tracked": item.lot_tracked,
                "bom_rows": len(rows),
            },
        )
        return item

    def _build_bom_row(self, item: Item, row: dict[str, Any], position: int) -> BomComponent:
        component_id = parse_uuid(row.get("component_item_id"), "bom.component_item_id")
        if component_id == item.id:
            raise LedgerValidationError("An item cannot be its own component", field="bom")
        if self.session.get(Item, component_id) is None:
            raise ItemNotFoundError(str(component_id))
        qty = parse_optional_amount(row.get("qty"), "bom.qty")
        if qty is None or qty <= 0:
            raise LedgerValidationError("BOM quantity must be positive", field="bom.qty")
        return BomComponent(
            component_item_id=component_id,
            qty=qty,
            uom=row.get("uom") or "ea",
            position=position,
        )

    def add_lot(
        self,
        item_id: UUID,
        lot_number: str,
        expiry_date: date | None = None,
        vendor_lot_number: str | None = None,
        location: str | None = None,
    ) -> ItemLot:
        """Add an empty lot to a lot-tracked item."""
        lot_number = _require_text(lot_number, "lot_number")
        item = self.lock_item(item_id)
        if not item.lot_tracked:
            raise LedgerValidationError(
                f"Item {item.sku} is not lot-tracked", field="lot_number"
            )
        if item.find_lot_by_number(lot_number) is not None:
            raise DuplicateLotError(str(item.id), lot_number)

        lot = new_lot(
            item,
            lot_number,
            expiry_date=expiry_date,
            vendor_lot_number=vendor_lot_number,
            location=location,
        )
        self.session.flush()

        logger.info(
            "lot_added",
            extra={
                "item_id": str(item.id),
                "lot_id": str(lot.id),
                "lot_number": lot_number,
            },
        )
        return lot

    def delete_lot(self, item_id: UUID, lot_id: UUID, actor: Actor | None = None) -> Item:
        """
        Delete an empty lot.

        On a chemical item the removal is recorded in the chemical audit
        trail as a REMOVE entry.
        """
        item = self.lock_item(item_id)
        lot = item.find_lot(lot_id)
        if lot is None:
            raise LotNotFoundError(str(item.id), str(lot_id))
        quantity = Decimal(lot.quantity)
        if quantity != 0:
            raise LotNotEmptyError(str(lot.id), quantity)

        if item.is_chemical and self._audit_mirror is not None:
            self._audit_mirror.record_lot_removal(item, lot, actor)

        item.lots.remove(lot)
        self.session.flush()

        logger.info(
            "lot_deleted",
            extra={
                "item_id": str(item.id),
                "lot_id": str(lot_id),
                "lot_number": lot.lot_number,
            },
        )
        return item

    def delete_item(self, item_id: UUID) -> None:
        """Delete an item with no stock, no ledger history and no BOM users."""
        item = self.lock_item(item_id)
        qty = Decimal(item.qty_on_hand)
        if qty != 0 or any(Decimal(lot.quantity) != 0 for lot in item.lots):
            raise ItemNotEmptyError(str(item.id), qty)

        history = self.session.execute(
            select(func.count(TransactionLine.id)).where(TransactionLine.item_id == item.id)
        ).scalar_one()
        if history:
            raise ItemReferencedError(
                str(item.id), f"referenced by {history} ledger line(s)"
            )

        used_by = self.session.execute(
            select(func.count(BomComponent.id)).where(
                BomComponent.component_item_id == item.id
            )
        ).scalar_one()
        if used_by:
            raise ItemReferencedError(
                str(item.id), f"component of {used_by} bill(s) of materials"
            )

        self.session.delete(item)
        self.session.flush()

        logger.info("item_deleted", extra={"item_id": str(item_id), "sku": item.sku})


def new_lot(
    item: Item,
    lot_number: str,
    expiry_date: date | None = None,
    vendor_lot_number: str | None = None,
    location: str | None = None,
) -> ItemLot:
    """Append an empty lot to ``item``'s collection (caller flushes)."""
    position = max((lot.position for lot in item.lots), default=-1) + 1
    lot = ItemLot(
        id=uuid4(),
        lot_number=lot_number,
        quantity=Decimal("0"),
        expiry_date=expiry_date,
        vendor_lot_number=vendor_lot_number,
        location=location,
        position=position,
    )
    item.lots.append(lot)
    return lot
