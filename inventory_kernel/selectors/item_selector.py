"""Read-only catalog queries returning ItemSnapshot DTOs."""

from uuid import UUID

from sqlalchemy import or_, select

from inventory_kernel.domain.dtos import ItemSnapshot
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.exceptions import ItemNotFoundError, LedgerValidationError
from inventory_kernel.models.item import Item, ItemType
from inventory_kernel.selectors.base import BaseSelector


class ItemSelector(BaseSelector[Item]):
    """Catalog lookups: by id, by SKU, and filtered search."""

    def exists(self, item_id: UUID) -> bool:
        return self.session.get(Item, item_id) is not None

    def get(self, item_id) -> ItemSnapshot:
        item = self.session.get(Item, parse_uuid(item_id, "item_id"))
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return ItemSnapshot.from_model(item)

    def find_by_sku(self, sku: str) -> ItemSnapshot | None:
        item = self.session.execute(
            select(Item).where(Item.sku == sku)
        ).scalar_one_or_none()
        return ItemSnapshot.from_model(item) if item is not None else None

    def search(
        self,
        item_type: str | None = None,
        text: str | None = None,
        limit: int = 100,
    ) -> list[ItemSnapshot]:
        """
        Items ordered by display name.  ``text`` matches SKU, display name
        or CAS number case-insensitively.
        """
        if limit < 1:
            raise LedgerValidationError("limit must be positive", field="limit")
        stmt = select(Item)
        if item_type is not None:
            try:
                kind = ItemType(getattr(item_type, "value", item_type))
            except ValueError:
                raise LedgerValidationError(
                    f"Unknown item_type: {item_type!r}", field="item_type"
                ) from None
            stmt = stmt.where(Item.item_type == kind.value)
        if text:
            pattern = f"%{text.strip()}%"
            stmt = stmt.where(
                or_(
                    Item.sku.ilike(pattern),
                    Item.display_name.ilike(pattern),
                    Item.cas_number.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Item.display_name, Item.sku).limit(limit)
        return [ItemSnapshot.from_model(item) for item in self.session.scalars(stmt)]
