"""
Module: inventory_kernel.selectors.integrity_selector
Responsibility: Reconciliation sweep.  Replays each item's ledger lines in
    application order and reports every place where stored quantities and
    recorded snapshots disagree.
Architecture position: Kernel > Selectors.  Read-only.

Checks (IntegrityIssue.kind):
    lot_sum_mismatch        lot-tracked item: qty_on_hand != sum(lot.quantity)
    line_arithmetic         *_qty_after != *_qty_before + qty on a line
    item_chain_break        item_qty_before != previous line's item_qty_after
    lot_chain_break         lot_qty_before != previous line's lot_qty_after
    item_snapshot_mismatch  latest item_qty_after != stored qty_on_hand
                            (or non-zero stock with no history)
    lot_snapshot_mismatch   latest lot_qty_after != stored lot quantity
                            (or non-zero lot with no history)

Application order is transaction seq, then line_seq: seq is allocated
while the posting's items are locked, so it is the order in which
quantities actually changed.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import IntegrityIssue
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.exceptions import ItemNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.models.transaction import InventoryTransaction, TransactionLine
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.integrity")


def _dec(value) -> Decimal | None:
    return None if value is None else Decimal(value)


class IntegritySelector(BaseSelector[Item]):
    """Compares stored quantities with the ledger; never repairs anything."""

    def verify_item(self, item_id) -> list[IntegrityIssue]:
        item = self.session.get(Item, parse_uuid(item_id, "item_id"))
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return self._verify(item)

    def verify_all(self) -> list[IntegrityIssue]:
        issues: list[IntegrityIssue] = []
        items = self.session.scalars(select(Item).order_by(Item.sku)).all()
        for item in items:
            issues.extend(self._verify(item))
        logger.info(
            "integrity_sweep_completed",
            extra={"items_checked": len(items), "issues": len(issues)},
        )
        return issues

    def _verify(self, item: Item) -> list[IntegrityIssue]:
        issues: list[IntegrityIssue] = []
        qty_on_hand = Decimal(item.qty_on_hand)

        if item.lot_tracked and qty_on_hand != item.lot_total:
            issues.append(
                IntegrityIssue(
                    item_id=item.id,
                    kind="lot_sum_mismatch",
                    detail=f"qty_on_hand {qty_on_hand} != lot total {item.lot_total}",
                    expected=item.lot_total,
                    actual=qty_on_hand,
                )
            )

        stmt = (
            select(TransactionLine.transaction_id, TransactionLine.lot_id, TransactionLine.qty,
                   TransactionLine.lot_qty_before, TransactionLine.lot_qty_after,
                   TransactionLine.item_qty_before, TransactionLine.item_qty_after)
            .join(InventoryTransaction, TransactionLine.transaction_id == InventoryTransaction.id)
            .where(TransactionLine.item_id == item.id)
            .order_by(InventoryTransaction.seq, TransactionLine.line_seq)
        )

        last_item_after: Decimal | None = None
        last_lot_after: dict[UUID, Decimal] = {}
        for txn_id, lot_id, qty, lot_before, lot_after, item_before, item_after in (
            self.session.execute(stmt)
        ):
            qty = Decimal(qty)
            item_before, item_after = Decimal(item_before), Decimal(item_after)
            lot_before, lot_after = _dec(lot_before), _dec(lot_after)

            if item_after != item_before + qty:
                issues.append(
                    IntegrityIssue(
                        item_id=item.id,
                        transaction_id=txn_id,
                        kind="line_arithmetic",
                        detail=f"item {item_before} + {qty} != {item_after}",
                        expected=item_before + qty,
                        actual=item_after,
                    )
                )
            if lot_id is not None and lot_after != lot_before + qty:
                issues.append(
                    IntegrityIssue(
                        item_id=item.id,
                        lot_id=lot_id,
                        transaction_id=txn_id,
                        kind="line_arithmetic",
                        detail=f"lot {lot_before} + {qty} != {lot_after}",
                        expected=lot_before + qty,
                        actual=lot_after,
                    )
                )

            if last_item_after is not None and item_before != last_item_after:
                issues.append(
                    IntegrityIssue(
                        item_id=item.id,
                        transaction_id=txn_id,
                        kind="item_chain_break",
                        detail=f"item_qty_before {item_before} != previous after {last_item_after}",
                        expected=last_item_after,
                        actual=item_before,
                    )
                )
            if lot_id is not None:
                previous = last_lot_after.get(lot_id)
                if previous is not None and lot_before != previous:
                    issues.append(
                        IntegrityIssue(
                            item_id=item.id,
                            lot_id=lot_id,
                            transaction_id=txn_id,
                            kind="lot_chain_break",
                            detail=f"lot_qty_before {lot_before} != previous after {previous}",
                            expected=previous,
                            actual=lot_before,
                        )
                    )
                last_lot_after[lot_id] = lot_after
            last_item_after = item_after

        expected_item = last_item_after if last_item_after is not None else Decimal("0")
        if qty_on_hand != expected_item:
            issues.append(
                IntegrityIssue(
                    item_id=item.id,
                    kind="item_snapshot_mismatch",
                    detail=f"stored {qty_on_hand} != ledger {expected_item}",
                    expected=expected_item,
                    actual=qty_on_hand,
                )
            )

        for lot in item.lots:
            stored = Decimal(lot.quantity)
            expected_lot = last_lot_after.get(lot.id, Decimal("0"))
            if stored != expected_lot:
                issues.append(
                    IntegrityIssue(
                        item_id=item.id,
                        lot_id=lot.id,
                        kind="lot_snapshot_mismatch",
                        detail=f"lot {lot.lot_number}: stored {stored} != ledger {expected_lot}",
                        expected=expected_lot,
                        actual=stored,
                    )
                )

        return issues
