"""
Module: inventory_kernel.selectors.transaction_selector
Responsibility: Read-only ledger queries: a transaction by id, transactions by
    item (item-scoped lines, paginated, newest first), per-item movement
    statistics, lot history and the negative-quantity anomaly report.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ordering: "newest first" is (posted_at DESC, seq DESC); chronological
      is (posted_at, seq, line_seq).  seq is unique, so both are total.
    - Statistics are a pure aggregation over stored lines.  Sums are taken
      in Python over Decimal values so every backend returns the same
      figures.
    - Reversed transactions stay in the ledger and are included unless a
      status filter excludes them; their reversals are adjustments.

Failure modes:
    - ItemNotFoundError from list_by_item / get_lot_history for an unknown
      item; LotNotFoundError for a lot with neither a current row nor history.
    - TransactionNotFoundError from get().
    - LedgerValidationError for bad ids, pagination or filter values.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import (
    ItemStats,
    LineHistoryEntry,
    TransactionRecord,
)
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.exceptions import (
    ItemNotFoundError,
    LedgerValidationError,
    LotNotFoundError,
    TransactionNotFoundError,
)
from inventory_kernel.models.item import Item
from inventory_kernel.models.transaction import (
    InventoryTransaction,
    TransactionLine,
    TxnStatus,
    TxnType,
)
from inventory_kernel.selectors.base import BaseSelector, window_end, window_start

_TXN_TYPES = frozenset(t.value for t in TxnType)
_STATUSES = frozenset(s.value for s in TxnStatus)

ZERO = Decimal("0")


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise LedgerValidationError(f"{field} must be a positive integer", field=field)
    return value


class TransactionSelector(BaseSelector[InventoryTransaction]):
    """Ledger read path."""

    def _window(self, stmt, start_date, end_date):
        start = window_start(start_date)
        end, exclusive = window_end(end_date)
        if start is not None:
            stmt = stmt.where(InventoryTransaction.posted_at >= start)
        if end is not None:
            if exclusive:
                stmt = stmt.where(InventoryTransaction.posted_at < end)
            else:
                stmt = stmt.where(InventoryTransaction.posted_at <= end)
        return stmt

    def _require_item(self, item_id) -> Item:
        item = self.session.get(Item, parse_uuid(item_id, "item_id"))
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def get(self, transaction_id) -> TransactionRecord:
        txn = self.session.get(
            InventoryTransaction, parse_uuid(transaction_id, "transaction_id")
        )
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return TransactionRecord.from_model(txn)

    def list_by_item(
        self,
        item_id,
        txn_type: str | None = None,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
        status: str | None = None,
        limit: int = 100,
        page: int = 1,
    ) -> list[TransactionRecord]:
        """
        Transactions touching the item, newest first, each carrying only the
        item's own lines.
        """
        limit = _positive_int(limit, "limit")
        page = _positive_int(page, "page")
        item = self._require_item(item_id)

        stmt = select(InventoryTransaction).where(
            InventoryTransaction.id.in_(
                select(TransactionLine.transaction_id).where(
                    TransactionLine.item_id == item.id
                )
            )
        )
        if txn_type is not None:
            txn_type = getattr(txn_type, "value", txn_type)
            if txn_type not in _TXN_TYPES:
                raise LedgerValidationError(
                    f"Unknown txn_type: {txn_type!r}", field="txn_type"
                )
            stmt = stmt.where(InventoryTransaction.txn_type == txn_type)
        if status is not None:
            status = getattr(status, "value", status)
            if status not in _STATUSES:
                raise LedgerValidationError(f"Unknown status: {status!r}", field="status")
            stmt = stmt.where(InventoryTransaction.status == status)
        stmt = self._window(stmt, start_date, end_date)
        stmt = (
            stmt.order_by(
                InventoryTransaction.posted_at.desc(),
                InventoryTransaction.seq.desc(),
            )
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return [
            TransactionRecord.from_model(txn, item_id=item.id)
            for txn in self.session.scalars(stmt)
        ]

    def get_item_stats(
        self,
        item_id,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
    ) -> ItemStats:
        """
        Movement totals for one item.  An unknown item has no lines and
        yields zero stats.
        """
        item_uuid = parse_uuid(item_id, "item_id")
        stmt = (
            select(TransactionLine.qty, InventoryTransaction.id, InventoryTransaction.txn_type)
            .join(InventoryTransaction, TransactionLine.transaction_id == InventoryTransaction.id)
            .where(TransactionLine.item_id == item_uuid)
        )
        stmt = self._window(stmt, start_date, end_date)

        seen: dict[UUID, str] = {}
        total_in = total_out = ZERO
        per_type = {t: ZERO for t in _TXN_TYPES}
        issued_abs = ZERO
        for qty, txn_id, txn_type in self.session.execute(stmt):
            qty = Decimal(qty)
            txn_type = getattr(txn_type, "value", txn_type)
            seen[txn_id] = txn_type
            if qty > ZERO:
                total_in += qty
            else:
                total_out += -qty
            per_type[txn_type] += qty
            if txn_type == TxnType.ISSUE.value:
                issued_abs += abs(qty)

        count_by_type = {t: 0 for t in sorted(_TXN_TYPES)}
        for txn_type in seen.values():
            count_by_type[txn_type] += 1

        return ItemStats(
            item_id=item_uuid,
            start_date=start_date,
            end_date=end_date,
            transaction_count=len(seen),
            count_by_type=count_by_type,
            total_in=total_in,
            total_out=total_out,
            total_received=per_type[TxnType.RECEIPT.value],
            total_issued=issued_abs,
            total_adjusted=per_type[TxnType.ADJUSTMENT.value],
            total_built=per_type[TxnType.BUILD.value],
        )

    def _line_entries(self, stmt) -> list[LineHistoryEntry]:
        return [
            LineHistoryEntry.from_models(txn, line)
            for line, txn in self.session.execute(stmt)
        ]

    def get_lot_history(self, item_id, lot_id) -> list[LineHistoryEntry]:
        """Every line that touched the lot, oldest first."""
        item = self._require_item(item_id)
        lot_uuid = parse_uuid(lot_id, "lot_id")
        stmt = (
            select(TransactionLine, InventoryTransaction)
            .join(InventoryTransaction, TransactionLine.transaction_id == InventoryTransaction.id)
            .where(TransactionLine.item_id == item.id, TransactionLine.lot_id == lot_uuid)
            .order_by(
                InventoryTransaction.posted_at,
                InventoryTransaction.seq,
                TransactionLine.line_seq,
            )
        )
        entries = self._line_entries(stmt)
        if not entries and item.find_lot(lot_uuid) is None:
            raise LotNotFoundError(str(item.id), str(lot_uuid))
        return entries

    def list_anomalies(self, item_id=None, limit: int = 100) -> list[LineHistoryEntry]:
        """Lines flagged is_negative_anomaly, newest first."""
        limit = _positive_int(limit, "limit")
        stmt = (
            select(TransactionLine, InventoryTransaction)
            .join(InventoryTransaction, TransactionLine.transaction_id == InventoryTransaction.id)
            .where(TransactionLine.is_negative_anomaly.is_(True))
        )
        if item_id is not None:
            stmt = stmt.where(TransactionLine.item_id == parse_uuid(item_id, "item_id"))
        stmt = stmt.order_by(
            InventoryTransaction.posted_at.desc(),
            InventoryTransaction.seq.desc(),
            TransactionLine.line_seq,
        ).limit(limit)
        return self._line_entries(stmt)
