"""Tests for ledger reads: list_by_item, get_item_stats, get_lot_history, anomalies."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import LineRequest, PostingRequest
from inventory_kernel.exceptions import (
    ItemNotFoundError,
    LedgerValidationError,
    LotNotFoundError,
    TransactionNotFoundError,
)


class TestListByItem:
    def test_newest_first(self, product, ledger, post):
        ids = [post("receipt", {"item_id": product.id, "qty": n}).transaction.id for n in (1, 2, 3)]

        listed = ledger.list_by_item(product.id)

        assert [t.id for t in listed] == list(reversed(ids))

    def test_same_timestamp_ordered_by_seq(self, product, ledger, actor):
        ids = []
        for qty in (1, 2):
            ids.append(
                ledger.post(
                    PostingRequest(
                        txn_type="receipt",
                        lines=[LineRequest(item_id=product.id, qty=qty)],
                        actor=actor,
                    )
                ).transaction.id
            )

        assert [t.id for t in ledger.list_by_item(product.id)] == list(reversed(ids))

    def test_pagination(self, product, ledger, post):
        ids = [post("receipt", {"item_id": product.id, "qty": 1}).transaction.id for _ in range(5)]
        newest_first = list(reversed(ids))

        page1 = ledger.list_by_item(product.id, limit=2, page=1)
        page3 = ledger.list_by_item(product.id, limit=2, page=3)
        page4 = ledger.list_by_item(product.id, limit=2, page=4)

        assert [t.id for t in page1] == newest_first[:2]
        assert [t.id for t in page3] == newest_first[4:]
        assert page4 == []

    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"page": 0}, {"limit": -5}])
    def test_bad_pagination(self, product, ledger, kwargs):
        with pytest.raises(LedgerValidationError):
            ledger.list_by_item(product.id, **kwargs)

    def test_only_item_lines_returned(self, chemical, product, ledger, post):
        lot = chemical.lot_by_number("L1")
        build = post(
            "build",
            {"item_id": product.id, "qty": 1},
            {"item_id": chemical.id, "lot_id": lot.id, "qty": -3},
        ).transaction

        listed = ledger.list_by_item(product.id)

        assert len(listed) == 1
        assert listed[0].id == build.id
        assert [l.item_id for l in listed[0].lines] == [product.id]
        assert listed[0].line_count == 2

    def test_filter_by_type_and_status(self, product, ledger, post, actor):
        receipt = post("receipt", {"item_id": product.id, "qty": 5}).transaction
        second = post("receipt", {"item_id": product.id, "qty": 2}).transaction
        post("issue", {"item_id": product.id, "qty": -1})
        ledger.reverse(receipt.id, actor, "oops")

        receipts = ledger.list_by_item(product.id, txn_type="receipt")
        reversed_only = ledger.list_by_item(product.id, status="reversed")
        posted = ledger.list_by_item(product.id, status="posted")

        assert [t.id for t in receipts] == [second.id, receipt.id]
        assert [t.id for t in reversed_only] == [receipt.id]
        assert receipt.id not in {t.id for t in posted}
        assert len(ledger.list_by_item(product.id)) == 4

    def test_unknown_filter_values(self, product, ledger):
        with pytest.raises(LedgerValidationError):
            ledger.list_by_item(product.id, txn_type="transfer")
        with pytest.raises(LedgerValidationError):
            ledger.list_by_item(product.id, status="void")

    def test_unknown_item(self, ledger):
        with pytest.raises(ItemNotFoundError):
            ledger.list_by_item(uuid4())

    def test_date_window(self, product, ledger, post, deterministic_clock):
        deterministic_clock.set_time(datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc))
        march1 = post("receipt", {"item_id": product.id, "qty": 1}).transaction
        deterministic_clock.set_time(datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc))
        march2 = post("receipt", {"item_id": product.id, "qty": 1}).transaction
        deterministic_clock.set_time(datetime(2024, 3, 3, 0, 0, tzinfo=timezone.utc))
        march3 = post("receipt", {"item_id": product.id, "qty": 1}).transaction

        by_date = ledger.list_by_item(product.id, start_date=date(2024, 3, 2), end_date=date(2024, 3, 2))
        from_first = ledger.list_by_item(product.id, start_date=date(2024, 3, 1), end_date=date(2024, 3, 2))
        by_datetime = ledger.list_by_item(
            product.id,
            end_date=datetime(2024, 3, 2, 8, 0, 1, tzinfo=timezone.utc),
        )

        assert [t.id for t in by_date] == [march2.id]
        assert [t.id for t in from_first] == [march2.id, march1.id]
        assert [t.id for t in by_datetime] == [march2.id, march1.id]
        assert march3.id not in {t.id for t in by_datetime}


class TestGetTransaction:
    def test_round_trip(self, product, ledger, post):
        posted = post("receipt", {"item_id": product.id, "qty": 2}, memo="hello").transaction

        fetched = ledger.get_transaction(posted.id)

        assert fetched.id == posted.id
        assert fetched.memo == "hello"
        assert fetched.posted_at == posted.posted_at
        assert fetched.posted_at.tzinfo is not None
        assert fetched.lines[0].qty == Decimal("2")

    def test_unknown(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.get_transaction(uuid4())


class TestItemStats:
    def test_issue_and_reversal_totals(self, chemical, ledger, post, actor, deterministic_clock):
        """Lot 50, issue -20 then reverse: total issued 20 within the window."""
        lot = chemical.lot_by_number("L1")
        issue = post("issue", {"item_id": chemical.id, "lot_id": lot.id, "qty": -20}).transaction
        ledger.reverse(issue.id, actor, "undo")

        today = deterministic_clock.today()
        stats = ledger.get_item_stats(chemical.id, today, today)

        assert stats.total_issued == Decimal("20")
        assert stats.total_received == Decimal("50")
        assert stats.total_adjusted == Decimal("20")
        assert stats.total_built == Decimal("0")
        assert stats.total_in == Decimal("70")
        assert stats.total_out == Decimal("20")
        assert stats.net_change == Decimal("50")
        assert stats.transaction_count == 3
        assert stats.count_by_type == {"adjustment": 1, "build": 0, "issue": 1, "receipt": 1}

    def test_counts_transactions_not_lines(self, chemical, ledger, post):
        lot = chemical.lot_by_number("L1")
        post(
            "issue",
            {"item_id": chemical.id, "lot_id": lot.id, "qty": -1},
            {"item_id": chemical.id, "lot_id": lot.id, "qty": -2},
        )

        stats = ledger.get_item_stats(chemical.id)

        assert stats.count_by_type["issue"] == 1
        assert stats.total_issued == Decimal("3")

    def test_window_excludes_outside(self, product, ledger, post, deterministic_clock):
        post("receipt", {"item_id": product.id, "qty": 4})
        deterministic_clock.advance(int(timedelta(days=2).total_seconds()))
        post("issue", {"item_id": product.id, "qty": -1})

        stats = ledger.get_item_stats(product.id, start_date=deterministic_clock.today())

        assert stats.transaction_count == 1
        assert stats.total_received == Decimal("0")
        assert stats.total_issued == Decimal("1")

    def test_unknown_item_has_zero_stats(self, ledger):
        stats = ledger.get_item_stats(uuid4())
        assert stats.transaction_count == 0
        assert stats.total_in == Decimal("0")


class TestLotHistory:
    def test_chronological(self, chemical, ledger, post):
        lot = chemical.lot_by_number("L1")
        post("issue", {"item_id": chemical.id, "lot_id": lot.id, "qty": -5})
        post("receipt", {"item_id": chemical.id, "lot_number": "L2", "qty": 3})
        post("adjustment", {"item_id": chemical.id, "lot_id": lot.id, "qty": 1})

        history = ledger.get_lot_history(chemical.id, lot.id)

        assert [e.txn_type for e in history] == ["receipt", "issue", "adjustment"]
        assert [e.line.lot_qty_after for e in history] == [Decimal("50"), Decimal("45"), Decimal("46")]
        assert all(e.line.lot_id == lot.id for e in history)

    def test_unknown_lot(self, chemical, ledger):
        with pytest.raises(LotNotFoundError):
            ledger.get_lot_history(chemical.id, uuid4())

    def test_empty_lot_without_history(self, chemical, ledger):
        lot = ledger.add_lot(chemical.id, "EMPTY").lot_by_number("EMPTY")
        assert ledger.get_lot_history(chemical.id, lot.id) == []

    def test_unknown_item(self, ledger):
        with pytest.raises(ItemNotFoundError):
            ledger.get_lot_history(uuid4(), uuid4())


class TestAnomalies:
    def test_lists_flagged_lines_only(self, product, flagging_ledger, post):
        post("receipt", {"item_id": product.id, "qty": 1}, target=flagging_ledger)
        flagged = post("issue", {"item_id": product.id, "qty": -4}, target=flagging_ledger).transaction

        anomalies = flagging_ledger.list_anomalies()

        assert len(anomalies) == 1
        assert anomalies[0].transaction_id == flagged.id
        assert anomalies[0].line.item_qty_after == Decimal("-3")
