"""Tests for whole-transaction reversal (ReversalService via InventoryLedger.reverse)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import Actor
from inventory_kernel.exceptions import (
    AlreadyReversedError,
    InsufficientQuantityError,
    LedgerValidationError,
    TransactionNotFoundError,
)


@pytest.fixture
def supervisor() -> Actor:
    return Actor(id="user-2", name="Supervisor", role="admin")


class TestReverse:
    def test_round_trip_restores_lot(self, chemical, ledger, post, supervisor, deterministic_clock):
        """Issue -20 then reverse: +20 posted, lot back to 50."""
        lot = chemical.lot_by_number("L1")
        issue = post("issue", {"item_id": chemical.id, "lot_id": lot.id, "qty": -20}).transaction
        deterministic_clock.advance(5)

        reversal = ledger.reverse(issue.id, supervisor, "entered twice")

        assert reversal.txn_type == "adjustment"
        assert reversal.reversal_of_id == issue.id
        assert reversal.ref_doc == str(issue.id)
        assert reversal.ref_doc_type == "reversal"
        assert reversal.reason == "entered twice"
        assert reversal.memo == f"Reversal of issue {issue.id}: entered twice"
        assert reversal.actor.id == supervisor.id
        line = reversal.lines[0]
        assert line.qty == Decimal("20")
        assert line.lot_id == lot.id
        assert (line.lot_qty_before, line.lot_qty_after) == (Decimal("30"), Decimal("50"))

        item = ledger.get_item(chemical.id)
        assert item.lot(lot.id).quantity == Decimal("50")
        assert item.qty_on_hand == Decimal("50")

    def test_original_is_marked(self, chemical, ledger, post, supervisor, deterministic_clock):
        lot = chemical.lot_by_number("L1")
        issue = post("issue", {"item_id": chemical.id, "lot_id": lot.id, "qty": -20}).transaction

        reversal = ledger.reverse(issue.id, supervisor, "wrong lot")

        original = ledger.get_transaction(issue.id)
        assert original.is_reversed
        assert original.reversed_by_id == reversal.id
        assert original.reversed_by_actor_id == supervisor.id
        assert original.reversed_at == deterministic_clock.now()
        # the rest of the original is untouched
        assert original.lines == issue.lines
        assert original.memo == issue.memo

    def test_copies_header_context(self, product, ledger, post, supervisor):
        receipt = post(
            "receipt",
            {"item_id": product.id, "qty": 3, "unit_cost": "4"},
            project="P-7",
            department="QA",
            batch_id="B-1",
        ).transaction

        reversal = ledger.reverse(receipt.id, supervisor, "returned")

        assert (reversal.project, reversal.department, reversal.batch_id) == ("P-7", "QA", "B-1")
        assert reversal.lines[0].unit_cost == Decimal("4")
        assert reversal.total_value == -receipt.total_value

    def test_multi_line_reversal(self, chemical, product, ledger, post, supervisor):
        lot = chemical.lot_by_number("L1")
        build = post(
            "build",
            {"item_id": product.id, "qty": 2},
            {"item_id": chemical.id, "lot_id": lot.id, "qty": -8},
        ).transaction

        reversal = ledger.reverse(build.id, supervisor, "scrapped")

        assert [l.qty for l in reversal.lines] == [Decimal("-2"), Decimal("8")]
        assert ledger.get_item(product.id).qty_on_hand == Decimal("0")
        assert ledger.get_item(chemical.id).qty_on_hand == Decimal("50")

    def test_already_reversed(self, chemical, ledger, post, supervisor):
        lot = chemical.lot_by_number("L1")
        issue = post("issue", {"item_id": chemical.id, "lot_id": lot.id, "qty": -1}).transaction
        reversal = ledger.reverse(issue.id, supervisor, "oops")

        with pytest.raises(AlreadyReversedError) as exc_info:
            ledger.reverse(issue.id, supervisor, "again")

        assert exc_info.value.reversed_by_id == str(reversal.id)
        assert ledger.get_item(chemical.id).qty_on_hand == Decimal("50")

    def test_reversal_can_itself_be_reversed(self, product, ledger, post, supervisor):
        receipt = post("receipt", {"item_id": product.id, "qty": 5}).transaction
        reversal = ledger.reverse(receipt.id, supervisor, "mistake")

        redo = ledger.reverse(reversal.id, supervisor, "not a mistake")

        assert redo.reversal_of_id == reversal.id
        assert ledger.get_item(product.id).qty_on_hand == Decimal("5")

    def test_reversal_that_would_go_negative_is_rejected(
        self, chemical, ledger, post, supervisor
    ):
        """All-or-nothing: nothing is marked when the reversing posting fails."""
        receipt = post("receipt", {"item_id": chemical.id, "lot_number": "L2", "qty": 10}).transaction
        lot2 = ledger.get_item(chemical.id).lot_by_number("L2")
        post("issue", {"item_id": chemical.id, "lot_id": lot2.id, "qty": -6})

        with pytest.raises(InsufficientQuantityError):
            ledger.reverse(receipt.id, supervisor, "bad receipt")

        assert ledger.get_transaction(receipt.id).status == "posted"
        assert ledger.get_item(chemical.id).lot(lot2.id).quantity == Decimal("4")

    def test_unknown_transaction(self, ledger, supervisor):
        with pytest.raises(TransactionNotFoundError):
            ledger.reverse(uuid4(), supervisor, "ghost")

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reason_required(self, product, ledger, post, supervisor, reason):
        receipt = post("receipt", {"item_id": product.id, "qty": 1}).transaction
        with pytest.raises(LedgerValidationError) as exc_info:
            ledger.reverse(receipt.id, supervisor, reason)
        assert exc_info.value.field == "reason"

    def test_actor_required(self, product, ledger, post):
        receipt = post("receipt", {"item_id": product.id, "qty": 1}).transaction
        with pytest.raises(LedgerValidationError):
            ledger.reverse(receipt.id, None, "no one")

    def test_logs(self, product, ledger, post, supervisor, captured_logs):
        receipt = post("receipt", {"item_id": product.id, "qty": 1}).transaction
        reversal = ledger.reverse(receipt.id, supervisor, "undo")

        logs = captured_logs()
        done = [r for r in logs if r["message"] == "reversal_posted"]
        assert len(done) == 1
        completed = [r for r in logs if r["message"] == "reversal_completed"]
        assert len(completed) == 1
        assert completed[0]["logger"] == "inventory_kernel.services.ledger"
        assert done[0]["reversal_transaction_id"] == str(reversal.id)
        assert done[0]["original_transaction_id"] == str(receipt.id)
        assert done[0]["actor_id"] == supervisor.id
