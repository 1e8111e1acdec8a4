"""Reconciliation sweep: stored quantities against the replayed ledger."""

import pytest
from sqlalchemy import text

from inventory_kernel.exceptions import ItemNotFoundError


def _tamper(engine, statement, **params):
    # Raw SQL skips the ORM quantity guard.
    with engine.begin() as conn:
        conn.execute(text(statement), params)


class TestCleanLedger:
    def test_no_issues_after_normal_activity(self, chemical, product, ledger, post, actor):
        lot = chemical.lot_by_number("L1")
        post("issue", {"item_id": chemical.id, "lot_id": lot.id, "qty": -5})
        post("receipt", {"item_id": chemical.id, "lot_number": "L2", "qty": 10})
        receipt = post("receipt", {"item_id": product.id, "qty": 4})
        ledger.reverse(receipt.transaction.id, actor=actor, reason="typo")

        assert ledger.verify_integrity() == []
        assert ledger.verify_integrity(chemical.id) == []

    def test_sweep_is_logged(self, chemical, ledger, captured_logs):
        ledger.verify_integrity()

        sweep = [r for r in captured_logs() if r["message"] == "integrity_sweep_completed"]
        assert sweep and sweep[-1]["items_checked"] == 1
        assert sweep[-1]["issues"] == 0

    def test_unknown_item(self, ledger):
        with pytest.raises(ItemNotFoundError):
            ledger.verify_integrity("00000000-0000-0000-0000-000000000000")


class TestTamperedState:
    def test_item_quantity_overwritten(self, chemical, ledger, engine):
        _tamper(engine, "UPDATE items SET qty_on_hand = 999 WHERE sku = :sku", sku="CHEM-ACE")

        kinds = {issue.kind for issue in ledger.verify_integrity(chemical.id)}

        assert "lot_sum_mismatch" in kinds
        assert "item_snapshot_mismatch" in kinds

    def test_lot_quantity_overwritten(self, chemical, ledger, engine):
        _tamper(engine, "UPDATE item_lots SET quantity = 7 WHERE lot_number = :lot", lot="L1")

        issues = ledger.verify_integrity(chemical.id)
        kinds = {issue.kind for issue in issues}

        assert "lot_sum_mismatch" in kinds
        assert "lot_snapshot_mismatch" in kinds
        assert "item_snapshot_mismatch" not in kinds

    def test_stock_without_history(self, product, ledger, engine):
        _tamper(engine, "UPDATE items SET qty_on_hand = 3 WHERE sku = :sku", sku="PROD-KIT")

        issues = ledger.verify_integrity(product.id)

        assert [issue.kind for issue in issues] == ["item_snapshot_mismatch"]
