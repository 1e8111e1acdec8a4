"""Tests for quantity parsing, id parsing and chemical action classification."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.identifiers import parse_optional_uuid, parse_uuid
from inventory_kernel.domain.quantities import (
    classify_chemical_action,
    line_value,
    parse_optional_amount,
    parse_quantity,
)
from inventory_kernel.exceptions import LedgerValidationError, ValidationError


class TestParseQuantity:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (5, Decimal("5")),
            (-20, Decimal("-20")),
            ("12.5", Decimal("12.5")),
            (" 3 ", Decimal("3")),
            (0.1, Decimal("0.1")),
            (Decimal("-0.001"), Decimal("-0.001")),
        ],
    )
    def test_accepts_numeric_input(self, raw, expected):
        assert parse_quantity(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [None, True, False, "abc", "", [], {}, 0, "0", Decimal("0.000"), "NaN", "Infinity", float("inf")],
    )
    def test_rejects_bad_input(self, raw):
        with pytest.raises(LedgerValidationError) as exc_info:
            parse_quantity(raw, field="lines[0].qty")
        assert exc_info.value.field == "lines[0].qty"
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_validation_error_alias(self):
        assert ValidationError is LedgerValidationError


class TestStorageScale:
    @pytest.mark.parametrize(
        "raw",
        ["-0.0000000001", Decimal("1.0000000001"), Decimal("1E+29"), "123456789012345678901234567890"],
    )
    def test_rejects_values_the_columns_would_round(self, raw):
        with pytest.raises(LedgerValidationError) as exc_info:
            parse_quantity(raw, field="lines[0].qty")
        assert exc_info.value.field == "lines[0].qty"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("0.000000001", Decimal("0.000000001")),
            ("1.5000000000", Decimal("1.5")),
            (Decimal("99999999999999999999999999999"), Decimal("99999999999999999999999999999")),
        ],
    )
    def test_accepts_values_within_scale(self, raw, expected):
        assert parse_quantity(raw) == expected

    def test_unit_cost_scale(self):
        with pytest.raises(LedgerValidationError):
            parse_optional_amount("0.0000000001", "unit_cost")

    def test_line_value_rounds_half_up_to_scale(self):
        assert line_value(Decimal("0.5"), Decimal("0.000000001")) == Decimal("0.000000001")
        assert line_value(Decimal("-0.5"), Decimal("0.000000001")) == Decimal("-0.000000001")
        assert line_value(Decimal("3"), Decimal("0.333333333")) == Decimal("0.999999999")

    def test_line_value_overflow(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            line_value(Decimal("1E+20"), Decimal("1E+10"), "lines[2].unit_cost")
        assert exc_info.value.field == "lines[2].unit_cost"


class TestParseOptionalAmount:
    def test_none_passes_through(self):
        assert parse_optional_amount(None, "unit_cost") is None

    def test_zero_allowed(self):
        assert parse_optional_amount("0", "unit_cost") == Decimal("0")

    @pytest.mark.parametrize("raw", [True, "cheap", float("nan")])
    def test_rejects(self, raw):
        with pytest.raises(LedgerValidationError):
            parse_optional_amount(raw, "unit_cost")


class TestParseUuid:
    def test_uuid_and_string(self):
        uid = uuid4()
        assert parse_uuid(uid, "item_id") == uid
        assert parse_uuid(str(uid), "item_id") == uid

    @pytest.mark.parametrize("raw", ["not-a-uuid", 42, None])
    def test_rejects(self, raw):
        with pytest.raises(LedgerValidationError) as exc_info:
            parse_uuid(raw, "item_id")
        assert exc_info.value.field == "item_id"

    def test_optional(self):
        assert parse_optional_uuid(None, "lot_id") is None


class TestClassifyChemicalAction:
    @pytest.mark.parametrize(
        "txn_type, qty, remaining, expected",
        [
            ("issue", Decimal("-20"), Decimal("30"), "USE"),
            ("issue", Decimal("-30"), Decimal("0"), "DEPLETE"),
            ("adjustment", Decimal("-5"), Decimal("0"), "DEPLETE"),
            ("receipt", Decimal("50"), Decimal("50"), "ADD"),
            ("build", Decimal("4"), Decimal("9"), "ADD"),
            ("adjustment", Decimal("2"), Decimal("7"), "ADJUST"),
            ("adjustment", Decimal("-2"), Decimal("5"), "USE"),
            ("issue", Decimal("-5"), Decimal("-3"), "USE"),
        ],
    )
    def test_classification(self, txn_type, qty, remaining, expected):
        assert classify_chemical_action(txn_type, qty, remaining) == expected
