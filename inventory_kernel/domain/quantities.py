"""
Quantity parsing and chemical action classification.

Pure functions, zero I/O.  Quantities are always Decimal inside the kernel;
this module is the single conversion point from caller input.

Every quantity and value column is Numeric(38, 9), so anything accepted
here must fit that scale exactly: at most 9 decimal places and 29 integer
digits.  Arithmetic on stored values runs under LEDGER_CONTEXT, whose
precision covers the full column width.
"""

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Any

from inventory_kernel.exceptions import LedgerValidationError

ZERO = Decimal("0")

QUANTITY_PLACES = 9
MAX_INTEGER_DIGITS = 29
QUANTITY_SCALE = Decimal(1).scaleb(-QUANTITY_PLACES)

LEDGER_CONTEXT = Context(prec=QUANTITY_PLACES + MAX_INTEGER_DIGITS, rounding=ROUND_HALF_UP)

# Transaction types whose positive lines bring new stock in
INBOUND_TXN_TYPES = frozenset({"receipt", "build"})


def check_storable(value: Decimal, field: str) -> Decimal:
    """
    Reject a finite Decimal the storage columns would round or overflow.

    Trailing zeros beyond the scale are fine (1.5000000000 == 1.5).
    """
    if value != ZERO and value.adjusted() >= MAX_INTEGER_DIGITS:
        raise LedgerValidationError(
            f"{field} exceeds {MAX_INTEGER_DIGITS} integer digits", field=field
        )
    with localcontext(LEDGER_CONTEXT):
        if value.quantize(QUANTITY_SCALE) != value:
            raise LedgerValidationError(
                f"{field} has more than {QUANTITY_PLACES} decimal places: {value}",
                field=field,
            )
    return value


def parse_quantity(value: Any, field: str = "qty") -> Decimal:
    """
    Convert a caller-supplied quantity to a finite, non-zero Decimal.

    Accepts Decimal, int, float and numeric strings.  Floats go through
    ``str()`` so 0.1 becomes Decimal("0.1"), not its binary expansion.

    Raises:
        LedgerValidationError: bool, None, non-numeric, NaN, infinite, zero,
            or finer / larger than the storage scale.
    """
    if value is None or isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be a number, got {value!r}", field=field)

    if isinstance(value, Decimal):
        qty = value
    elif isinstance(value, (int, float)):
        qty = Decimal(str(value))
    elif isinstance(value, str):
        try:
            qty = Decimal(value.strip())
        except InvalidOperation:
            raise LedgerValidationError(
                f"{field} is not numeric: {value!r}", field=field
            ) from None
    else:
        raise LedgerValidationError(
            f"{field} must be a number, got {type(value).__name__}", field=field
        )

    if not qty.is_finite():
        raise LedgerValidationError(f"{field} must be finite, got {value!r}", field=field)
    if qty == ZERO:
        raise LedgerValidationError(f"{field} must be non-zero", field=field)
    return check_storable(qty, field)


def parse_optional_amount(value: Any, field: str) -> Decimal | None:
    """Like parse_quantity but allows None and zero (unit costs)."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be a number, got {value!r}", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise LedgerValidationError(f"{field} is not numeric: {value!r}", field=field) from None
    if not amount.is_finite():
        raise LedgerValidationError(f"{field} must be finite, got {value!r}", field=field)
    return check_storable(amount, field)


def line_value(qty: Decimal, unit_cost: Decimal, field: str = "unit_cost") -> Decimal:
    """qty * unit_cost rounded half-up to the storage scale."""
    with localcontext(LEDGER_CONTEXT):
        raw = qty * unit_cost
        if raw != ZERO and raw.adjusted() >= MAX_INTEGER_DIGITS:
            raise LedgerValidationError(
                f"line value {raw} exceeds {MAX_INTEGER_DIGITS} integer digits",
                field=field,
            )
        return raw.quantize(QUANTITY_SCALE)


def classify_chemical_action(txn_type: str, qty: Decimal, remaining: Decimal) -> str:
    """
    Classify a chemical lot movement for the audit trail.

    Order matters: a movement that empties the lot is DEPLETE regardless
    of sign.

        remaining == 0                      -> DEPLETE
        qty < 0                             -> USE
        qty > 0 and txn_type in receipt/build -> ADD
        qty > 0 otherwise                   -> ADJUST
    """
    if remaining == ZERO:
        return "DEPLETE"
    if qty < ZERO:
        return "USE"
    if txn_type in INBOUND_TXN_TYPES:
        return "ADD"
    return "ADJUST"
