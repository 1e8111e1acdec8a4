"""
Typed Exception Hierarchy for the Inventory Kernel.

Every error raised by the ledger is a typed exception carrying a
machine-readable ``code`` class attribute and structured attributes, so
callers catch by type and map to transport responses without parsing
messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- LedgerValidationError (alias: ValidationError)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- LotNotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- InsufficientQuantityError
    |
    +-- ReversalError
    |   +-- AlreadyReversedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- CatalogError
    |   +-- DuplicateSkuError
    |   +-- DuplicateLotError
    |   +-- LotNotEmptyError
    |   +-- ItemNotEmptyError
    |   +-- ItemReferencedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError
        +-- QuantityMutationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|----------------------------------------
Validation   | VALIDATION_ERROR             | Malformed posting or catalog input
-------------|------------------------------|----------------------------------------
Not found    | ITEM_NOT_FOUND               | Item id does not exist
             | LOT_NOT_FOUND                | Lot id/number not on the item
             | TRANSACTION_NOT_FOUND        | Transaction id does not exist
-------------|------------------------------|----------------------------------------
Quantity     | INSUFFICIENT_QUANTITY        | Posting would drive a quantity negative
             |                              | under the reject policy
-------------|------------------------------|----------------------------------------
Reversal     | ALREADY_REVERSED             | Transaction carries a reversal marker
-------------|------------------------------|----------------------------------------
Concurrency  | CONCURRENCY_CONFLICT         | Retries exhausted against other writers
-------------|------------------------------|----------------------------------------
Catalog      | DUPLICATE_SKU                | SKU already in use
             | DUPLICATE_LOT                | Lot number already on the item
             | LOT_NOT_EMPTY                | Deleting a lot with quantity
             | ITEM_NOT_EMPTY               | Deleting an item with quantity
             | ITEM_REFERENCED              | Deleting an item with history or BOM use
-------------|------------------------------|----------------------------------------
Immutability | IMMUTABILITY_VIOLATION       | Modifying a posted ledger/audit record
             | QUANTITY_MUTATION_FORBIDDEN  | Quantity changed outside a posting

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.post(request)
    except InsufficientQuantityError as e:
        return {"error": e.code, "item_id": e.item_id, "available": str(e.available)}
    except NotFoundError as e:
        return {"error": e.code}
    except ConcurrencyConflictError:
        # retries already exhausted inside the ledger
        raise
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation


class LedgerValidationError(InventoryKernelError):
    """Malformed input (caller error)."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


ValidationError = LedgerValidationError


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for missing referenced records."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class LotNotFoundError(NotFoundError):
    """Lot is not part of the item's lot collection."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, item_id: str, lot_ref: str):
        self.item_id = item_id
        self.lot_ref = lot_ref
        super().__init__(f"Lot {lot_ref} not found on item {item_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


# Quantity


class InsufficientQuantityError(InventoryKernelError):
    """
    Posting would leave a negative quantity.

    Raised only when the negative-quantity policy is REJECT.  ``lot_id`` is
    None when the item aggregate (not a lot) would go negative.
    """

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(
        self,
        item_id: str,
        available: Decimal,
        requested: Decimal,
        lot_id: str | None = None,
    ):
        self.item_id = item_id
        self.lot_id = lot_id
        self.available = available
        self.requested = requested
        target = f"lot {lot_id} of item {item_id}" if lot_id else f"item {item_id}"
        super().__init__(
            f"Insufficient quantity on {target}: "
            f"available={available}, change={requested}"
        )


# Reversal


class ReversalError(InventoryKernelError):
    """Base exception for reversal-related errors."""

    code: str = "REVERSAL_ERROR"


class AlreadyReversedError(ReversalError):
    """Transaction has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, transaction_id: str, reversed_by_id: str | None = None):
        self.transaction_id = transaction_id
        self.reversed_by_id = reversed_by_id
        super().__init__(f"Transaction {transaction_id} has already been reversed")


# Concurrency


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Competing writers could not be serialized within the allowed retries."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Concurrency conflict in {operation}: "
            f"gave up after {attempts} attempt(s)"
        )


# Catalog


class CatalogError(InventoryKernelError):
    """Base exception for item catalog errors."""

    code: str = "CATALOG_ERROR"


class DuplicateSkuError(CatalogError):
    """SKU is already used by another item."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already exists: {sku}")


class DuplicateLotError(CatalogError):
    """Lot number already exists on the item."""

    code: str = "DUPLICATE_LOT"

    def __init__(self, item_id: str, lot_number: str):
        self.item_id = item_id
        self.lot_number = lot_number
        super().__init__(f"Lot {lot_number} already exists on item {item_id}")


class LotNotEmptyError(CatalogError):
    """Lots can only be deleted once their quantity is zero."""

    code: str = "LOT_NOT_EMPTY"

    def __init__(self, lot_id: str, quantity: Decimal):
        self.lot_id = lot_id
        self.quantity = quantity
        super().__init__(f"Lot {lot_id} still holds quantity {quantity}")


class ItemNotEmptyError(CatalogError):
    """Items can only be deleted once their on-hand quantity is zero."""

    code: str = "ITEM_NOT_EMPTY"

    def __init__(self, item_id: str, qty_on_hand: Decimal):
        self.item_id = item_id
        self.qty_on_hand = qty_on_hand
        super().__init__(f"Item {item_id} still holds quantity {qty_on_hand}")


class ItemReferencedError(CatalogError):
    """Item is referenced by ledger history or another item's bill of materials."""

    code: str = "ITEM_REFERENCED"

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Item {item_id} cannot be deleted: {reason}")


# Immutability


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Transactions (outside the reversal marker), transaction lines and
    chemical audit entries are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class QuantityMutationError(ImmutabilityError):
    """Quantity fields changed outside an active ledger posting."""

    code: str = "QUANTITY_MUTATION_FORBIDDEN"

    def __init__(self, entity_type: str, entity_id: str, field: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.field = field
        super().__init__(
            f"{entity_type} {entity_id}: '{field}' may only change through a ledger posting"
        )
