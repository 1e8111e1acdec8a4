"""Identifier coercion at the kernel boundary."""

from typing import Any
from uuid import UUID

from inventory_kernel.exceptions import LedgerValidationError


def parse_uuid(value: Any, field: str) -> UUID:
    """Accept a UUID or its string form; anything else is a caller error."""
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    raise LedgerValidationError(f"{field} is not a valid id: {value!r}", field=field)


def parse_optional_uuid(value: Any, field: str) -> UUID | None:
    if value is None:
        return None
    return parse_uuid(value, field)
