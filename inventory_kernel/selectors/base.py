"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base for read-only query selectors, the query side of
    the kernel.  Selectors return frozen DTOs, never ORM entities.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from datetime import date, datetime, time, timedelta, timezone
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session


def window_start(value: date | datetime | None) -> datetime | None:
    """Inclusive lower bound; a date means the start of that UTC day."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def window_end(value: date | datetime | None) -> tuple[datetime | None, bool]:
    """
    Upper bound and whether it is exclusive.  A date covers the whole UTC
    day (exclusive bound at the next midnight); a datetime is inclusive.
    """
    if value is None:
        return None, False
    if isinstance(value, datetime):
        return _utc(value), False
    return datetime.combine(value + timedelta(days=1), time.min, tzinfo=timezone.utc), True


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
