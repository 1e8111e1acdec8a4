"""
BaseService -- abstract base for all kernel write services.

Responsibility:
    Common constructor and session contract.  Services receive a SQLAlchemy
    ``Session`` and persist through ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  Every service in ``inventory_kernel/services/`` that
    writes extends this class.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back.  InventoryLedger (or a test harness)
      owns commit/rollback, which is what makes item mutation, transaction
      insert and reversal marker one atomic unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only queries; those live in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
