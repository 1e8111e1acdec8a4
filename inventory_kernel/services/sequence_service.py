"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing numbers for inventory transactions so
    that "newest first" and "chronological" are total orders even when two
    postings share a timestamp.

Architecture position:
    Kernel > Services.  Called by LedgerWriter after the posting's items are
    locked, so lock order is always items (sorted) then counter.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of the next
      value; max(seq)+1 is never used.
    - Transactional: a rolled-back posting returns its value.

Failure modes:
    - IntegrityError on a concurrent first-use insert of the counter row is
      absorbed by a savepoint and a locked re-read.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Allocate the next value of a named sequence inside the caller's transaction."""

    INVENTORY_TRANSACTION = "inventory_transaction"
    CHEMICAL_AUDIT = "chemical_audit"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the counter row, increment it and return the value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for this name.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value
