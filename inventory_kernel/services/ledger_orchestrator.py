"""
InventoryLedger -- the public facade and transaction owner.

Responsibility:
    Wires services and selectors onto a fresh session per attempt, owns
    commit and rollback, retries concurrency conflicts, binds LogContext
    and converts ORM results to DTOs before the session closes.

Architecture position:
    Kernel > Services.  The only kernel component that calls
    ``session.commit()``.  Everything it constructs is flush-only.

Invariants enforced:
    - Atomicity: each operation runs in exactly one database transaction;
      on any error it is rolled back and stored state is as before the call.
    - Bounded retries: StaleDataError and lock / deadlock / serialization
      failures are retried up to policy.max_retries attempts with linear
      backoff, then surface as ConcurrencyConflictError.
    - Conservation: since every attempt re-reads locked rows, the final
      quantity equals the initial quantity plus the sum of committed deltas.

Failure modes:
    - Every kernel exception from the services and selectors, unchanged.
    - ConcurrencyConflictError when retries are exhausted.

Usage:
    ledger = InventoryLedger(get_session_factory(), policy=LedgerPolicy())
    result = ledger.post(PostingRequest(
        txn_type="issue",
        lines=[LineRequest(item_id=item.id, lot_id=lot.id, qty=-20)],
        actor=Actor(id="u-1", name="Lab Tech"),
    ))
"""

import time
from datetime import date, datetime
from typing import Any, Callable, Iterable, TypeVar
from uuid import uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    Actor,
    ChemicalAuditRecord,
    IntegrityIssue,
    ItemSnapshot,
    ItemStats,
    LineHistoryEntry,
    PostingRequest,
    PostingResult,
    TransactionRecord,
)
from inventory_kernel.domain.identifiers import parse_uuid
from inventory_kernel.domain.policy import LedgerPolicy
from inventory_kernel.exceptions import ConcurrencyConflictError, InventoryKernelError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.chemical_audit_selector import ChemicalAuditSelector
from inventory_kernel.selectors.integrity_selector import IntegritySelector
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_kernel.selectors.transaction_selector import TransactionSelector
from inventory_kernel.services.audit_mirror import AuditMirror
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_writer import LedgerWriter
from inventory_kernel.services.reversal_service import ReversalService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")

T = TypeVar("T")

# PostgreSQL SQLSTATEs worth another attempt
_RETRYABLE_PGCODES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
})

_RETRYABLE_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock detected",
    "could not serialize",
)


def is_retryable(exc: BaseException) -> bool:
    """True for optimistic-lock misses and transient lock contention."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _RETRYABLE_PGCODES:
            return True
        message = str(exc.orig).lower()
        return any(fragment in message for fragment in _RETRYABLE_MESSAGES)
    return False


class _Unit:
    """Services and selectors bound to one session."""

    def __init__(self, session: Session, clock: Clock, policy: LedgerPolicy):
        sequences = SequenceService(session)
        self.session = session
        self.audit_mirror = AuditMirror(session, clock, sequences)
        self.catalog = CatalogService(session, self.audit_mirror)
        self.writer = LedgerWriter(
            session,
            clock,
            policy,
            audit_mirror=self.audit_mirror,
            sequence_service=sequences,
        )
        self.reversals = ReversalService(session, self.writer, clock)
        self.items = ItemSelector(session)
        self.transactions = TransactionSelector(session)
        self.chemical_audits = ChemicalAuditSelector(session)
        self.integrity = IntegritySelector(session)


def _posting_result(txn, items) -> PostingResult:
    return PostingResult(
        transaction=TransactionRecord.from_model(txn),
        items=tuple(ItemSnapshot.from_model(item) for item in items),
    )


class InventoryLedger:
    """
    Public entry point for every ledger and catalog operation.

    Contract:
        Methods accept plain ids (UUID or str) and DTOs, return DTOs, and
        raise typed InventoryKernelError subclasses.  Each call is one
        database transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._policy = policy or LedgerPolicy()
        self._clock = clock or SystemClock()
        self._sleep = sleep

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Transaction management
    # ------------------------------------------------------------------

    def _write(self, operation: str, work: Callable[[_Unit], T]) -> T:
        """Run ``work`` in a fresh transaction, committing on success."""
        max_attempts = self._policy.max_retries
        for attempt in range(1, max_attempts + 1):
            session = self._session_factory()
            try:
                result = work(_Unit(session, self._clock, self._policy))
                session.commit()
                if attempt > 1:
                    logger.info(
                        "operation_succeeded_after_retry",
                        extra={"attempt": attempt},
                    )
                return result
            except Exception as exc:
                session.rollback()
                if not is_retryable(exc):
                    raise
                if attempt >= max_attempts:
                    logger.error(
                        "concurrency_retries_exhausted",
                        extra={"attempts": attempt, "error_type": type(exc).__name__},
                    )
                    raise ConcurrencyConflictError(operation, attempt) from exc
                delay = self._policy.retry_backoff_seconds * attempt
                logger.warning(
                    "posting_retry",
                    extra={
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "delay_seconds": delay,
                        "error_type": type(exc).__name__,
                    },
                )
                self._sleep(delay)
            finally:
                session.close()
        raise AssertionError("unreachable")  # pragma: no cover

    def _read(self, work: Callable[[_Unit], T]) -> T:
        session = self._session_factory()
        try:
            return work(_Unit(session, self._clock, self._policy))
        finally:
            session.rollback()
            session.close()

    def _logged(self, operation: str, actor: Actor | None, run: Callable[[], T], **fields) -> T:
        actor_id = str(actor.id) if actor is not None and getattr(actor, "id", None) else None
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor_id,
            operation=operation,
        ):
            logger.info(f"{operation}_started", extra=fields)
            try:
                result = run()
            except InventoryKernelError as exc:
                logger.warning(
                    f"{operation}_failed",
                    extra={**fields, "error_code": exc.code, "error": str(exc)},
                )
                raise
            logger.info(f"{operation}_completed", extra=fields)
            return result

    # ------------------------------------------------------------------
    # Ledger writes
    # ------------------------------------------------------------------

    def post(self, request: PostingRequest) -> PostingResult:
        """Post a transaction; see LedgerWriter.post for the rules."""

        def work(unit: _Unit) -> PostingResult:
            txn, items = unit.writer.post(request)
            return _posting_result(txn, items)

        def run() -> PostingResult:
            result = self._write("post", work)
            logger.info(
                "posting_committed",
                extra={
                    "transaction_id": str(result.transaction.id),
                    "seq": result.transaction.seq,
                    "line_count": result.transaction.line_count,
                },
            )
            return result

        return self._logged(
            "posting",
            request.actor,
            run,
            txn_type=request.txn_type,
            line_count=len(request.lines),
        )

    def reverse(self, transaction_id, actor: Actor, reason: str) -> TransactionRecord:
        """Reverse a posted transaction; returns the reversing transaction."""

        def work(unit: _Unit) -> TransactionRecord:
            txn, _items = unit.reversals.reverse(transaction_id, actor, reason)
            return TransactionRecord.from_model(txn)

        return self._logged(
            "reversal",
            actor,
            lambda: self._write("reverse", work),
            original_transaction_id=str(transaction_id),
        )

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id) -> TransactionRecord:
        return self._read(lambda unit: unit.transactions.get(transaction_id))

    def list_by_item(
        self,
        item_id,
        txn_type: str | None = None,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
        status: str | None = None,
        limit: int = 100,
        page: int = 1,
    ) -> list[TransactionRecord]:
        return self._read(
            lambda unit: unit.transactions.list_by_item(
                item_id,
                txn_type=txn_type,
                start_date=start_date,
                end_date=end_date,
                status=status,
                limit=limit,
                page=page,
            )
        )

    def get_item_stats(
        self,
        item_id,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
    ) -> ItemStats:
        return self._read(
            lambda unit: unit.transactions.get_item_stats(item_id, start_date, end_date)
        )

    def get_lot_history(self, item_id, lot_id) -> list[LineHistoryEntry]:
        return self._read(lambda unit: unit.transactions.get_lot_history(item_id, lot_id))

    def list_anomalies(self, item_id=None, limit: int = 100) -> list[LineHistoryEntry]:
        return self._read(lambda unit: unit.transactions.list_anomalies(item_id, limit))

    def list_chemical_audits(
        self,
        item_id,
        lot_number: str | None = None,
    ) -> list[ChemicalAuditRecord]:
        return self._read(
            lambda unit: unit.chemical_audits.list_for_item(item_id, lot_number)
        )

    def verify_integrity(self, item_id=None) -> list[IntegrityIssue]:
        if item_id is None:
            return self._read(lambda unit: unit.integrity.verify_all())
        return self._read(lambda unit: unit.integrity.verify_item(item_id))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def create_item(
        self,
        sku: str,
        display_name: str,
        item_type: str,
        uom: str = "ea",
        lot_tracked: bool = False,
        cost: Any = None,
        description: str | None = None,
        cas_number: str | None = None,
        location: str | None = None,
        netsuite_internal_id: str | None = None,
        bom: Iterable[dict[str, Any]] | None = None,
    ) -> ItemSnapshot:
        def work(unit: _Unit) -> ItemSnapshot:
            item = unit.catalog.create_item(
                sku,
                display_name,
                item_type,
                uom=uom,
                lot_tracked=lot_tracked,
                cost=cost,
                description=description,
                cas_number=cas_number,
                location=location,
                netsuite_internal_id=netsuite_internal_id,
                bom=bom,
            )
            return ItemSnapshot.from_model(item)

        return self._write("create_item", work)

    def add_lot(
        self,
        item_id,
        lot_number: str,
        expiry_date: date | None = None,
        vendor_lot_number: str | None = None,
        location: str | None = None,
    ) -> ItemSnapshot:
        item_uuid = parse_uuid(item_id, "item_id")

        def work(unit: _Unit) -> ItemSnapshot:
            lot = unit.catalog.add_lot(
                item_uuid,
                lot_number,
                expiry_date=expiry_date,
                vendor_lot_number=vendor_lot_number,
                location=location,
            )
            return ItemSnapshot.from_model(lot.item)

        return self._write("add_lot", work)

    def delete_lot(self, item_id, lot_id, actor: Actor | None = None) -> ItemSnapshot:
        item_uuid = parse_uuid(item_id, "item_id")
        lot_uuid = parse_uuid(lot_id, "lot_id")

        def work(unit: _Unit) -> ItemSnapshot:
            item = unit.catalog.delete_lot(item_uuid, lot_uuid, actor)
            return ItemSnapshot.from_model(item)

        return self._write("delete_lot", work)

    def delete_item(self, item_id) -> None:
        item_uuid = parse_uuid(item_id, "item_id")
        self._write("delete_item", lambda unit: unit.catalog.delete_item(item_uuid))

    def get_item(self, item_id) -> ItemSnapshot:
        return self._read(lambda unit: unit.items.get(item_id))

    def find_by_sku(self, sku: str) -> ItemSnapshot | None:
        return self._read(lambda unit: unit.items.find_by_sku(sku))

    def search_items(
        self,
        item_type: str | None = None,
        text: str | None = None,
        limit: int = 100,
    ) -> list[ItemSnapshot]:
        return self._read(lambda unit: unit.items.search(item_type, text, limit))
