"""
SequenceService -- per-warehouse sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers for storage record
    numbers and for inflow/outflow invoice numbers.  Uses a dedicated counter
    table with row-level locking (``SELECT ... FOR UPDATE``) so two concurrent
    inflows never receive the same record number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by InflowService (record number, inflow invoice) and by the
    OutflowOrchestrator (outflow invoice on a record's first withdrawal).

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value.  MAX(record_number) + 1 is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

import re
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warehouse_kernel.domain.dtos import InvoiceKind
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")

DEFAULT_INVOICE_BASE = 1000

_NON_ALNUM = re.compile(r"[^A-Za-z0-9 ]")


def generate_warehouse_code(name: str | None) -> str:
    """
    Short invoice prefix derived from a warehouse name.

    Single word -> its first four characters; several words -> two
    characters from each of the first two words; nothing usable -> "WH".

        >>> generate_warehouse_code("Bangalore Main")
        'BAMA'
        >>> generate_warehouse_code("Warehouse 1")
        'WA1'
    """
    if not name:
        return "WH"
    words = [w for w in _NON_ALNUM.sub("", name).upper().split(" ") if w]
    if not words:
        return "WH"
    if len(words) == 1:
        return words[0][:4]
    return words[0][:2] + words[1][:2]


def format_invoice_number(
    code: str,
    kind: InvoiceKind,
    value: int,
    base: int = DEFAULT_INVOICE_BASE,
) -> str:
    """Format ``<code>-<IN|OUT>-<base + value>``, e.g. ``BAMA-OUT-1055``."""
    return f"{code}-{kind.value}-{base + value}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a warehouse and a sequence name and returns the next
        strictly-monotonic integer value for that pair.

    Guarantees:
        - Concurrency safety: ``SELECT ... FOR UPDATE`` serializes
          concurrent allocations for the same sequence.
        - On transaction rollback, the value is returned.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    RECORD = "record"
    INVOICE_IN = "invoice_in"
    INVOICE_OUT = "invoice_out"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, warehouse_id: UUID, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(
                SequenceCounter.warehouse_id == warehouse_id,
                SequenceCounter.name == sequence_name,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, warehouse_id: UUID, sequence_name: str) -> int:
        """
        Get the next value for a named sequence within a warehouse.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              returned value for this (warehouse, name) pair.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(warehouse_id, sequence_name)

        if counter is None:
            # First use.  Another transaction may create the row at the same
            # moment; the savepoint keeps the caller's work intact if so.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(
                    warehouse_id=warehouse_id,
                    name=sequence_name,
                    current_value=1,
                )
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
                counter = self._locked_counter(warehouse_id, sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, warehouse_id: UUID, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(
                SequenceCounter.warehouse_id == warehouse_id,
                SequenceCounter.name == sequence_name,
            )
        ).scalar_one_or_none()

        return counter.current_value if counter else None


class InvoiceSequencer:
    """
    Formats invoice numbers on top of the per-warehouse counters.

    Contract:
        ``next_invoice_number`` consumes one value of the IN or OUT
        counter for the warehouse.  The number is only durable once the
        caller commits.
    """

    _SEQUENCE_FOR_KIND = {
        InvoiceKind.INFLOW: SequenceService.INVOICE_IN,
        InvoiceKind.OUTFLOW: SequenceService.INVOICE_OUT,
    }

    def __init__(self, session: Session, invoice_base: int = DEFAULT_INVOICE_BASE):
        self._sequences = SequenceService(session)
        self._invoice_base = invoice_base

    def next_invoice_number(
        self,
        warehouse_id: UUID,
        kind: InvoiceKind,
        warehouse_name: str | None = None,
    ) -> str:
        value = self._sequences.next_value(warehouse_id, self._SEQUENCE_FOR_KIND[kind])
        invoice_no = format_invoice_number(
            generate_warehouse_code(warehouse_name),
            kind,
            value,
            self._invoice_base,
        )
        logger.info(
            "invoice_number_assigned",
            extra={"kind": kind.value, "invoice_no": invoice_no},
        )
        return invoice_no

    def next_record_number(self, warehouse_id: UUID) -> int:
        return self._sequences.next_value(warehouse_id, SequenceService.RECORD)
