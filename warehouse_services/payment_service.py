"""
PaymentService -- payments against storage records.

Responsibility:
    Records single payments, soft-deletes them, lists a customer's pending
    dues and spreads a lump payment across those dues oldest record first.

Architecture position:
    Services -- imperative shell.  Dues come from
    ``warehouse_engines.allocation.compute_dues`` and the FIFO spread from
    ``allocate_fifo``; this module only loads snapshots and writes rows.

Invariants enforced:
    - A bulk payment never leaves more than one cent unallocated; a larger
      remainder rejects the whole payment before anything is written.
    - Manual allocations must add up to the payment amount.
    - Deleted payments stay in the store with ``deleted_at`` set and stop
      counting toward dues.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from warehouse_engines.allocation import (
    AllocationLine,
    DueRecord,
    allocate_fifo,
    compute_dues,
)
from warehouse_engines.rent import RecordStatus, RentPricing, record_status
from warehouse_kernel.domain.clock import Clock
from warehouse_kernel.domain.context import WarehouseContext
from warehouse_kernel.domain.dtos import PaymentType
from warehouse_kernel.exceptions import (
    InvalidAmountError,
    NoOpenRecordsError,
    PaymentExceedsDuesError,
    PaymentNotFoundError,
    StorageRecordNotFoundError,
)
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.selectors.storage_selector import StorageSelector
from warehouse_kernel.services.stores import PaymentStore, StorageRecordStore
from warehouse_services.base import LedgerService
from warehouse_services.notifier import Notifier

logger = get_logger("services.payment")

ALLOCATION_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class PendingDue:
    """One open record with money still owed on it."""

    record_id: UUID
    record_number: int
    commodity_description: str
    storage_start_date: date
    total_due: Decimal


@dataclass(frozen=True)
class PaymentResult:
    payment_id: UUID
    record_id: UUID
    amount: Decimal
    payment_type: PaymentType


@dataclass(frozen=True)
class BulkPaymentResult:
    """Where a lump payment went."""

    allocations: tuple[AllocationLine, ...]
    payment_ids: tuple[UUID, ...]
    unallocated: Decimal

    @property
    def total_applied(self) -> Decimal:
        return sum((a.amount_applied for a in self.allocations), Decimal("0"))


class PaymentService(LedgerService):
    """Payments, dues and FIFO allocation of lump payments."""

    logger = logger

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        pricing: RentPricing | None = None,
        notifier: Notifier | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock=clock, notifier=notifier, auto_commit=auto_commit)
        self._pricing = pricing or RentPricing()
        self._records = StorageRecordStore(session)
        self._payments = PaymentStore(session)
        self._selector = StorageSelector(session)

    def record_payment(
        self,
        ctx: WarehouseContext,
        record_id: UUID,
        amount: Decimal,
        payment_date: date,
        payment_type: PaymentType = PaymentType.OTHER,
        notes: str | None = None,
    ) -> PaymentResult:
        """
        Attach a payment to one record.

        Raises:
            InvalidAmountError: amount <= 0.
            StorageRecordNotFoundError: unknown record.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            record_id=str(record_id),
            **ctx.log_fields(),
        ):
            with self._transaction("payment"):
                amount = self._require_positive_amount(amount)
                record = self._records.get(ctx.warehouse_id, record_id)
                payment = self._payments.add(
                    record,
                    amount,
                    payment_date,
                    PaymentType(payment_type),
                    ctx.actor_id,
                    notes=notes,
                )
                result = PaymentResult(
                    payment_id=payment.id,
                    record_id=record.id,
                    amount=amount,
                    payment_type=PaymentType(payment_type),
                )

            logger.info(
                "payment_recorded",
                extra={
                    "payment_id": str(result.payment_id),
                    "amount": str(result.amount),
                    "payment_type": result.payment_type.value,
                },
            )
            return result

    def soft_delete_payment(self, ctx: WarehouseContext, payment_id: UUID) -> None:
        """
        Mark a payment deleted.  Deleting twice is a no-op.

        Raises:
            PaymentNotFoundError: unknown payment or another warehouse's.
        """
        with LogContext.bind(correlation_id=str(uuid4()), **ctx.log_fields()):
            with self._transaction("payment_delete"):
                payment = self._payments.get(ctx.warehouse_id, payment_id)
                if payment is None:
                    raise PaymentNotFoundError(str(payment_id))
                if payment.deleted_at is not None:
                    logger.info("payment_already_deleted", extra={"payment_id": str(payment_id)})
                    return
                self._payments.soft_delete(payment, self._clock.now(), ctx.actor_id)

            logger.info("payment_deleted", extra={"payment_id": str(payment_id)})

    def pending_dues(self, ctx: WarehouseContext, customer_id: UUID) -> list[PendingDue]:
        """Open records of the customer with a positive balance due, oldest first."""
        dues: list[PendingDue] = []
        for snapshot in self._selector.open_records_for_customer(ctx.warehouse_id, customer_id):
            total_due = compute_dues(snapshot).total_due
            if total_due > 0:
                dues.append(
                    PendingDue(
                        record_id=snapshot.id,
                        record_number=snapshot.record_number,
                        commodity_description=snapshot.commodity_description,
                        storage_start_date=snapshot.storage_start_date,
                        total_due=total_due,
                    )
                )
        return dues

    def process_bulk_payment(
        self,
        ctx: WarehouseContext,
        customer_id: UUID,
        amount: Decimal,
        payment_date: date,
        manual_allocations: Mapping[UUID, Decimal] | None = None,
    ) -> BulkPaymentResult:
        """
        Spread ``amount`` over the customer's pending dues.

        Without ``manual_allocations`` the oldest record is paid off first.
        With them, each listed record receives exactly the amount given and
        the amounts must add up to ``amount`` within one cent.

        Raises:
            InvalidAmountError: amount <= 0, or manual allocations that are
                negative, do not add up, or name a record without dues.
            NoOpenRecordsError: the customer owes nothing.
            PaymentExceedsDuesError: amount exceeds the total due.
        """
        with LogContext.bind(correlation_id=str(uuid4()), **ctx.log_fields()):
            logger.info(
                "bulk_payment_started",
                extra={
                    "customer_id": str(customer_id),
                    "amount": str(amount),
                    "manual": manual_allocations is not None,
                },
            )
            with self._transaction("bulk_payment"):
                amount = self._require_positive_amount(amount)
                pending = self.pending_dues(ctx, customer_id)
                if not pending:
                    raise NoOpenRecordsError(str(customer_id), "no pending dues")

                if manual_allocations is not None:
                    lines = self._manual_lines(pending, amount, manual_allocations)
                    unallocated = Decimal("0")
                    note = f"Bulk payment - {amount} allocated manually"
                else:
                    allocation = allocate_fifo(
                        [DueRecord(id=d.record_id, total_due=d.total_due) for d in pending],
                        amount,
                    )
                    if allocation.unallocated > ALLOCATION_TOLERANCE:
                        raise PaymentExceedsDuesError(
                            str(customer_id),
                            str(amount),
                            str(sum((d.total_due for d in pending), Decimal("0"))),
                        )
                    lines = allocation.allocations
                    unallocated = allocation.unallocated
                    note = f"Bulk payment - {amount} allocated via FIFO"

                payment_ids: list[UUID] = []
                for line in lines:
                    if line.amount_applied <= 0:
                        continue
                    record = self._records.get(ctx.warehouse_id, line.id)
                    payment = self._payments.add(
                        record,
                        line.amount_applied,
                        payment_date,
                        PaymentType.RENT,
                        ctx.actor_id,
                        notes=note,
                    )
                    payment_ids.append(payment.id)

                result = BulkPaymentResult(
                    allocations=tuple(lines),
                    payment_ids=tuple(payment_ids),
                    unallocated=unallocated,
                )

            logger.info(
                "bulk_payment_allocated",
                extra={
                    "customer_id": str(customer_id),
                    "payment_count": len(result.payment_ids),
                    "total_applied": str(result.total_applied),
                },
            )
            return result

    def record_status(self, ctx: WarehouseContext, record_id: UUID) -> RecordStatus:
        """Billing position of a record as of the service clock's today."""
        snapshot = self._selector.get_snapshot(ctx.warehouse_id, record_id)
        if snapshot is None:
            raise StorageRecordNotFoundError(str(record_id))
        return record_status(snapshot, self._clock.today(), pricing=self._pricing)

    @staticmethod
    def _require_positive_amount(amount: Decimal) -> Decimal:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError("payment amount", str(amount))
        return amount

    @staticmethod
    def _manual_lines(
        pending: list[PendingDue],
        amount: Decimal,
        manual_allocations: Mapping[UUID, Decimal],
    ) -> list[AllocationLine]:
        due_by_id = {d.record_id: d.total_due for d in pending}
        lines: list[AllocationLine] = []
        for record_id, applied in manual_allocations.items():
            applied = Decimal(applied)
            if applied < 0:
                raise InvalidAmountError(f"allocation for {record_id}", str(applied))
            if record_id not in due_by_id:
                raise InvalidAmountError(f"allocation for {record_id}", "record has no pending dues")
            lines.append(
                AllocationLine(
                    id=record_id,
                    amount_applied=applied,
                    remaining_due=max(Decimal("0"), due_by_id[record_id] - applied),
                )
            )

        allocated = sum((line.amount_applied for line in lines), Decimal("0"))
        if abs(allocated - amount) > ALLOCATION_TOLERANCE:
            raise InvalidAmountError(
                "manual allocations",
                f"{allocated} allocated of {amount}",
            )
        return lines
