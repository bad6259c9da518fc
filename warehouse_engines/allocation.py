"""
Module: warehouse_engines.allocation
Responsibility:
    Distribute money across storage records: oldest-first allocation of a
    lump payment over outstanding dues, pro-rata splitting of one payment
    over the slices of a bulk withdrawal, and the per-record dues
    computation those allocations start from.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - FIFO conservation: sum(amount_applied) + unallocated == amount.
    - No record receives more than its total_due; nothing is applied beyond
      the payment amount.
    - FIFO is a single pass in the caller's order; the engine never sorts.
    - Pro-rata splits sum exactly to the amount; the last share absorbs
      the rounding difference.
    - Untyped ("other") payments settle hamali first, then rent.

Failure modes:
    - InvalidAmountError on a negative payment amount.

Usage:
    from warehouse_engines.allocation import DueRecord, allocate_fifo

    result = allocate_fifo(
        [DueRecord(id=r1, total_due=Decimal("1000")),
         DueRecord(id=r2, total_due=Decimal("2000"))],
        Decimal("1500"),
    )
    # r1 gets 1000 (0 left), r2 gets 500 (1500 left), unallocated 0
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.dtos import PaymentSnapshot, PaymentType, StorageRecordSnapshot
from warehouse_kernel.exceptions import InvalidAmountError
from warehouse_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class DueRecord:
    """A record with an outstanding amount, in the order it should be paid."""

    id: UUID
    total_due: Decimal


@dataclass(frozen=True)
class AllocationLine:
    """
    Result of allocation to a single record.

    Guarantees:
        - amount_applied + remaining_due == the record's total_due.
    """

    id: UUID
    amount_applied: Decimal
    remaining_due: Decimal


@dataclass(frozen=True)
class FifoAllocation:
    """Complete oldest-first allocation result."""

    allocations: tuple[AllocationLine, ...]
    unallocated: Decimal

    @property
    def total_applied(self) -> Decimal:
        return sum((line.amount_applied for line in self.allocations), ZERO)

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated == ZERO


@dataclass(frozen=True)
class PaymentSplit:
    """How much of one payment counts toward rent and toward hamali."""

    rent_portion: Decimal
    hamali_portion: Decimal


@dataclass(frozen=True)
class RecordDues:
    """
    Billed versus paid on one record.

    ``total_due`` is floored at zero; overpayment is not carried as credit.
    """

    rent_billed: Decimal
    hamali_billed: Decimal
    rent_paid: Decimal
    hamali_paid: Decimal

    @property
    def total_due(self) -> Decimal:
        billed = self.rent_billed + self.hamali_billed
        paid = self.rent_paid + self.hamali_paid
        return max(ZERO, billed - paid)


@traced_engine("allocation.fifo", "1.0", fingerprint_fields=("amount",))
def allocate_fifo(records: Sequence[DueRecord], amount: Decimal) -> FifoAllocation:
    """
    Apply ``amount`` to ``records`` in the given order, each up to its due.

    Raises:
        InvalidAmountError: amount is negative.
    """
    amount = Decimal(amount)
    if amount < ZERO:
        raise InvalidAmountError("payment amount", str(amount))

    logger.info("allocation_started", extra={
        "amount": str(amount),
        "method": "fifo",
        "target_count": len(records),
    })

    remaining = amount
    lines: list[AllocationLine] = []
    for record in records:
        due = max(ZERO, Decimal(record.total_due))
        applied = min(remaining, due)
        remaining -= applied
        lines.append(
            AllocationLine(
                id=record.id,
                amount_applied=applied,
                remaining_due=due - applied,
            )
        )

    if remaining > ZERO:
        logger.info("allocation_unallocated_remainder", extra={"unallocated": str(remaining)})

    return FifoAllocation(allocations=tuple(lines), unallocated=remaining)


def split_pro_rata(amount: Decimal, weights: Sequence[Decimal]) -> tuple[Decimal, ...]:
    """
    Split ``amount`` in proportion to ``weights``, rounded to cents.

    Every share but the last is rounded half-up; the last share takes the
    remainder.  With all-zero weights the whole amount goes to the first
    share.
    """
    if not weights:
        return ()

    amount = Decimal(amount)
    total_weight = sum((Decimal(w) for w in weights), ZERO)
    if total_weight == ZERO:
        return (amount,) + (ZERO,) * (len(weights) - 1)

    shares: list[Decimal] = []
    allocated_so_far = ZERO
    for weight in weights[:-1]:
        share = (amount * Decimal(weight) / total_weight).quantize(CENT, rounding=ROUND_HALF_UP)
        shares.append(share)
        allocated_so_far += share
    shares.append(amount - allocated_so_far)
    return tuple(shares)


def split_payment_by_type(
    rent_due: Decimal,
    hamali_due: Decimal,
    payment: PaymentSnapshot,
) -> PaymentSplit:
    """
    Attribute one payment to rent and hamali.

    Typed payments count in full toward their own charge.  An "other"
    payment first covers the hamali still outstanding, and any rest counts
    toward rent.  ``rent_due`` is accepted for symmetry; typed rent
    overpayments are not redirected.
    """
    amount = Decimal(payment.amount)
    match payment.payment_type:
        case PaymentType.RENT:
            return PaymentSplit(rent_portion=amount, hamali_portion=ZERO)
        case PaymentType.HAMALI:
            return PaymentSplit(rent_portion=ZERO, hamali_portion=amount)
        case PaymentType.OTHER:
            to_hamali = min(amount, max(ZERO, Decimal(hamali_due)))
            return PaymentSplit(rent_portion=amount - to_hamali, hamali_portion=to_hamali)
        case _:
            raise ValueError(f"Unknown payment type: {payment.payment_type}")


def compute_dues(record: StorageRecordSnapshot) -> RecordDues:
    """
    Rent and hamali billed and paid on a record.

    Typed payments are counted first, then "other" payments in date order
    against whatever hamali is still open.  Soft-deleted payments are
    ignored.
    """
    live = record.live_payments
    rent_paid = ZERO
    hamali_paid = ZERO

    for payment in live:
        if payment.payment_type is PaymentType.OTHER:
            continue
        split = split_payment_by_type(ZERO, ZERO, payment)
        rent_paid += split.rent_portion
        hamali_paid += split.hamali_portion

    for payment in sorted(
        (p for p in live if p.payment_type is PaymentType.OTHER),
        key=lambda p: p.payment_date,
    ):
        split = split_payment_by_type(
            record.total_rent_billed - rent_paid,
            record.hamali_payable - hamali_paid,
            payment,
        )
        rent_paid += split.rent_portion
        hamali_paid += split.hamali_portion

    return RecordDues(
        rent_billed=record.total_rent_billed,
        hamali_billed=record.hamali_payable,
        rent_paid=rent_paid,
        hamali_paid=hamali_paid,
    )
