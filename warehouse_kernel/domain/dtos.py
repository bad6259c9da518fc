"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable views of storage records and their payments
    that cross the kernel/engine boundary.  Engines receive these and never
    see ORM instances.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters and are only
    invoked from the service layer.

Invariants enforced:
    - StorageRecordSnapshot.bags_stored == bags_in - bags_out is checked on
      construction; a snapshot of an inconsistent row raises ValueError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from warehouse_kernel.models.payment import PaymentModel
    from warehouse_kernel.models.storage_record import StorageRecordModel


class BillingCycle(str, Enum):
    """
    Billing-cycle label stored on a storage record.

    Contract:
        OPEN while any bags remain in storage, COMPLETED once the balance
        reaches zero.  Re-derived from the balance after every mutation.
    """

    OPEN = "6m"
    COMPLETED = "Completed"


class PaymentType(str, Enum):
    """What a payment is meant to settle."""

    RENT = "rent"
    HAMALI = "hamali"
    OTHER = "other"


class InvoiceKind(str, Enum):
    """Invoice families numbered independently per warehouse."""

    INFLOW = "IN"
    OUTFLOW = "OUT"


@dataclass(frozen=True)
class PaymentSnapshot:
    """A payment attached to a storage record."""

    id: UUID
    amount: Decimal
    payment_date: date
    payment_type: PaymentType
    is_deleted: bool = False

    @classmethod
    def from_model(cls, model: PaymentModel) -> PaymentSnapshot:
        return cls(
            id=model.id,
            amount=Decimal(model.amount),
            payment_date=model.payment_date,
            payment_type=PaymentType(model.payment_type),
            is_deleted=model.deleted_at is not None,
        )


@dataclass(frozen=True)
class StorageRecordSnapshot:
    """
    Immutable view of a storage record.

    Contract:
        Everything the rent, ledger-impact and allocation engines need to
        compute a result.  ``payments`` holds live and soft-deleted rows;
        engines skip the deleted ones.
    """

    id: UUID
    record_number: int
    customer_id: UUID
    commodity_description: str
    bags_in: int
    bags_out: int
    bags_stored: int
    total_rent_billed: Decimal
    hamali_payable: Decimal
    billing_cycle: BillingCycle
    storage_start_date: date
    storage_end_date: date | None = None
    outflow_invoice_no: str | None = None
    payments: tuple[PaymentSnapshot, ...] = ()

    def __post_init__(self) -> None:
        if self.bags_stored != self.bags_in - self.bags_out:
            raise ValueError(
                f"Inconsistent bag balance on record {self.id}: "
                f"{self.bags_in} in - {self.bags_out} out != {self.bags_stored} stored"
            )

    @property
    def is_closed(self) -> bool:
        return self.bags_stored == 0

    @property
    def live_payments(self) -> tuple[PaymentSnapshot, ...]:
        return tuple(p for p in self.payments if not p.is_deleted)

    @classmethod
    def from_model(cls, model: StorageRecordModel) -> StorageRecordSnapshot:
        return cls(
            id=model.id,
            record_number=model.record_number,
            customer_id=model.customer_id,
            commodity_description=model.commodity_description,
            bags_in=model.bags_in,
            bags_out=model.bags_out,
            bags_stored=model.bags_stored,
            total_rent_billed=Decimal(model.total_rent_billed),
            hamali_payable=Decimal(model.hamali_payable),
            billing_cycle=BillingCycle(model.billing_cycle),
            storage_start_date=model.storage_start_date,
            storage_end_date=model.storage_end_date,
            outflow_invoice_no=model.outflow_invoice_no,
            payments=tuple(PaymentSnapshot.from_model(p) for p in model.payments),
        )

