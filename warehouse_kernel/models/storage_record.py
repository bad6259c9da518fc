"""
Module: warehouse_kernel.models.storage_record
Responsibility: ORM persistence for storage records: one inflow of bags of a
    commodity, owned by a customer, in one warehouse.  The record carries the
    running bag balance, the rent billed so far and the invoice numbers.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - bags_stored == bags_in - bags_out after every mutating operation
      (ck_storage_bags_balance).
    - bags_stored >= 0 and total_rent_billed >= 0 (check constraints).
    - storage_end_date is set iff bags_stored == 0 (maintained by
      LedgerImpact; not expressible portably as a constraint).
    - record_number is unique per warehouse and never changes.
    - version_id is a SQLAlchemy version counter: every UPDATE is a
      compare-and-swap against the version that was read.

Failure modes:
    - StaleDataError on flush when another transaction updated the row
      first (translated to OptimisticLockError by StorageRecordStore).
    - IntegrityError on a constraint violation.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_kernel.db.base import TrackedBase
from warehouse_kernel.domain.dtos import BillingCycle

if TYPE_CHECKING:
    from warehouse_kernel.models.payment import PaymentModel
    from warehouse_kernel.models.withdrawal import WithdrawalTransactionModel


class StorageRecordModel(TrackedBase):
    """
    A customer's bags in storage, from inflow until the last bag leaves.

    Contract:
        Only the ledger services mutate a record, and only through
        StorageRecordStore.update so that every write is versioned.

    Guarantees:
        - bags_in, storage_start_date, record_number and inflow_invoice_no
          are set once at inflow.
        - outflow_invoice_no is set once, on the first withdrawal.

    Non-goals:
        - Does NOT compute rent; see warehouse_engines.rent.
    """

    __tablename__ = "storage_records"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "record_number", name="uq_storage_record_number"),
        CheckConstraint("bags_stored >= 0", name="ck_storage_bags_stored_non_negative"),
        CheckConstraint("bags_stored = bags_in - bags_out", name="ck_storage_bags_balance"),
        CheckConstraint("total_rent_billed >= 0", name="ck_storage_rent_non_negative"),
        Index("idx_storage_customer", "warehouse_id", "customer_id"),
        Index("idx_storage_start", "storage_start_date"),
    )

    record_number: Mapped[int] = mapped_column(nullable=False)

    warehouse_id: Mapped[UUID] = mapped_column(nullable=False)

    customer_id: Mapped[UUID] = mapped_column(nullable=False)

    commodity_description: Mapped[str] = mapped_column(String(255), nullable=False)

    location: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Bag balance
    bags_in: Mapped[int] = mapped_column(nullable=False)
    bags_out: Mapped[int] = mapped_column(nullable=False, default=0)
    bags_stored: Mapped[int] = mapped_column(nullable=False)

    # Charges
    total_rent_billed: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hamali_payable: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    billing_cycle: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BillingCycle.OPEN.value,
    )

    storage_start_date: Mapped[date] = mapped_column(nullable=False)
    storage_end_date: Mapped[date | None] = mapped_column(nullable=True)

    inflow_invoice_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    outflow_invoice_no: Mapped[str | None] = mapped_column(String(50), nullable=True)

    version_id: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    payments: Mapped[list["PaymentModel"]] = relationship(
        back_populates="storage_record",
        order_by="PaymentModel.payment_date",
    )

    withdrawals: Mapped[list["WithdrawalTransactionModel"]] = relationship(
        back_populates="storage_record",
        order_by="WithdrawalTransactionModel.withdrawal_date",
    )

    @property
    def is_closed(self) -> bool:
        return self.bags_stored == 0

    def __repr__(self) -> str:
        return (
            f"<StorageRecord #{self.record_number}: "
            f"{self.bags_stored}/{self.bags_in} bags ({self.billing_cycle})>"
        )
