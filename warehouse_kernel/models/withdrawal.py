"""
Module: warehouse_kernel.models.withdrawal
Responsibility: ORM persistence for withdrawal (outflow) transactions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A transaction references exactly one storage record.
    - bags_withdrawn > 0 and rent_collected >= 0 (check constraints).
    - Reversal is a soft delete: deleted_at is set, the row is kept.
    - idempotency_key is unique per warehouse when present, so a retried
      request cannot insert the same withdrawal twice and two warehouses
      never share a key.
    - payment_id links the rent payment taken with the withdrawal, if any.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_kernel.db.base import TrackedBase, UUIDString
from warehouse_kernel.models.payment import PaymentModel
from warehouse_kernel.models.storage_record import StorageRecordModel


class WithdrawalTransactionModel(TrackedBase):
    """
    One withdrawal of bags from a storage record.

    Contract:
        Amended only by revision (bags, rent, date) and by reversal
        (deleted_at).  Never hard-deleted.
    """

    __tablename__ = "withdrawal_transactions"

    __table_args__ = (
        CheckConstraint("bags_withdrawn > 0", name="ck_withdrawal_bags_positive"),
        CheckConstraint("rent_collected >= 0", name="ck_withdrawal_rent_non_negative"),
        Index("idx_withdrawal_record", "storage_record_id"),
        UniqueConstraint(
            "warehouse_id",
            "idempotency_key",
            name="uq_withdrawal_idempotency_key",
        ),
    )

    # Denormalized from the storage record; idempotency keys are per warehouse
    warehouse_id: Mapped[UUID] = mapped_column(nullable=False)

    storage_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("storage_records.id"),
        nullable=False,
    )

    bags_withdrawn: Mapped[int] = mapped_column(nullable=False)

    rent_collected: Mapped[Decimal] = mapped_column(nullable=False)

    withdrawal_date: Mapped[date] = mapped_column(nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(String(100), nullable=True)

    payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=True,
    )

    storage_record: Mapped[StorageRecordModel] = relationship(
        back_populates="withdrawals",
    )

    payment: Mapped[PaymentModel | None] = relationship()

    @property
    def is_reversed(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        state = " reversed" if self.is_reversed else ""
        return f"<WithdrawalTransaction {self.bags_withdrawn} bags on {self.withdrawal_date}{state}>"
