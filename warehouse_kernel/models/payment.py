"""
Module: warehouse_kernel.models.payment
Responsibility: ORM persistence for payments made against a storage record.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every payment is attached to exactly one storage record.
    - amount >= 0 (check constraint); payment_type is rent, hamali or other.
    - Deletion is a soft delete through deleted_at.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_kernel.db.base import TrackedBase, UUIDString
from warehouse_kernel.domain.dtos import PaymentType
from warehouse_kernel.models.storage_record import StorageRecordModel


class PaymentModel(TrackedBase):
    """A payment toward rent and/or hamali on one storage record."""

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
        Index("idx_payment_record", "storage_record_id"),
    )

    storage_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("storage_records.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_date: Mapped[date] = mapped_column(nullable=False)

    payment_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentType.OTHER.value,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    storage_record: Mapped[StorageRecordModel] = relationship(
        back_populates="payments",
    )

    def __repr__(self) -> str:
        return f"<Payment {self.amount} ({self.payment_type}) on {self.payment_date}>"
