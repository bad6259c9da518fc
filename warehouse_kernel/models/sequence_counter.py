"""
Module: warehouse_kernel.models.sequence_counter
Responsibility: Counter rows behind record numbers and invoice numbers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (warehouse, sequence name); the row is the sole source of
      truth for the next value and is read with SELECT ... FOR UPDATE.
"""

from uuid import UUID

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence within one warehouse with its
    current value.  Row-level locking ensures monotonicity under
    concurrency.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "name", name="uq_sequence_counter"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(nullable=False)

    # "record", "invoice_in" or "invoice_out"
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
