"""
StorageSelector -- read queries over storage records.

Open records are listed oldest storage start first; that ordering is what
bulk withdrawal and FIFO payment allocation consume, so it lives here and
nowhere else.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from warehouse_kernel.domain.dtos import StorageRecordSnapshot
from warehouse_kernel.models.storage_record import StorageRecordModel
from warehouse_kernel.selectors.base import BaseSelector


class StorageSelector(BaseSelector[StorageRecordModel]):
    """Read-only access to storage records."""

    def get_snapshot(self, warehouse_id: UUID, record_id: UUID) -> StorageRecordSnapshot | None:
        record = self.session.execute(
            select(StorageRecordModel)
            .options(selectinload(StorageRecordModel.payments))
            .where(
                StorageRecordModel.id == record_id,
                StorageRecordModel.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()
        return StorageRecordSnapshot.from_model(record) if record else None

    def open_records_for_customer(
        self,
        warehouse_id: UUID,
        customer_id: UUID,
        commodity: str | None = None,
        record_ids: Sequence[UUID] | None = None,
    ) -> list[StorageRecordSnapshot]:
        """
        Open (bags_stored > 0) records of a customer, oldest first.

        Ties on start date fall back to record number so the order is
        stable.
        """
        stmt = (
            select(StorageRecordModel)
            .options(selectinload(StorageRecordModel.payments))
            .where(
                StorageRecordModel.warehouse_id == warehouse_id,
                StorageRecordModel.customer_id == customer_id,
                StorageRecordModel.bags_stored > 0,
            )
            .order_by(
                StorageRecordModel.storage_start_date.asc(),
                StorageRecordModel.record_number.asc(),
            )
        )
        if commodity is not None:
            stmt = stmt.where(StorageRecordModel.commodity_description == commodity)
        if record_ids is not None:
            stmt = stmt.where(StorageRecordModel.id.in_(list(record_ids)))

        return [
            StorageRecordSnapshot.from_model(r)
            for r in self.session.execute(stmt).scalars()
        ]

