"""
Stores -- versioned writes for records, withdrawals and payments.

Responsibility:
    The only code that mutates ledger rows.  Every storage record update
    goes through ``StorageRecordStore.update`` which flushes immediately so
    a lost compare-and-swap on ``version_id`` surfaces at the call site.

Architecture position:
    Kernel > Services.  Imports models and exceptions; never engines.

Invariants enforced:
    - Tenant isolation: lookups are scoped to the caller's warehouse.  A
      record from another warehouse is reported as not found.
    - Only the balance, rent, end date, cycle label and outflow invoice of a
      record are mutable; anything else passed to ``update`` is rejected.

Failure modes:
    - StorageRecordNotFoundError / WithdrawalTransactionNotFoundError.
    - OptimisticLockError when the record changed since it was read.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from warehouse_kernel.domain.dtos import PaymentType
from warehouse_kernel.exceptions import (
    OptimisticLockError,
    StorageRecordNotFoundError,
    WithdrawalTransactionNotFoundError,
)
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.payment import PaymentModel
from warehouse_kernel.models.storage_record import StorageRecordModel
from warehouse_kernel.models.withdrawal import WithdrawalTransactionModel
from warehouse_kernel.services.base import BaseService

logger = get_logger("services.stores")


class StorageRecordStore(BaseService[StorageRecordModel]):
    """Reads and versioned updates of storage records."""

    MUTABLE_FIELDS = frozenset({
        "bags_out",
        "bags_stored",
        "total_rent_billed",
        "storage_end_date",
        "billing_cycle",
        "outflow_invoice_no",
    })

    def get(self, warehouse_id: UUID, record_id: UUID) -> StorageRecordModel:
        record = self.session.get(StorageRecordModel, record_id)
        if record is None or record.warehouse_id != warehouse_id:
            raise StorageRecordNotFoundError(str(record_id))
        return record

    def add(self, record: StorageRecordModel) -> StorageRecordModel:
        self.session.add(record)
        self.session.flush()
        return record

    def update(self, record: StorageRecordModel, actor_id: UUID, **changes: Any) -> StorageRecordModel:
        """
        Apply ``changes`` and flush as one versioned UPDATE.

        Raises:
            ValueError: If a field outside MUTABLE_FIELDS is passed.
            OptimisticLockError: If the row's version moved underneath us.
        """
        unknown = set(changes) - self.MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable storage record fields: {sorted(unknown)}")

        for field, value in changes.items():
            setattr(record, field, value)
        record.updated_by_id = actor_id

        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "storage_record_version_conflict",
                extra={"record_id": str(record.id)},
            )
            raise OptimisticLockError("StorageRecord", str(record.id)) from exc

        logger.debug(
            "storage_record_updated",
            extra={"record_id": str(record.id), "fields": sorted(changes)},
        )
        return record


class WithdrawalStore(BaseService[WithdrawalTransactionModel]):
    """Withdrawal transactions: insert, revise, soft-delete."""

    def get(self, warehouse_id: UUID, transaction_id: UUID) -> WithdrawalTransactionModel:
        txn = self.session.get(WithdrawalTransactionModel, transaction_id)
        if txn is None or txn.storage_record.warehouse_id != warehouse_id:
            raise WithdrawalTransactionNotFoundError(str(transaction_id))
        return txn

    def find_by_idempotency_key(
        self,
        warehouse_id: UUID,
        key: str,
    ) -> WithdrawalTransactionModel | None:
        return self.session.execute(
            select(WithdrawalTransactionModel).where(
                WithdrawalTransactionModel.warehouse_id == warehouse_id,
                WithdrawalTransactionModel.idempotency_key == key,
            )
        ).scalar_one_or_none()

    def find_by_idempotency_prefix(
        self,
        warehouse_id: UUID,
        prefix: str,
    ) -> list[WithdrawalTransactionModel]:
        return list(
            self.session.execute(
                select(WithdrawalTransactionModel)
                .join(WithdrawalTransactionModel.storage_record)
                .where(
                    WithdrawalTransactionModel.warehouse_id == warehouse_id,
                    WithdrawalTransactionModel.idempotency_key.startswith(prefix, autoescape=True),
                )
                .order_by(
                    StorageRecordModel.storage_start_date,
                    StorageRecordModel.record_number,
                )
            ).scalars()
        )

    def insert(
        self,
        record: StorageRecordModel,
        bags_withdrawn: int,
        rent_collected: Decimal,
        withdrawal_date: date,
        actor_id: UUID,
        idempotency_key: str | None = None,
        payment: PaymentModel | None = None,
    ) -> WithdrawalTransactionModel:
        txn = WithdrawalTransactionModel(
            warehouse_id=record.warehouse_id,
            storage_record=record,
            payment=payment,
            bags_withdrawn=bags_withdrawn,
            rent_collected=rent_collected,
            withdrawal_date=withdrawal_date,
            idempotency_key=idempotency_key,
            created_by_id=actor_id,
        )
        self.session.add(txn)
        self.session.flush()
        return txn

    def update(
        self,
        txn: WithdrawalTransactionModel,
        bags_withdrawn: int,
        rent_collected: Decimal,
        withdrawal_date: date,
        actor_id: UUID,
    ) -> WithdrawalTransactionModel:
        txn.bags_withdrawn = bags_withdrawn
        txn.rent_collected = rent_collected
        txn.withdrawal_date = withdrawal_date
        txn.updated_by_id = actor_id
        self.session.flush()
        return txn

    def soft_delete(
        self,
        txn: WithdrawalTransactionModel,
        deleted_at: datetime,
        actor_id: UUID,
    ) -> WithdrawalTransactionModel:
        txn.deleted_at = deleted_at
        txn.updated_by_id = actor_id
        self.session.flush()
        return txn


class PaymentStore(BaseService[PaymentModel]):
    """Payments attached to storage records."""

    def get(self, warehouse_id: UUID, payment_id: UUID) -> PaymentModel | None:
        payment = self.session.get(PaymentModel, payment_id)
        if payment is None or payment.storage_record.warehouse_id != warehouse_id:
            return None
        return payment

    def add(
        self,
        record: StorageRecordModel,
        amount: Decimal,
        payment_date: date,
        payment_type: PaymentType,
        actor_id: UUID,
        notes: str | None = None,
    ) -> PaymentModel:
        payment = PaymentModel(
            storage_record=record,
            amount=amount,
            payment_date=payment_date,
            payment_type=payment_type.value,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(payment)
        self.session.flush()
        return payment

    def soft_delete(self, payment: PaymentModel, deleted_at: datetime, actor_id: UUID) -> PaymentModel:
        payment.deleted_at = deleted_at
        payment.updated_by_id = actor_id
        self.session.flush()
        return payment
