"""ORM models for the warehouse ledger."""

from warehouse_kernel.models.payment import PaymentModel
from warehouse_kernel.models.storage_record import StorageRecordModel
from warehouse_kernel.models.withdrawal import WithdrawalTransactionModel
from warehouse_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "StorageRecordModel",
    "WithdrawalTransactionModel",
    "PaymentModel",
    "SequenceCounter",
]
