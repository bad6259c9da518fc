"""Kernel services: sequences and versioned stores."""

from warehouse_kernel.services.base import BaseService
from warehouse_kernel.services.sequence_service import (
    InvoiceSequencer,
    SequenceService,
    format_invoice_number,
    generate_warehouse_code,
)
from warehouse_kernel.services.stores import (
    PaymentStore,
    StorageRecordStore,
    WithdrawalStore,
)

__all__ = [
    "BaseService",
    "SequenceService",
    "InvoiceSequencer",
    "generate_warehouse_code",
    "format_invoice_number",
    "StorageRecordStore",
    "WithdrawalStore",
    "PaymentStore",
]
