"""
Pure domain layer.

Immutable snapshots, enums, the warehouse context and the clock
abstraction.  NO dependencies on the ORM, the database or I/O.
"""

from warehouse_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from warehouse_kernel.domain.context import WarehouseContext
from warehouse_kernel.domain.dtos import (
    BillingCycle,
    InvoiceKind,
    PaymentSnapshot,
    PaymentType,
    StorageRecordSnapshot,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "WarehouseContext",
    "BillingCycle",
    "InvoiceKind",
    "PaymentType",
    "PaymentSnapshot",
    "StorageRecordSnapshot",
]
