"""
Warehouse ledger services -- the effectful shell around the pure engines.

Each service owns its transaction boundary (``auto_commit=True`` by
default) and takes a ``WarehouseContext`` as the first argument of every
operation.
"""

from warehouse_services.inflow_service import InflowResult, InflowService
from warehouse_services.notifier import LoggingNotifier, Notifier, NullNotifier
from warehouse_services.outflow_orchestrator import (
    BulkWithdrawalResult,
    OutflowOrchestrator,
    ReversalResult,
    RevisionResult,
    WithdrawalResult,
)
from warehouse_services.payment_service import (
    BulkPaymentResult,
    PaymentResult,
    PaymentService,
    PendingDue,
)

__all__ = [
    "InflowService",
    "InflowResult",
    "OutflowOrchestrator",
    "WithdrawalResult",
    "ReversalResult",
    "RevisionResult",
    "BulkWithdrawalResult",
    "PaymentService",
    "PaymentResult",
    "PendingDue",
    "BulkPaymentResult",
    "Notifier",
    "LoggingNotifier",
    "NullNotifier",
]
