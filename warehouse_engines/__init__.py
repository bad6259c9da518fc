"""
Module: warehouse_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for warehouse_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import warehouse_kernel.domain, warehouse_kernel.exceptions and
    warehouse_kernel.logging_config.  MUST NOT import warehouse_services or
    warehouse_kernel models, stores or selectors.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Today" and every event date are explicit parameters.
    - Decimal-only arithmetic for all money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``warehouse_engines.tracer``), emitting WAREHOUSE_ENGINE_TRACE records.
"""

from warehouse_engines.allocation import (
    AllocationLine,
    DueRecord,
    FifoAllocation,
    PaymentSplit,
    RecordDues,
    allocate_fifo,
    compute_dues,
    split_payment_by_type,
    split_pro_rata,
)
from warehouse_engines.ledger_impact import (
    LedgerUpdate,
    WithdrawalTerms,
    apply_delta,
    apply_withdrawal,
    reverse_withdrawal,
    revise_withdrawal,
)
from warehouse_engines.rent import (
    RecordStatus,
    RentPricing,
    RentQuote,
    compute_rent,
    months_stored,
    record_status,
    rent_per_bag_for_months,
)
from warehouse_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # rent
    "RentPricing",
    "RentQuote",
    "RecordStatus",
    "compute_rent",
    "months_stored",
    "rent_per_bag_for_months",
    "record_status",
    # ledger impact
    "LedgerUpdate",
    "WithdrawalTerms",
    "apply_delta",
    "apply_withdrawal",
    "reverse_withdrawal",
    "revise_withdrawal",
    # allocation
    "DueRecord",
    "AllocationLine",
    "FifoAllocation",
    "PaymentSplit",
    "RecordDues",
    "allocate_fifo",
    "split_pro_rata",
    "split_payment_by_type",
    "compute_dues",
    # tracer
    "traced_engine",
    "compute_input_fingerprint",
]
