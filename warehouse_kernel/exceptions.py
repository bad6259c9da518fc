"""
Typed Exception Hierarchy for the Warehouse Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (web handlers, batch jobs, the bulk-payment screen)
need to react differently to a bad request, a missing record and a lost
race.  Each case gets its own class, a machine-readable ``code`` and the
structured values that caused it:

    try:
        orchestrator.record_withdrawal(ctx, record_id, bags=120, ...)
    except WithdrawalExceedsBalanceError as e:
        return {"error": e.code, "available": e.available}
    except OptimisticLockError:
        # another request changed the record; reload and let the user retry
        ...

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WarehouseLedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidBagCountError
    |   +-- WithdrawalExceedsBalanceError
    |   +-- InvalidWithdrawalDateError
    |   +-- RevisionExceedsBalanceError
    |   +-- InvalidAmountError
    |   +-- BulkWithdrawalExceedsStockError
    |   +-- PaymentExceedsDuesError
    |   +-- InvalidCommodityError
    |   +-- IdempotencyKeyConflictError
    |
    +-- NotFoundError
    |   +-- StorageRecordNotFoundError
    |   +-- WithdrawalTransactionNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- NoOpenRecordsError
    |
    +-- ReversalError
    |   +-- TransactionAlreadyReversedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- PersistenceError
        +-- LedgerPersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                           | When Raised
-------------|--------------------------------|------------------------------------
Validation   | INVALID_BAG_COUNT              | Bags requested <= 0
             | WITHDRAWAL_EXCEEDS_BALANCE     | Bags requested > bags stored
             | INVALID_WITHDRAWAL_DATE        | Date before start or in the future
             | REVISION_EXCEEDS_BALANCE       | Edit would over-withdraw
             | INVALID_AMOUNT                 | Negative rent / payment amount
             | BULK_WITHDRAWAL_EXCEEDS_STOCK  | Bulk request > customer's stock
             | PAYMENT_EXCEEDS_DUES           | Bulk payment > outstanding dues
             | INVALID_COMMODITY              | Blank commodity at inflow
             | IDEMPOTENCY_KEY_CONFLICT       | Key reused for a different request
-------------|--------------------------------|------------------------------------
Not found    | STORAGE_RECORD_NOT_FOUND       | Unknown record id
             | WITHDRAWAL_TRANSACTION_NOT_FOUND | Unknown transaction id
             | PAYMENT_NOT_FOUND              | Unknown payment id
             | NO_OPEN_RECORDS                | Nothing to withdraw from / pay
-------------|--------------------------------|------------------------------------
Reversal     | TRANSACTION_ALREADY_REVERSED   | Undo of a soft-deleted withdrawal
-------------|--------------------------------|------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT       | Record version changed underneath
-------------|--------------------------------|------------------------------------
Persistence  | LEDGER_PERSISTENCE_FAILED      | Store unavailable / constraint hit

Validation errors are always raised before any write.  Nothing in the
ledger retries automatically.
"""


class WarehouseLedgerError(Exception):
    """
    Base exception for all warehouse ledger errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "WAREHOUSE_LEDGER_ERROR"


# Validation exceptions


class ValidationError(WarehouseLedgerError):
    """Base exception for caller errors detected before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidBagCountError(ValidationError):
    """Bag count must be a positive integer."""

    code: str = "INVALID_BAG_COUNT"

    def __init__(self, bags: int):
        self.bags = bags
        super().__init__(f"Bag count must be a positive integer, got {bags}")


class WithdrawalExceedsBalanceError(ValidationError):
    """Cannot withdraw more bags than are currently stored."""

    code: str = "WITHDRAWAL_EXCEEDS_BALANCE"

    def __init__(self, record_id: str, requested: int, available: int):
        self.record_id = record_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot withdraw {requested} bags from record {record_id}: "
            f"only {available} in storage"
        )


class InvalidWithdrawalDateError(ValidationError):
    """Withdrawal date is before the storage start or in the future."""

    code: str = "INVALID_WITHDRAWAL_DATE"

    def __init__(self, withdrawal_date: str, reason: str):
        self.withdrawal_date = withdrawal_date
        self.reason = reason
        super().__init__(f"Invalid withdrawal date {withdrawal_date}: {reason}")


class RevisionExceedsBalanceError(ValidationError):
    """Editing a withdrawal would take out more bags than remain."""

    code: str = "REVISION_EXCEEDS_BALANCE"

    def __init__(self, record_id: str, additional_bags: int, available: int):
        self.record_id = record_id
        self.additional_bags = additional_bags
        self.available = available
        super().__init__(
            f"Revision needs {additional_bags} more bags from record "
            f"{record_id}, but only {available} remain"
        )


class InvalidAmountError(ValidationError):
    """A monetary amount is negative or otherwise unusable."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: str):
        self.field = field
        self.amount = amount
        super().__init__(f"Invalid {field}: {amount}")


class BulkWithdrawalExceedsStockError(ValidationError):
    """Bulk withdrawal asks for more bags than the customer has stored."""

    code: str = "BULK_WITHDRAWAL_EXCEEDS_STOCK"

    def __init__(self, customer_id: str, requested: int, available: int):
        self.customer_id = customer_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} bags, but only {available} are available "
            f"for customer {customer_id}"
        )


class InvalidCommodityError(ValidationError):
    """Commodity description is missing or blank."""

    code: str = "INVALID_COMMODITY"

    def __init__(self, commodity: str | None):
        self.commodity = commodity
        super().__init__(f"Commodity description is required, got {commodity!r}")


class IdempotencyKeyConflictError(ValidationError):
    """An idempotency key already belongs to a different withdrawal request."""

    code: str = "IDEMPOTENCY_KEY_CONFLICT"

    def __init__(self, idempotency_key: str, reason: str):
        self.idempotency_key = idempotency_key
        self.reason = reason
        super().__init__(f"Idempotency key {idempotency_key!r} already used: {reason}")


class PaymentExceedsDuesError(ValidationError):
    """A bulk payment is larger than everything the customer owes."""

    code: str = "PAYMENT_EXCEEDS_DUES"

    def __init__(self, customer_id: str, amount: str, total_due: str):
        self.customer_id = customer_id
        self.amount = amount
        self.total_due = total_due
        super().__init__(
            f"Payment amount {amount} exceeds total dues {total_due} "
            f"for customer {customer_id}"
        )


# Not-found exceptions


class NotFoundError(WarehouseLedgerError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class StorageRecordNotFoundError(NotFoundError):
    """Storage record with given ID was not found."""

    code: str = "STORAGE_RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Storage record not found: {record_id}")


class WithdrawalTransactionNotFoundError(NotFoundError):
    """Withdrawal transaction with given ID was not found."""

    code: str = "WITHDRAWAL_TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Withdrawal transaction not found: {transaction_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class NoOpenRecordsError(NotFoundError):
    """Customer has no open records matching the request."""

    code: str = "NO_OPEN_RECORDS"

    def __init__(self, customer_id: str, detail: str):
        self.customer_id = customer_id
        self.detail = detail
        super().__init__(f"No open records for customer {customer_id}: {detail}")


# Reversal exceptions


class ReversalError(WarehouseLedgerError):
    """Base exception for reversal errors."""

    code: str = "REVERSAL_ERROR"


class TransactionAlreadyReversedError(ReversalError):
    """Withdrawal transaction was already reversed (soft-deleted)."""

    code: str = "TRANSACTION_ALREADY_REVERSED"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Withdrawal {transaction_id} has already been reversed")


# Concurrency exceptions


class ConcurrencyError(WarehouseLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Persistence exceptions


class PersistenceError(WarehouseLedgerError):
    """Base exception for store failures."""

    code: str = "PERSISTENCE_ERROR"


class LedgerPersistenceError(PersistenceError):
    """The write sequence failed and was rolled back."""

    code: str = "LEDGER_PERSISTENCE_FAILED"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failed during {operation}: {detail}")
