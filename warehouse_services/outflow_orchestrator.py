"""
OutflowOrchestrator -- withdrawals, their reversal and their revision.

Responsibility:
    Drives a storage record between Open (bags in storage) and Completed
    (balance zero).  Each operation validates its inputs, asks the pure
    engines for rent and for the new record state, then persists the
    record update, the optional payment and the withdrawal transaction.

Architecture position:
    Services -- imperative shell.  Imports engines, kernel stores,
    selectors and sequencer.  Defines its own transaction boundary: with
    ``auto_commit=True`` (default) every public operation commits on
    success and rolls back on failure.

Invariants enforced:
    - All validation happens before the first write; a rejected request
      leaves no trace in the store.
    - The record update, payment row and transaction row of one operation
      commit together or not at all.
    - Every record update is a compare-and-swap on ``version_id``.
    - A record receives its outflow invoice number once, on its first
      withdrawal, in the same UPDATE as the ledger delta.
    - Reversal updates the record first and then soft-deletes the
      transaction; revision updates the record first and then the
      transaction.

Failure modes:
    - ValidationError subclasses for bad input (nothing written).
    - StorageRecordNotFoundError / WithdrawalTransactionNotFoundError.
    - TransactionAlreadyReversedError on a second undo.
    - OptimisticLockError when another request changed the record first.
    - LedgerPersistenceError wrapping any other store failure.
    - Notification failures are logged and swallowed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from warehouse_config.schema import LedgerConfig
from warehouse_engines.allocation import split_pro_rata
from warehouse_engines.ledger_impact import (
    WithdrawalTerms,
    apply_withdrawal,
    reverse_withdrawal,
    revise_withdrawal,
)
from warehouse_engines.rent import RentPricing, RentQuote, compute_rent, months_stored
from warehouse_kernel.domain.clock import Clock
from warehouse_kernel.domain.context import WarehouseContext
from warehouse_kernel.domain.dtos import InvoiceKind, PaymentType, StorageRecordSnapshot
from warehouse_kernel.exceptions import (
    BulkWithdrawalExceedsStockError,
    IdempotencyKeyConflictError,
    InvalidWithdrawalDateError,
    LedgerPersistenceError,
    NoOpenRecordsError,
    TransactionAlreadyReversedError,
    WithdrawalExceedsBalanceError,
)
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.models.storage_record import StorageRecordModel
from warehouse_kernel.models.withdrawal import WithdrawalTransactionModel
from warehouse_kernel.selectors.storage_selector import StorageSelector
from warehouse_kernel.services.sequence_service import DEFAULT_INVOICE_BASE, InvoiceSequencer
from warehouse_kernel.services.stores import PaymentStore, StorageRecordStore, WithdrawalStore
from warehouse_kernel.utils.idempotency import generate_idempotency_key, idempotency_key_prefix
from warehouse_services.base import LedgerService
from warehouse_services.notifier import Notifier, NullNotifier

logger = get_logger("services.outflow")

OUTFLOW_PAYMENT_NOTE = "Rent paid during outflow"
BULK_OUTFLOW_PAYMENT_NOTE = "Bulk Outflow Payment"
BULK_WITHDRAWAL_OPERATION = "bulk_withdrawal"


@dataclass(frozen=True)
class WithdrawalResult:
    """Outcome of one withdrawal (or of one slice of a bulk withdrawal)."""

    transaction_id: UUID
    record_id: UUID
    bags_withdrawn: int
    rent_collected: Decimal
    months_stored: int
    bags_remaining: int
    is_closed: bool
    outflow_invoice_no: str | None
    payment_id: UUID | None = None
    amount_paid: Decimal = Decimal("0")
    replayed: bool = False


@dataclass(frozen=True)
class ReversalResult:
    transaction_id: UUID
    record_id: UUID
    bags_restored: int
    rent_reversed: Decimal
    bags_stored: int
    reopened: bool


@dataclass(frozen=True)
class RevisionResult:
    transaction_id: UUID
    record_id: UUID
    bags_withdrawn: int
    rent_collected: Decimal
    withdrawal_date: date
    bags_stored: int
    is_closed: bool


@dataclass(frozen=True)
class BulkWithdrawalResult:
    """All slices of one bulk withdrawal, oldest record first."""

    slices: tuple[WithdrawalResult, ...]
    replayed: bool = False

    @property
    def total_bags(self) -> int:
        return sum(s.bags_withdrawn for s in self.slices)

    @property
    def total_rent(self) -> Decimal:
        return sum((s.rent_collected for s in self.slices), Decimal("0"))

    @property
    def transaction_ids(self) -> tuple[UUID, ...]:
        return tuple(s.transaction_id for s in self.slices)


@dataclass(frozen=True)
class _PlannedSlice:
    snapshot: StorageRecordSnapshot
    bags: int
    quote: RentQuote


class OutflowOrchestrator(LedgerService):
    """
    Entry point for every outflow-side ledger operation.

    Contract:
        Each public method takes the WarehouseContext first and either
        returns a frozen result or raises a WarehouseLedgerError.  Errors
        are never returned as values.

    Guarantees:
        - Nothing is retried automatically.
        - A repeated ``idempotency_key`` returns the original outcome with
          ``replayed=True`` instead of withdrawing twice.

    Non-goals:
        - Does not deliver SMS; see ``warehouse_services.notifier``.
    """

    logger = logger

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        pricing: RentPricing | None = None,
        notifier: Notifier | None = None,
        invoice_base: int = DEFAULT_INVOICE_BASE,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock=clock, notifier=notifier, auto_commit=auto_commit)
        self._pricing = pricing or RentPricing()

        self._records = StorageRecordStore(session)
        self._withdrawals = WithdrawalStore(session)
        self._payments = PaymentStore(session)
        self._invoices = InvoiceSequencer(session, invoice_base)
        self._selector = StorageSelector(session)

    @classmethod
    def from_config(
        cls,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        auto_commit: bool = True,
    ) -> OutflowOrchestrator:
        if not config.notifications.enabled:
            notifier = NullNotifier()
        return cls(
            session,
            clock=clock,
            pricing=RentPricing(
                config.pricing.six_month_rate,
                config.pricing.twelve_month_rate,
            ),
            notifier=notifier,
            invoice_base=config.sequences.invoice_base,
            auto_commit=auto_commit,
        )

    @property
    def pricing(self) -> RentPricing:
        return self._pricing

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _require_valid_date(self, withdrawal_date: date, start_date: date | None) -> None:
        if start_date is not None and withdrawal_date < start_date:
            raise InvalidWithdrawalDateError(
                withdrawal_date.isoformat(),
                f"before storage start {start_date.isoformat()}",
            )
        today = self._clock.today()
        if withdrawal_date > today:
            raise InvalidWithdrawalDateError(
                withdrawal_date.isoformat(),
                f"after today {today.isoformat()}",
            )

    # ------------------------------------------------------------------
    # Withdrawal
    # ------------------------------------------------------------------

    def record_withdrawal(
        self,
        ctx: WarehouseContext,
        record_id: UUID,
        bags: int,
        withdrawal_date: date,
        amount_paid: Decimal = Decimal("0"),
        notify: bool = False,
        idempotency_key: str | None = None,
    ) -> WithdrawalResult:
        """
        Withdraw ``bags`` from one record, billing rent up to ``withdrawal_date``.

        Preconditions:
            - bags > 0 and bags <= the record's bags_stored.
            - storage start <= withdrawal_date <= today.
            - amount_paid >= 0.

        Postconditions:
            - The record's balance, rent billed, end date and cycle label
              reflect the withdrawal; the outflow invoice is assigned if
              the record had none.
            - A withdrawal transaction exists; a "rent" payment exists
              when amount_paid > 0.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            record_id=str(record_id),
            **ctx.log_fields(),
        ):
            logger.info(
                "withdrawal_started",
                extra={
                    "bags": bags,
                    "withdrawal_date": withdrawal_date.isoformat(),
                    "amount_paid": str(amount_paid),
                },
            )

            if idempotency_key is not None:
                existing = self._find_replay(ctx, idempotency_key, record_id)
                if existing is not None:
                    logger.info(
                        "withdrawal_replayed",
                        extra={"transaction_id": str(existing.id)},
                    )
                    return self._replayed_result(existing)

            try:
                with self._transaction("withdrawal"):
                    result = self._do_record_withdrawal(
                        ctx,
                        record_id,
                        bags,
                        withdrawal_date,
                        amount_paid,
                        idempotency_key,
                    )
            except LedgerPersistenceError:
                # A concurrent request with the same key may have won the insert.
                existing = (
                    self._find_replay(ctx, idempotency_key, record_id)
                    if idempotency_key is not None and self._auto_commit
                    else None
                )
                if existing is None:
                    raise
                logger.info(
                    "withdrawal_replayed",
                    extra={"transaction_id": str(existing.id)},
                )
                return self._replayed_result(existing)

            logger.info(
                "withdrawal_recorded",
                extra={
                    "transaction_id": str(result.transaction_id),
                    "rent_collected": str(result.rent_collected),
                    "months_stored": result.months_stored,
                    "bags_remaining": result.bags_remaining,
                    "outflow_invoice_no": result.outflow_invoice_no,
                },
            )

        if notify:
            self._notify("withdrawal_recorded", {
                "record_id": str(result.record_id),
                "bags_withdrawn": result.bags_withdrawn,
                "rent_collected": str(result.rent_collected),
                "amount_paid": str(result.amount_paid),
                "outflow_invoice_no": result.outflow_invoice_no,
            })
        return result

    def _do_record_withdrawal(
        self,
        ctx: WarehouseContext,
        record_id: UUID,
        bags: int,
        withdrawal_date: date,
        amount_paid: Decimal,
        idempotency_key: str | None,
    ) -> WithdrawalResult:
        self._require_positive_bags(bags)
        amount_paid = self._require_non_negative("amount paid", amount_paid)

        record = self._records.get(ctx.warehouse_id, record_id)
        snapshot = StorageRecordSnapshot.from_model(record)
        self._require_valid_date(withdrawal_date, snapshot.storage_start_date)
        if bags > snapshot.bags_stored:
            raise WithdrawalExceedsBalanceError(str(record_id), bags, snapshot.bags_stored)

        quote = compute_rent(
            snapshot.storage_start_date,
            withdrawal_date,
            bags,
            pricing=self._pricing,
        )
        return self._write_withdrawal(
            ctx,
            record,
            snapshot,
            bags,
            quote,
            withdrawal_date,
            amount_paid,
            OUTFLOW_PAYMENT_NOTE,
            idempotency_key,
        )

    def _write_withdrawal(
        self,
        ctx: WarehouseContext,
        record: StorageRecordModel,
        snapshot: StorageRecordSnapshot,
        bags: int,
        quote: RentQuote,
        withdrawal_date: date,
        amount_paid: Decimal,
        payment_note: str,
        idempotency_key: str | None,
    ) -> WithdrawalResult:
        update = apply_withdrawal(snapshot, bags, quote.total_rent, withdrawal_date)

        changes = update.as_changes()
        if record.outflow_invoice_no is None:
            changes["outflow_invoice_no"] = self._invoices.next_invoice_number(
                ctx.warehouse_id,
                InvoiceKind.OUTFLOW,
                ctx.warehouse_name,
            )
        self._records.update(record, ctx.actor_id, **changes)

        payment = None
        if amount_paid > 0:
            payment = self._payments.add(
                record,
                amount_paid,
                withdrawal_date,
                PaymentType.RENT,
                ctx.actor_id,
                notes=payment_note,
            )

        txn = self._withdrawals.insert(
            record,
            bags,
            quote.total_rent,
            withdrawal_date,
            ctx.actor_id,
            idempotency_key=idempotency_key,
            payment=payment,
        )

        return WithdrawalResult(
            transaction_id=txn.id,
            record_id=record.id,
            bags_withdrawn=bags,
            rent_collected=quote.total_rent,
            months_stored=quote.months_stored,
            bags_remaining=update.bags_stored,
            is_closed=update.is_closed,
            outflow_invoice_no=record.outflow_invoice_no,
            payment_id=payment.id if payment else None,
            amount_paid=amount_paid,
        )

    def _find_replay(
        self,
        ctx: WarehouseContext,
        idempotency_key: str,
        record_id: UUID,
    ) -> WithdrawalTransactionModel | None:
        existing = self._withdrawals.find_by_idempotency_key(ctx.warehouse_id, idempotency_key)
        if existing is not None and existing.storage_record_id != record_id:
            logger.warning(
                "idempotency_key_conflict",
                extra={
                    "idempotency_key": idempotency_key,
                    "existing_record_id": str(existing.storage_record_id),
                },
            )
            raise IdempotencyKeyConflictError(
                idempotency_key,
                f"belongs to a withdrawal from record {existing.storage_record_id}",
            )
        return existing

    def _replayed_result(self, txn: WithdrawalTransactionModel) -> WithdrawalResult:
        record = txn.storage_record
        payment = txn.payment
        return WithdrawalResult(
            transaction_id=txn.id,
            record_id=record.id,
            bags_withdrawn=txn.bags_withdrawn,
            rent_collected=Decimal(txn.rent_collected),
            months_stored=months_stored(record.storage_start_date, txn.withdrawal_date),
            bags_remaining=record.bags_stored,
            is_closed=record.bags_stored == 0,
            outflow_invoice_no=record.outflow_invoice_no,
            payment_id=payment.id if payment else None,
            amount_paid=Decimal(payment.amount) if payment else Decimal("0"),
            replayed=True,
        )

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def reverse_withdrawal(self, ctx: WarehouseContext, transaction_id: UUID) -> ReversalResult:
        """
        Undo a withdrawal: put its bags back and un-bill its rent.

        Payments taken during the withdrawal are left in place.

        Raises:
            WithdrawalTransactionNotFoundError: unknown transaction.
            TransactionAlreadyReversedError: already undone.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            transaction_id=str(transaction_id),
            **ctx.log_fields(),
        ):
            logger.info("reversal_started")
            with self._transaction("reversal"):
                txn = self._withdrawals.get(ctx.warehouse_id, transaction_id)
                if txn.is_reversed:
                    raise TransactionAlreadyReversedError(str(transaction_id))

                record = txn.storage_record
                snapshot = StorageRecordSnapshot.from_model(record)
                update = reverse_withdrawal(
                    snapshot,
                    txn.bags_withdrawn,
                    Decimal(txn.rent_collected),
                )
                self._records.update(record, ctx.actor_id, **update.as_changes())
                self._withdrawals.soft_delete(txn, self._clock.now(), ctx.actor_id)

                result = ReversalResult(
                    transaction_id=txn.id,
                    record_id=record.id,
                    bags_restored=txn.bags_withdrawn,
                    rent_reversed=Decimal(txn.rent_collected),
                    bags_stored=update.bags_stored,
                    reopened=snapshot.is_closed and not update.is_closed,
                )

            logger.info(
                "withdrawal_reversed",
                extra={
                    "record_id": str(result.record_id),
                    "bags_restored": result.bags_restored,
                    "rent_reversed": str(result.rent_reversed),
                    "reopened": result.reopened,
                },
            )
            return result

    # ------------------------------------------------------------------
    # Revision
    # ------------------------------------------------------------------

    def revise_withdrawal(
        self,
        ctx: WarehouseContext,
        transaction_id: UUID,
        bags: int,
        rent: Decimal,
        withdrawal_date: date,
    ) -> RevisionResult:
        """
        Correct the bags, rent and date of an existing withdrawal.

        The rent given is taken as-is; it is not recomputed from the
        ladder.

        Raises:
            InvalidBagCountError / InvalidAmountError: bad new terms.
            RevisionExceedsBalanceError: more extra bags than remain.
            TransactionAlreadyReversedError: the withdrawal was undone.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            transaction_id=str(transaction_id),
            **ctx.log_fields(),
        ):
            logger.info(
                "revision_started",
                extra={
                    "bags": bags,
                    "rent": str(rent),
                    "withdrawal_date": withdrawal_date.isoformat(),
                },
            )
            with self._transaction("revision"):
                self._require_positive_bags(bags)
                rent = self._require_non_negative("rent", rent)

                txn = self._withdrawals.get(ctx.warehouse_id, transaction_id)
                if txn.is_reversed:
                    raise TransactionAlreadyReversedError(str(transaction_id))

                record = txn.storage_record
                snapshot = StorageRecordSnapshot.from_model(record)
                self._require_valid_date(withdrawal_date, snapshot.storage_start_date)

                update = revise_withdrawal(
                    snapshot,
                    WithdrawalTerms(bags=txn.bags_withdrawn, rent=Decimal(txn.rent_collected)),
                    WithdrawalTerms(bags=bags, rent=rent, withdrawal_date=withdrawal_date),
                )
                self._records.update(record, ctx.actor_id, **update.as_changes())
                self._withdrawals.update(txn, bags, rent, withdrawal_date, ctx.actor_id)

                result = RevisionResult(
                    transaction_id=txn.id,
                    record_id=record.id,
                    bags_withdrawn=bags,
                    rent_collected=rent,
                    withdrawal_date=withdrawal_date,
                    bags_stored=update.bags_stored,
                    is_closed=update.is_closed,
                )

            logger.info(
                "withdrawal_revised",
                extra={
                    "record_id": str(result.record_id),
                    "bags_stored": result.bags_stored,
                },
            )
            return result

    # ------------------------------------------------------------------
    # Bulk withdrawal
    # ------------------------------------------------------------------

    def record_bulk_withdrawal(
        self,
        ctx: WarehouseContext,
        customer_id: UUID,
        commodity: str,
        total_bags: int,
        withdrawal_date: date,
        amount_paid: Decimal = Decimal("0"),
        record_ids: Sequence[UUID] | None = None,
        notify: bool = False,
        idempotency_key: str | None = None,
    ) -> BulkWithdrawalResult:
        """
        Withdraw ``total_bags`` of ``commodity`` across a customer's open
        records, oldest storage start first.

        Each slice is billed exactly for its own record and bags.  The
        payment is split across slices in proportion to their rent
        (rounded to cents, last slice takes the remainder); with no rent
        due the whole payment lands on the first slice.  ``record_ids``
        restricts the candidates without changing their order; an empty
        sequence leaves no candidates.

        Raises:
            NoOpenRecordsError: no matching open records.
            BulkWithdrawalExceedsStockError: total_bags > bags available.
        """
        with LogContext.bind(correlation_id=str(uuid4()), **ctx.log_fields()):
            logger.info(
                "bulk_withdrawal_started",
                extra={
                    "customer_id": str(customer_id),
                    "commodity": commodity,
                    "total_bags": total_bags,
                    "withdrawal_date": withdrawal_date.isoformat(),
                },
            )

            if idempotency_key is not None:
                existing = self._withdrawals.find_by_idempotency_prefix(
                    ctx.warehouse_id,
                    idempotency_key_prefix(BULK_WITHDRAWAL_OPERATION, idempotency_key),
                )
                if existing:
                    self._check_bulk_replay(idempotency_key, existing, customer_id, commodity)
                    logger.info("bulk_withdrawal_replayed", extra={"slice_count": len(existing)})
                    return BulkWithdrawalResult(
                        slices=tuple(self._replayed_result(t) for t in existing),
                        replayed=True,
                    )

            with self._transaction("bulk_withdrawal"):
                slices = self._do_bulk_withdrawal(
                    ctx,
                    customer_id,
                    commodity,
                    total_bags,
                    withdrawal_date,
                    amount_paid,
                    record_ids,
                    idempotency_key,
                )
            result = BulkWithdrawalResult(slices=tuple(slices))

            logger.info(
                "bulk_withdrawal_recorded",
                extra={
                    "slice_count": len(result.slices),
                    "total_bags": result.total_bags,
                    "total_rent": str(result.total_rent),
                },
            )

        if notify:
            self._notify("bulk_withdrawal_recorded", {
                "customer_id": str(customer_id),
                "commodity": commodity,
                "total_bags": result.total_bags,
                "total_rent": str(result.total_rent),
                "amount_paid": str(amount_paid),
            })
        return result

    def _do_bulk_withdrawal(
        self,
        ctx: WarehouseContext,
        customer_id: UUID,
        commodity: str,
        total_bags: int,
        withdrawal_date: date,
        amount_paid: Decimal,
        record_ids: Sequence[UUID] | None,
        idempotency_key: str | None,
    ) -> list[WithdrawalResult]:
        self._require_positive_bags(total_bags)
        amount_paid = self._require_non_negative("amount paid", amount_paid)
        self._require_valid_date(withdrawal_date, None)

        candidates = self._selector.open_records_for_customer(
            ctx.warehouse_id,
            customer_id,
            commodity=commodity,
            record_ids=record_ids,
        )
        if not candidates:
            raise NoOpenRecordsError(str(customer_id), f"no open records of {commodity!r}")

        available = sum(r.bags_stored for r in candidates)
        if total_bags > available:
            raise BulkWithdrawalExceedsStockError(str(customer_id), total_bags, available)

        plan: list[_PlannedSlice] = []
        remaining = total_bags
        for snapshot in candidates:
            if remaining <= 0:
                break
            take = min(snapshot.bags_stored, remaining)
            self._require_valid_date(withdrawal_date, snapshot.storage_start_date)
            plan.append(
                _PlannedSlice(
                    snapshot=snapshot,
                    bags=take,
                    quote=compute_rent(
                        snapshot.storage_start_date,
                        withdrawal_date,
                        take,
                        pricing=self._pricing,
                    ),
                )
            )
            remaining -= take

        shares = split_pro_rata(amount_paid, [s.quote.total_rent for s in plan])

        results: list[WithdrawalResult] = []
        for planned, share in zip(plan, shares):
            record = self._records.get(ctx.warehouse_id, planned.snapshot.id)
            slice_key = (
                generate_idempotency_key(BULK_WITHDRAWAL_OPERATION, idempotency_key, record.id)
                if idempotency_key is not None
                else None
            )
            results.append(
                self._write_withdrawal(
                    ctx,
                    record,
                    planned.snapshot,
                    planned.bags,
                    planned.quote,
                    withdrawal_date,
                    share,
                    BULK_OUTFLOW_PAYMENT_NOTE,
                    slice_key,
                )
            )
        return results

    @staticmethod
    def _check_bulk_replay(
        idempotency_key: str,
        existing: Sequence[WithdrawalTransactionModel],
        customer_id: UUID,
        commodity: str,
    ) -> None:
        for txn in existing:
            record = txn.storage_record
            if record.customer_id != customer_id or record.commodity_description != commodity:
                raise IdempotencyKeyConflictError(
                    idempotency_key,
                    f"belongs to a bulk withdrawal of {record.commodity_description!r} "
                    f"for customer {record.customer_id}",
                )
