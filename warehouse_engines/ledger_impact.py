"""
Module: warehouse_engines.ledger_impact
Responsibility:
    Compute the new state of a storage record after a withdrawal, the
    reversal of a withdrawal, or the revision of a withdrawal.  All three
    are one signed delta on (bags out, rent billed) followed by the same
    open/closed derivation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Takes a
    StorageRecordSnapshot, returns a LedgerUpdate; the input is never
    modified.  Persisting the update is the orchestrator's job.

Invariants enforced:
    - bags_stored == bags_in - bags_out in every result.
    - bags_out and total_rent_billed are floored at zero.
    - storage_end_date is set iff bags_stored == 0, and the billing cycle
      label follows the same rule (Completed / 6m).
    - Over-withdrawal is rejected, never clamped.

Failure modes:
    - WithdrawalExceedsBalanceError if a withdrawal asks for more bags
      than are stored.
    - RevisionExceedsBalanceError if a revision needs more extra bags than
      remain; raised before anything is computed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.dtos import BillingCycle, StorageRecordSnapshot
from warehouse_kernel.exceptions import (
    RevisionExceedsBalanceError,
    WithdrawalExceedsBalanceError,
)
from warehouse_kernel.logging_config import get_logger

logger = get_logger("engines.ledger_impact")


@dataclass(frozen=True)
class LedgerUpdate:
    """
    The fields of a storage record that a ledger event changes.

    Contract:
        Field names match the mutable columns of the storage record so the
        orchestrator can hand ``as_changes()`` straight to the store.
    """

    bags_stored: int
    bags_out: int
    total_rent_billed: Decimal
    storage_end_date: date | None
    billing_cycle: BillingCycle

    @property
    def is_closed(self) -> bool:
        return self.bags_stored == 0

    def as_changes(self) -> dict[str, object]:
        return {
            "bags_stored": self.bags_stored,
            "bags_out": self.bags_out,
            "total_rent_billed": self.total_rent_billed,
            "storage_end_date": self.storage_end_date,
            "billing_cycle": self.billing_cycle.value,
        }


@dataclass(frozen=True)
class WithdrawalTerms:
    """Bags and rent of a withdrawal, plus its date when it is the new version."""

    bags: int
    rent: Decimal
    withdrawal_date: date | None = None


def apply_delta(
    record: StorageRecordSnapshot,
    bags_delta: int,
    rent_delta: Decimal,
    event_date: date | None,
) -> LedgerUpdate:
    """
    Move ``bags_delta`` more bags out (negative puts them back) and bill
    ``rent_delta`` more rent (negative refunds it).

    When the result is closed the end date is ``event_date``, falling back
    to the record's existing end date.
    """
    bags_out = max(0, record.bags_out + bags_delta)
    bags_stored = record.bags_in - bags_out
    total_rent = max(Decimal("0"), record.total_rent_billed + rent_delta)

    if bags_stored == 0:
        end_date = event_date if event_date is not None else record.storage_end_date
        cycle = BillingCycle.COMPLETED
    else:
        end_date = None
        cycle = BillingCycle.OPEN

    return LedgerUpdate(
        bags_stored=bags_stored,
        bags_out=bags_out,
        total_rent_billed=total_rent,
        storage_end_date=end_date,
        billing_cycle=cycle,
    )


@traced_engine("ledger_impact.withdrawal", "1.0", fingerprint_fields=("bags_withdrawn", "rent_amount", "withdrawal_date"))
def apply_withdrawal(
    record: StorageRecordSnapshot,
    bags_withdrawn: int,
    rent_amount: Decimal,
    withdrawal_date: date,
) -> LedgerUpdate:
    """
    Record ``bags_withdrawn`` leaving with ``rent_amount`` billed.

    Raises:
        WithdrawalExceedsBalanceError: bags_withdrawn > record.bags_stored.
    """
    if bags_withdrawn > record.bags_stored:
        raise WithdrawalExceedsBalanceError(
            str(record.id), bags_withdrawn, record.bags_stored
        )

    update = apply_delta(record, bags_withdrawn, Decimal(rent_amount), withdrawal_date)
    logger.debug(
        "withdrawal_impact_computed",
        extra={"record_id": str(record.id), "bags_stored": update.bags_stored},
    )
    return update


@traced_engine("ledger_impact.reversal", "1.0", fingerprint_fields=("transaction_bags", "transaction_rent"))
def reverse_withdrawal(
    record: StorageRecordSnapshot,
    transaction_bags: int,
    transaction_rent: Decimal,
) -> LedgerUpdate:
    """
    Undo a withdrawal of ``transaction_bags`` that billed ``transaction_rent``.

    A completed record whose balance becomes positive is reopened.
    """
    update = apply_delta(record, -transaction_bags, -Decimal(transaction_rent), None)
    if record.is_closed and not update.is_closed:
        logger.info("storage_record_reopened", extra={"record_id": str(record.id)})
    return update


@traced_engine("ledger_impact.revision", "1.0", fingerprint_fields=("old", "new"))
def revise_withdrawal(
    record: StorageRecordSnapshot,
    old: WithdrawalTerms,
    new: WithdrawalTerms,
) -> LedgerUpdate:
    """
    Replace a withdrawal's terms ``old`` with ``new``.

    Raises:
        RevisionExceedsBalanceError: the revision needs more extra bags
            than the record still holds.
    """
    bags_diff = new.bags - old.bags
    rent_diff = Decimal(new.rent) - Decimal(old.rent)

    if bags_diff > 0 and bags_diff > record.bags_stored:
        raise RevisionExceedsBalanceError(str(record.id), bags_diff, record.bags_stored)

    return apply_delta(record, bags_diff, rent_diff, new.withdrawal_date)
