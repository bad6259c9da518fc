"""
InflowService -- bags entering storage.

Creates the storage record with its record number and inflow invoice
number, and records the hamali (loading charge) paid at the gate.
Rent is never billed here; it is billed on withdrawal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from warehouse_kernel.domain.clock import Clock
from warehouse_kernel.domain.context import WarehouseContext
from warehouse_kernel.domain.dtos import BillingCycle, InvoiceKind, PaymentType
from warehouse_kernel.exceptions import InvalidCommodityError
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.models.storage_record import StorageRecordModel
from warehouse_kernel.services.sequence_service import DEFAULT_INVOICE_BASE, InvoiceSequencer
from warehouse_kernel.services.stores import PaymentStore, StorageRecordStore
from warehouse_services.base import LedgerService
from warehouse_services.notifier import Notifier

logger = get_logger("services.inflow")

HAMALI_PAYMENT_NOTE = "Hamali paid at inflow"


@dataclass(frozen=True)
class InflowResult:
    record_id: UUID
    record_number: int
    inflow_invoice_no: str
    bags_in: int
    hamali_payable: Decimal
    payment_id: UUID | None = None


class InflowService(LedgerService):
    """Creates storage records."""

    logger = logger

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        invoice_base: int = DEFAULT_INVOICE_BASE,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock=clock, notifier=notifier, auto_commit=auto_commit)
        self._records = StorageRecordStore(session)
        self._payments = PaymentStore(session)
        self._invoices = InvoiceSequencer(session, invoice_base)

    def create_storage_record(
        self,
        ctx: WarehouseContext,
        customer_id: UUID,
        commodity: str,
        bags: int,
        start_date: date,
        hamali_rate: Decimal = Decimal("0"),
        hamali_paid: Decimal = Decimal("0"),
        location: str | None = None,
    ) -> InflowResult:
        """
        Open a storage record of ``bags`` bags starting on ``start_date``.

        ``hamali_payable`` is ``bags * hamali_rate``.  A positive
        ``hamali_paid`` is recorded as a hamali payment dated
        ``start_date``.

        Raises:
            InvalidBagCountError: bags <= 0.
            InvalidAmountError: negative rate or payment.
            InvalidCommodityError: empty commodity description.
        """
        with LogContext.bind(correlation_id=str(uuid4()), **ctx.log_fields()):
            logger.info(
                "inflow_started",
                extra={
                    "customer_id": str(customer_id),
                    "commodity": commodity,
                    "bags": bags,
                },
            )
            with self._transaction("inflow"):
                self._require_positive_bags(bags)
                hamali_rate = self._require_non_negative("hamali rate", hamali_rate)
                hamali_paid = self._require_non_negative("hamali paid", hamali_paid)
                if not commodity or not commodity.strip():
                    raise InvalidCommodityError(commodity)

                record_number = self._invoices.next_record_number(ctx.warehouse_id)
                invoice_no = self._invoices.next_invoice_number(
                    ctx.warehouse_id,
                    InvoiceKind.INFLOW,
                    ctx.warehouse_name,
                )

                record = self._records.add(
                    StorageRecordModel(
                        record_number=record_number,
                        warehouse_id=ctx.warehouse_id,
                        customer_id=customer_id,
                        commodity_description=commodity.strip(),
                        location=location,
                        bags_in=bags,
                        bags_out=0,
                        bags_stored=bags,
                        total_rent_billed=Decimal("0"),
                        hamali_payable=bags * hamali_rate,
                        billing_cycle=BillingCycle.OPEN.value,
                        storage_start_date=start_date,
                        inflow_invoice_no=invoice_no,
                        created_by_id=ctx.actor_id,
                    )
                )

                payment = None
                if hamali_paid > 0:
                    payment = self._payments.add(
                        record,
                        hamali_paid,
                        start_date,
                        PaymentType.HAMALI,
                        ctx.actor_id,
                        notes=HAMALI_PAYMENT_NOTE,
                    )

                result = InflowResult(
                    record_id=record.id,
                    record_number=record_number,
                    inflow_invoice_no=invoice_no,
                    bags_in=bags,
                    hamali_payable=record.hamali_payable,
                    payment_id=payment.id if payment else None,
                )

            logger.info(
                "storage_record_created",
                extra={
                    "record_id": str(result.record_id),
                    "record_number": result.record_number,
                    "inflow_invoice_no": result.inflow_invoice_no,
                },
            )
            return result
