"""Tests for InflowService.create_storage_record."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from warehouse_kernel.exceptions import (
    InvalidAmountError,
    InvalidBagCountError,
    InvalidCommodityError,
)
from warehouse_kernel.models.payment import PaymentModel
from warehouse_kernel.models.storage_record import StorageRecordModel


class TestCreateStorageRecord:

    def test_creates_open_record(self, session, inflow_service, warehouse_context, customer_id):
        result = inflow_service.create_storage_record(
            warehouse_context,
            customer_id,
            "Paddy",
            100,
            date(2023, 1, 1),
            location="Bay 4",
        )

        record = session.get(StorageRecordModel, result.record_id)
        assert record.bags_in == 100
        assert record.bags_out == 0
        assert record.bags_stored == 100
        assert record.total_rent_billed == Decimal("0")
        assert record.billing_cycle == "6m"
        assert record.storage_start_date == date(2023, 1, 1)
        assert record.storage_end_date is None
        assert record.location == "Bay 4"
        assert record.version_id == 1
        assert record.created_by_id == warehouse_context.actor_id
        assert record.warehouse_id == warehouse_context.warehouse_id

    def test_numbers_and_inflow_invoices(self, inflow_service, warehouse_context, customer_id):
        first = inflow_service.create_storage_record(
            warehouse_context, customer_id, "Paddy", 10, date(2023, 1, 1)
        )
        second = inflow_service.create_storage_record(
            warehouse_context, customer_id, "Paddy", 10, date(2023, 1, 2)
        )

        assert first.record_number == 1
        assert second.record_number == 2
        assert first.inflow_invoice_no == "BAMA-IN-1001"
        assert second.inflow_invoice_no == "BAMA-IN-1002"

    def test_numbering_is_per_warehouse(
        self, inflow_service, warehouse_context, other_warehouse_context, customer_id
    ):
        inflow_service.create_storage_record(warehouse_context, customer_id, "Paddy", 10, date(2023, 1, 1))
        other = inflow_service.create_storage_record(
            other_warehouse_context, customer_id, "Paddy", 10, date(2023, 1, 1)
        )

        assert other.record_number == 1
        assert other.inflow_invoice_no == "MYSO-IN-1001"

    def test_hamali_payable_and_payment(self, session, inflow_service, warehouse_context, customer_id):
        result = inflow_service.create_storage_record(
            warehouse_context,
            customer_id,
            "Paddy",
            100,
            date(2023, 1, 1),
            hamali_rate=Decimal("3.50"),
            hamali_paid=Decimal("200"),
        )

        assert result.hamali_payable == Decimal("350")
        payments = list(
            session.execute(
                select(PaymentModel).where(PaymentModel.storage_record_id == result.record_id)
            ).scalars()
        )
        assert len(payments) == 1
        assert payments[0].payment_type == "hamali"
        assert payments[0].amount == Decimal("200")
        assert payments[0].payment_date == date(2023, 1, 1)

    def test_no_hamali_payment_when_unpaid(self, inflow_service, warehouse_context, customer_id):
        result = inflow_service.create_storage_record(
            warehouse_context, customer_id, "Paddy", 100, date(2023, 1, 1), hamali_rate=Decimal("3")
        )
        assert result.payment_id is None

    @pytest.mark.parametrize("bags", [0, -1])
    def test_invalid_bags(self, inflow_service, warehouse_context, customer_id, bags):
        with pytest.raises(InvalidBagCountError):
            inflow_service.create_storage_record(
                warehouse_context, customer_id, "Paddy", bags, date(2023, 1, 1)
            )

    def test_negative_hamali_rate(self, inflow_service, warehouse_context, customer_id):
        with pytest.raises(InvalidAmountError):
            inflow_service.create_storage_record(
                warehouse_context,
                customer_id,
                "Paddy",
                10,
                date(2023, 1, 1),
                hamali_rate=Decimal("-1"),
            )

    @pytest.mark.parametrize("commodity", ["", "  ", None])
    def test_blank_commodity(self, inflow_service, warehouse_context, customer_id, session, commodity):
        with pytest.raises(InvalidCommodityError) as exc_info:
            inflow_service.create_storage_record(
                warehouse_context, customer_id, commodity, 10, date(2023, 1, 1)
            )

        assert exc_info.value.code == "INVALID_COMMODITY"
        assert session.execute(select(StorageRecordModel)).scalars().all() == []

    def test_logs_creation(self, inflow_service, warehouse_context, customer_id, captured_logs):
        result = inflow_service.create_storage_record(
            warehouse_context, customer_id, "Paddy", 10, date(2023, 1, 1)
        )

        created = [r for r in captured_logs() if r["message"] == "storage_record_created"]
        assert len(created) == 1
        assert created[0]["inflow_invoice_no"] == result.inflow_invoice_no
