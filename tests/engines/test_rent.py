"""
Tests for the rent engine.

Covers:
- Months stored (rounded up, calendar-aware)
- The six-month / twelve-month ladder
- Total rent for a withdrawal
- Record status labels, next billing date and renewal alerts
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from warehouse_engines.rent import (
    LABEL_ONE_YEAR_ROLLOVER,
    LABEL_SIX_MONTH_TERM,
    LABEL_WITHDRAWN,
    RentPricing,
    compute_rent,
    months_stored,
    record_status,
    rent_per_bag_for_months,
)
from warehouse_kernel.domain.dtos import BillingCycle, StorageRecordSnapshot


def _snapshot(start, end=None, bags_in=100, bags_out=0):
    return StorageRecordSnapshot(
        id=uuid4(),
        record_number=1,
        customer_id=uuid4(),
        commodity_description="Paddy",
        bags_in=bags_in,
        bags_out=bags_out,
        bags_stored=bags_in - bags_out,
        total_rent_billed=Decimal("0"),
        hamali_payable=Decimal("0"),
        billing_cycle=BillingCycle.COMPLETED if end else BillingCycle.OPEN,
        storage_start_date=start,
        storage_end_date=end,
    )


class TestMonthsStored:
    """Whole months between two dates, any started month counted."""

    @pytest.mark.parametrize(
        "start,end,expected",
        [
            (date(2023, 1, 1), date(2023, 1, 1), 0),
            (date(2023, 1, 10), date(2023, 1, 5), 0),
            (date(2023, 1, 1), date(2023, 1, 2), 1),
            (date(2023, 1, 1), date(2023, 2, 1), 1),
            (date(2023, 1, 1), date(2023, 2, 2), 2),
            (date(2023, 1, 1), date(2023, 10, 1), 9),
            (date(2023, 1, 15), date(2023, 10, 14), 9),
            (date(2023, 1, 15), date(2023, 10, 16), 10),
            (date(2024, 2, 28), date(2024, 3, 1), 1),
            (date(2023, 1, 1), date(2024, 1, 1), 12),
            (date(2023, 1, 1), date(2024, 1, 2), 13),
        ],
    )
    def test_months_stored(self, start, end, expected):
        assert months_stored(start, end) == expected

    def test_end_of_month_start(self):
        """Jan 31 plus one month is Feb 29 in a leap year, not March."""
        assert months_stored(date(2024, 1, 31), date(2024, 2, 29)) == 1
        assert months_stored(date(2024, 1, 31), date(2024, 3, 1)) == 2


class TestRentLadder:
    """Per-bag rent for a number of months stored."""

    @pytest.mark.parametrize(
        "months,expected",
        [
            (0, Decimal("0")),
            (1, Decimal("36")),
            (6, Decimal("36")),
            (7, Decimal("55")),
            (12, Decimal("55")),
            (13, Decimal("91")),
            (18, Decimal("91")),
            (19, Decimal("110")),
            (24, Decimal("110")),
            (25, Decimal("146")),
            (36, Decimal("165")),
        ],
    )
    def test_ladder_with_default_rates(self, months, expected):
        assert rent_per_bag_for_months(months, RentPricing()) == expected

    def test_custom_rates(self):
        pricing = RentPricing(Decimal("40"), Decimal("60"))
        assert rent_per_bag_for_months(3, pricing) == Decimal("40")
        assert rent_per_bag_for_months(9, pricing) == Decimal("60")
        assert rent_per_bag_for_months(14, pricing) == Decimal("100")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            RentPricing(Decimal("-1"), Decimal("55"))

    def test_rates_coerced_to_decimal(self):
        pricing = RentPricing(36, 55)
        assert isinstance(pricing.six_month_rate, Decimal)
        assert pricing.twelve_month_rate == Decimal("55")


class TestComputeRent:
    """Total rent for a withdrawal."""

    def test_nine_month_withdrawal(self):
        quote = compute_rent(date(2023, 1, 1), date(2023, 10, 1), 100)

        assert quote.months_stored == 9
        assert quote.rent_per_bag == Decimal("55")
        assert quote.total_rent == Decimal("5500")

    def test_leap_day_crossing_is_one_month(self):
        quote = compute_rent(date(2024, 2, 28), date(2024, 3, 1), 1)

        assert quote.months_stored == 1
        assert quote.total_rent == Decimal("36")

    def test_same_day_is_free(self):
        quote = compute_rent(date(2023, 5, 1), date(2023, 5, 1), 40)

        assert quote.months_stored == 0
        assert quote.total_rent == Decimal("0")

    def test_end_before_start_is_free(self):
        quote = compute_rent(date(2023, 5, 1), date(2023, 4, 1), 40)
        assert quote.total_rent == Decimal("0")

    def test_uses_given_pricing(self):
        quote = compute_rent(
            date(2023, 1, 1),
            date(2023, 3, 1),
            10,
            pricing=RentPricing(Decimal("40"), Decimal("60")),
        )
        assert quote.total_rent == Decimal("400")

    def test_emits_engine_trace(self, captured_logs):
        compute_rent(date(2023, 1, 1), date(2023, 3, 1), 10)

        traces = [r for r in captured_logs() if r["message"] == "WAREHOUSE_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "rent"
        assert len(traces[-1]["input_fingerprint"]) == 16


class TestRecordStatus:
    """Where a record sits on the billing ladder today."""

    def test_withdrawn_record(self):
        status = record_status(
            _snapshot(date(2023, 1, 1), end=date(2023, 6, 1), bags_out=100),
            date(2024, 1, 1),
        )

        assert status.label == LABEL_WITHDRAWN
        assert status.next_billing_date is None
        assert status.current_rate == Decimal("0")
        assert status.alert is None

    def test_six_month_term(self):
        status = record_status(_snapshot(date(2024, 1, 1)), date(2024, 3, 15))

        assert status.label == LABEL_SIX_MONTH_TERM
        assert status.next_billing_date == date(2024, 7, 1)
        assert status.current_rate == Decimal("36")
        assert status.alert is None

    def test_one_year_rollover(self):
        status = record_status(_snapshot(date(2024, 1, 1)), date(2024, 7, 1))

        assert status.label == LABEL_ONE_YEAR_ROLLOVER
        assert status.next_billing_date == date(2025, 1, 1)
        assert status.current_rate == Decimal("55")

    def test_first_renewal_year(self):
        status = record_status(_snapshot(date(2023, 1, 1)), date(2024, 3, 1))

        assert status.label == "In 1-Year Renewal (Y2)"
        assert status.next_billing_date == date(2025, 1, 1)
        assert status.alert == "Renewal for Year 3 is due."

    def test_renewal_not_yet_reached_in_anniversary_month(self):
        """Calendar months count the anniversary month before the day arrives."""
        status = record_status(_snapshot(date(2022, 1, 20)), date(2024, 1, 10))

        assert status.label == "In 1-Year Renewal (Y3)"
        assert status.next_billing_date == date(2025, 1, 20)
        assert status.alert is None

    def test_status_uses_pricing(self):
        status = record_status(
            _snapshot(date(2024, 1, 1)),
            date(2024, 2, 1),
            pricing=RentPricing(Decimal("40"), Decimal("60")),
        )
        assert status.current_rate == Decimal("40")
