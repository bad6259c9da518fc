"""
Module: warehouse_engines.rent
Responsibility:
    Compute storage rent for bags leaving the warehouse, using the tiered
    six-month / twelve-month ladder, and describe where an open record sits
    on that ladder today.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is always a
    parameter; this module never reads a clock.

Invariants enforced:
    - Months stored are whole calendar months, rounded up: any part of a
      month started counts as a full month, and a same-month withdrawal
      after the start date counts as one month.
    - end_date <= start_date bills nothing.
    - Rent per bag follows the ladder; total rent is never negative.
    - Decimal-only arithmetic.

Failure modes:
    - ValueError from RentPricing on negative rates.

Usage:
    from warehouse_engines.rent import compute_rent

    quote = compute_rent(date(2023, 1, 1), date(2023, 10, 1), 100)
    quote.months_stored   # 9
    quote.total_rent      # Decimal("5500")
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.dtos import StorageRecordSnapshot
from warehouse_kernel.logging_config import get_logger

logger = get_logger("engines.rent")

DEFAULT_SIX_MONTH_RATE = Decimal("36")
DEFAULT_TWELVE_MONTH_RATE = Decimal("55")

LABEL_WITHDRAWN = "Withdrawn"
LABEL_SIX_MONTH_TERM = "Active - 6-Month Term"
LABEL_ONE_YEAR_ROLLOVER = "Active - 1-Year Rollover"


@dataclass(frozen=True)
class RentPricing:
    """
    Per-bag rates for the two ladder steps.

    Guarantees:
        - Both rates are non-negative Decimals.
    """

    six_month_rate: Decimal = DEFAULT_SIX_MONTH_RATE
    twelve_month_rate: Decimal = DEFAULT_TWELVE_MONTH_RATE

    def __post_init__(self) -> None:
        object.__setattr__(self, "six_month_rate", Decimal(self.six_month_rate))
        object.__setattr__(self, "twelve_month_rate", Decimal(self.twelve_month_rate))
        if self.six_month_rate < 0 or self.twelve_month_rate < 0:
            raise ValueError(
                f"Rent rates cannot be negative: "
                f"six_month={self.six_month_rate}, twelve_month={self.twelve_month_rate}"
            )


@dataclass(frozen=True)
class RentQuote:
    """Rent due for one withdrawal."""

    rent_per_bag: Decimal
    total_rent: Decimal
    months_stored: int


@dataclass(frozen=True)
class RecordStatus:
    """
    Where an open record sits on the billing ladder.

    ``next_billing_date`` and ``alert`` are None for withdrawn records.
    """

    label: str
    next_billing_date: date | None
    current_rate: Decimal
    alert: str | None = None


def months_stored(start_date: date, end_date: date) -> int:
    """
    Whole months of storage between two dates, any started month counted.

    Month steps are added with ``relativedelta`` so Jan 31 + 1 month is
    the last day of February.
    """
    if end_date <= start_date:
        return 0

    months = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    while months > 0 and start_date + relativedelta(months=months) > end_date:
        months -= 1

    if end_date > start_date + relativedelta(months=months):
        months += 1

    return max(months, 1)


def rent_per_bag_for_months(months: int, pricing: RentPricing) -> Decimal:
    """
    Ladder lookup.

    1-6 months is one six-month charge, 7-12 one twelve-month charge.
    Beyond a year every completed year costs one twelve-month charge and
    the remaining 1-12 months are priced like the first year.
    """
    if months <= 0:
        return Decimal("0")

    full_years = (months - 1) // 12
    remainder = months - 12 * full_years
    tail = pricing.six_month_rate if remainder <= 6 else pricing.twelve_month_rate
    return full_years * pricing.twelve_month_rate + tail


@traced_engine("rent", "1.0", fingerprint_fields=("start_date", "end_date", "bags", "pricing"))
def compute_rent(
    start_date: date,
    end_date: date,
    bags: int,
    pricing: RentPricing | None = None,
) -> RentQuote:
    """
    Rent for ``bags`` stored from ``start_date`` until ``end_date``.

    Postconditions:
        - total_rent == max(0, rent_per_bag * bags).
        - months_stored == 0 and rent 0 when end_date <= start_date.
    """
    pricing = pricing or RentPricing()
    months = months_stored(start_date, end_date)
    per_bag = rent_per_bag_for_months(months, pricing)
    total = max(Decimal("0"), per_bag * bags)

    logger.debug(
        "rent_computed",
        extra={
            "months_stored": months,
            "rent_per_bag": str(per_bag),
            "bags": bags,
            "total_rent": str(total),
        },
    )
    return RentQuote(rent_per_bag=per_bag, total_rent=total, months_stored=months)


def _calendar_months(start_date: date, today: date) -> int:
    return (today.year - start_date.year) * 12 + (today.month - start_date.month)


@traced_engine("record_status", "1.0", fingerprint_fields=("today",))
def record_status(
    record: StorageRecordSnapshot,
    today: date,
    pricing: RentPricing | None = None,
) -> RecordStatus:
    """
    Billing position of a record as of ``today``.

    Open records move through the six-month term, the one-year rollover
    and then yearly renewals.  From the first renewal on, an alert is
    raised once the latest anniversary has been reached.
    """
    pricing = pricing or RentPricing()
    start = record.storage_start_date

    if record.storage_end_date is not None:
        return RecordStatus(
            label=LABEL_WITHDRAWN,
            next_billing_date=None,
            current_rate=Decimal("0"),
        )

    six_month_date = start + relativedelta(months=6)
    if six_month_date > today:
        return RecordStatus(
            label=LABEL_SIX_MONTH_TERM,
            next_billing_date=six_month_date,
            current_rate=pricing.six_month_rate,
        )

    twelve_month_date = start + relativedelta(months=12)
    if twelve_month_date > today:
        return RecordStatus(
            label=LABEL_ONE_YEAR_ROLLOVER,
            next_billing_date=twelve_month_date,
            current_rate=pricing.twelve_month_rate,
        )

    years_stored = _calendar_months(start, today) // 12
    renewal_year = years_stored + 1
    last_renewal = start + relativedelta(months=years_stored * 12)
    alert = None
    if last_renewal <= today:
        alert = f"Renewal for Year {renewal_year + 1} is due."

    return RecordStatus(
        label=f"In 1-Year Renewal (Y{renewal_year})",
        next_billing_date=start + relativedelta(months=renewal_year * 12),
        current_rate=pricing.twelve_month_rate,
        alert=alert,
    )
