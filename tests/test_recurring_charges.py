from datetime import date
from decimal import Decimal

from backend.app.db import base  # noqa: F401
from backend.app.models.enums import BillingFrequency, ProrationMethod
from backend.app.models.recurring_charge import LeaseRecurringCharge
from backend.app.services.billing_jobs import month_period
from backend.app.services.recurring_charges import calculate_recurring_charges

METHOD = ProrationMethod.ACTUAL_DAYS_IN_MONTH


def _charge(frequency, start, end=None, amount="600", is_active=True):
    return LeaseRecurringCharge(
        charge_type_id=7,
        description="Parking",
        amount=Decimal(amount),
        frequency=frequency,
        start_date=start,
        end_date=end,
        is_active=is_active,
    )


def test_monthly_charge_full_period():
    result = calculate_recurring_charges(
        [_charge(BillingFrequency.MONTHLY, date(2024, 1, 1))], date(2024, 6, 1), date(2024, 6, 30), METHOD
    )
    assert result.total_amount == Decimal("600.00")
    assert result.line_items[0].is_prorated is False
    assert result.line_items[0].charge_type_id == 7


def test_monthly_charge_starting_mid_period_is_prorated():
    result = calculate_recurring_charges(
        [_charge(BillingFrequency.MONTHLY, date(2024, 6, 16))], date(2024, 6, 1), date(2024, 6, 30), METHOD
    )
    assert result.total_amount == Decimal("300.00")
    assert result.line_items[0].is_prorated is True


def test_one_time_charge_only_in_its_period():
    charge = _charge(BillingFrequency.ONE_TIME, date(2024, 6, 20), amount="150")
    june = calculate_recurring_charges([charge], date(2024, 6, 1), date(2024, 6, 30), METHOD)
    july = calculate_recurring_charges([charge], date(2024, 7, 1), date(2024, 7, 31), METHOD)
    assert june.total_amount == Decimal("150.00")
    assert july.line_items == []


def test_quarterly_charge_bills_every_third_month():
    charge = _charge(BillingFrequency.QUARTERLY, date(2024, 1, 1), amount="900")
    billed = []
    for month in range(1, 8):
        period_start, period_end = month_period(date(2024, month, 1))
        billed.append(calculate_recurring_charges([charge], period_start, period_end, METHOD).total_amount)
    assert billed == [
        Decimal("900.00"),
        Decimal("0.00"),
        Decimal("0.00"),
        Decimal("900.00"),
        Decimal("0.00"),
        Decimal("0.00"),
        Decimal("900.00"),
    ]


def test_yearly_charge_bills_on_anniversary_month():
    charge = _charge(BillingFrequency.YEARLY, date(2023, 5, 1), amount="1200")
    may = calculate_recurring_charges([charge], date(2024, 5, 1), date(2024, 5, 31), METHOD)
    june = calculate_recurring_charges([charge], date(2024, 6, 1), date(2024, 6, 30), METHOD)
    assert may.total_amount == Decimal("1200.00")
    assert june.total_amount == Decimal("0.00")


def test_inactive_and_ended_charges_are_skipped():
    charges = [
        _charge(BillingFrequency.MONTHLY, date(2024, 1, 1), is_active=False),
        _charge(BillingFrequency.MONTHLY, date(2024, 1, 1), end=date(2024, 5, 31)),
    ]
    result = calculate_recurring_charges(charges, date(2024, 6, 1), date(2024, 6, 30), METHOD)
    assert result.line_items == []
    assert result.total_amount == Decimal("0.00")
