import pytest
from datetime import date
from decimal import Decimal

from backend.app.core.errors import InvalidArgumentError
from backend.app.models.enums import ProrationMethod
from backend.app.services.proration import calculate_proration, clip_range, resolve_proration_method


JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


def test_thirty_day_month_partial_period():
    amount = calculate_proration(
        Decimal("3000"), date(2024, 1, 10), JAN_END, JAN_START, JAN_END, ProrationMethod.THIRTY_DAY_MONTH
    )
    assert amount == Decimal("2200.00")


def test_actual_days_partial_period():
    amount = calculate_proration(Decimal("3100"), date(2024, 1, 10), JAN_END, JAN_START, JAN_END)
    assert amount == Decimal("2200.00")


def test_full_period_returns_full_amount_for_both_methods():
    for method in ProrationMethod:
        assert calculate_proration(Decimal("1234.5"), JAN_START, JAN_END, JAN_START, JAN_END, method) == Decimal("1234.50")


def test_range_wider_than_period_is_clipped_to_full_amount():
    amount = calculate_proration(Decimal("900"), date(2023, 12, 1), date(2024, 3, 1), JAN_START, JAN_END)
    assert amount == Decimal("900.00")


def test_no_overlap_returns_zero():
    amount = calculate_proration(Decimal("900"), date(2024, 2, 1), date(2024, 2, 10), JAN_START, JAN_END)
    assert amount == Decimal("0.00")


def test_thirty_day_month_never_exceeds_full_amount():
    # 31-day period, range covers 30 of them
    amount = calculate_proration(
        Decimal("3000"), date(2024, 1, 2), JAN_END, JAN_START, JAN_END, ProrationMethod.THIRTY_DAY_MONTH
    )
    assert amount == Decimal("3000.00")


def test_result_is_rounded_to_cents():
    amount = calculate_proration(Decimal("1000"), date(2024, 1, 1), date(2024, 1, 10), JAN_START, JAN_END)
    assert amount == Decimal("322.58")


@pytest.mark.parametrize(
    "args",
    [
        (Decimal("-1"), JAN_START, JAN_END, JAN_START, JAN_END),
        (Decimal("100"), JAN_END, JAN_START, JAN_START, JAN_END),
        (Decimal("100"), JAN_START, JAN_END, JAN_END, JAN_START),
    ],
)
def test_invalid_arguments_are_rejected(args):
    with pytest.raises(InvalidArgumentError):
        calculate_proration(*args)


def test_unknown_method_is_invalid_argument():
    with pytest.raises(InvalidArgumentError):
        resolve_proration_method("Weekly")
    assert resolve_proration_method("ThirtyDayMonth") is ProrationMethod.THIRTY_DAY_MONTH


def test_clip_range_days_are_inclusive():
    clipped = clip_range(date(2024, 1, 10), date(2024, 2, 5), JAN_START, JAN_END)
    assert clipped.start == date(2024, 1, 10)
    assert clipped.end == JAN_END
    assert clipped.days == 22
    assert clip_range(date(2024, 2, 1), date(2024, 2, 5), JAN_START, JAN_END) is None
