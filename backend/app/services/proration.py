"""Proration of full-period amounts over partial date ranges."""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from backend.app.core.errors import InvalidArgumentError
from backend.app.models.enums import ProrationMethod

CENTS = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class ClippedRange:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def clip_range(start_date: date, end_date: date, period_start: date, period_end: date) -> ClippedRange | None:
    """Intersect [start_date, end_date] with the billing period; None when they do not overlap."""
    start = max(start_date, period_start)
    end = min(end_date, period_end)
    if end < start:
        return None
    return ClippedRange(start, end)


class _ProrationCalculator:
    method: ProrationMethod

    def calculate(
        self,
        full_amount,
        start_date: date,
        end_date: date,
        billing_period_start: date,
        billing_period_end: date,
    ) -> Decimal:
        amount = to_decimal(full_amount)
        if amount < 0:
            raise InvalidArgumentError("Full amount cannot be negative.")
        if end_date < start_date:
            raise InvalidArgumentError("End date must be on or after start date.")
        if billing_period_end < billing_period_start:
            raise InvalidArgumentError("Billing period end must be on or after billing period start.")

        clipped = clip_range(start_date, end_date, billing_period_start, billing_period_end)
        if clipped is None:
            return Decimal("0.00")
        if clipped.start == billing_period_start and clipped.end == billing_period_end:
            return quantize_money(amount)

        period_days = (billing_period_end - billing_period_start).days + 1
        return quantize_money(self._prorate(amount, clipped.days, period_days))

    def _prorate(self, amount: Decimal, days_used: int, period_days: int) -> Decimal:
        raise NotImplementedError


class ActualDaysInMonthCalculator(_ProrationCalculator):
    """Scale by the share of days used within the billing period itself."""

    method = ProrationMethod.ACTUAL_DAYS_IN_MONTH

    def _prorate(self, amount: Decimal, days_used: int, period_days: int) -> Decimal:
        return amount * Decimal(days_used) / Decimal(period_days)


class ThirtyDayMonthCalculator(_ProrationCalculator):
    """Scale by days used over a fixed 30-day month, capped at the full amount."""

    method = ProrationMethod.THIRTY_DAY_MONTH

    def _prorate(self, amount: Decimal, days_used: int, period_days: int) -> Decimal:
        return amount * Decimal(min(days_used, 30)) / Decimal(30)


_CALCULATORS = {
    ProrationMethod.ACTUAL_DAYS_IN_MONTH: ActualDaysInMonthCalculator(),
    ProrationMethod.THIRTY_DAY_MONTH: ThirtyDayMonthCalculator(),
}


def resolve_proration_method(method) -> ProrationMethod:
    if isinstance(method, ProrationMethod):
        return method
    try:
        return ProrationMethod(method)
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown proration method '{method}'.") from exc


def get_proration_calculator(method) -> _ProrationCalculator:
    return _CALCULATORS[resolve_proration_method(method)]


def calculate_proration(
    full_amount,
    start_date: date,
    end_date: date,
    billing_period_start: date,
    billing_period_end: date,
    method=ProrationMethod.ACTUAL_DAYS_IN_MONTH,
) -> Decimal:
    return get_proration_calculator(method).calculate(
        full_amount, start_date, end_date, billing_period_start, billing_period_end
    )
