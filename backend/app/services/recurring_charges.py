"""Per-lease recurring charges (parking, maintenance, internet, ...) for a billing period."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError
from backend.app.models.enums import BillingFrequency
from backend.app.models.recurring_charge import LeaseRecurringCharge
from backend.app.services.proration import clip_range, get_proration_calculator, quantize_money, to_decimal

_MONTHS_BETWEEN_BILLINGS = {
    BillingFrequency.QUARTERLY: 3,
    BillingFrequency.YEARLY: 12,
}


@dataclass
class RecurringChargeLineItem:
    charge_id: int | None
    charge_type_id: int
    description: str
    period_start: date
    period_end: date
    full_amount: Decimal
    amount: Decimal
    is_prorated: bool
    frequency: BillingFrequency


@dataclass
class RecurringChargeCalculationResult:
    total_amount: Decimal = Decimal("0.00")
    line_items: List[RecurringChargeLineItem] = field(default_factory=list)


def _months_since(start: date, current: date) -> int:
    return (current.year - start.year) * 12 + (current.month - start.month)


def _charge_line(charge, window_start, window_end, amount, is_prorated) -> RecurringChargeLineItem:
    return RecurringChargeLineItem(
        charge_id=charge.id,
        charge_type_id=charge.charge_type_id,
        description=charge.description,
        period_start=window_start,
        period_end=window_end,
        full_amount=to_decimal(charge.amount),
        amount=amount,
        is_prorated=is_prorated,
        frequency=BillingFrequency(charge.frequency),
    )


def _line_for_charge(charge, period_start: date, period_end: date, calculator) -> RecurringChargeLineItem | None:
    frequency = BillingFrequency(charge.frequency)
    full_amount = to_decimal(charge.amount)

    if frequency is BillingFrequency.ONE_TIME:
        if not period_start <= charge.start_date <= period_end:
            return None
        return _charge_line(charge, charge.start_date, charge.start_date, quantize_money(full_amount), False)

    window = clip_range(charge.start_date, charge.end_date or period_end, period_start, period_end)
    if window is None:
        return None

    if frequency is BillingFrequency.MONTHLY:
        is_prorated = window.start != period_start or window.end != period_end
        amount = calculator.calculate(full_amount, window.start, window.end, period_start, period_end)
        return _charge_line(charge, window.start, window.end, amount, is_prorated)

    # Quarterly and yearly charges fall due in whole on their cycle month
    months = _months_since(charge.start_date, period_start)
    if months < 0 or months % _MONTHS_BETWEEN_BILLINGS[frequency] != 0:
        return None
    return _charge_line(charge, window.start, window.end, quantize_money(full_amount), False)


def calculate_recurring_charges(
    charges: Iterable[LeaseRecurringCharge],
    period_start: date,
    period_end: date,
    method,
) -> RecurringChargeCalculationResult:
    if period_end < period_start:
        raise InvalidArgumentError("Billing period end cannot be before start.")

    calculator = get_proration_calculator(method)
    result = RecurringChargeCalculationResult()
    for charge in charges:
        if charge.is_active is False:
            continue
        line = _line_for_charge(charge, period_start, period_end, calculator)
        if line is None:
            continue
        result.line_items.append(line)
        result.total_amount += line.amount
    return result


def load_active_charges(db: Session, lease_id: int) -> List[LeaseRecurringCharge]:
    return (
        db.query(LeaseRecurringCharge)
        .filter(
            LeaseRecurringCharge.lease_id == lease_id,
            LeaseRecurringCharge.is_active.is_(True),
            LeaseRecurringCharge.not_deleted(),
        )
        .order_by(LeaseRecurringCharge.start_date, LeaseRecurringCharge.id)
        .all()
    )


def calculate_recurring_charges_for_lease(
    db: Session,
    lease_id: int,
    period_start: date,
    period_end: date,
    method,
) -> RecurringChargeCalculationResult:
    return calculate_recurring_charges(load_active_charges(db, lease_id), period_start, period_end, method)
