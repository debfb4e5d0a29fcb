"""Rent due for a billing period from effective-dated lease terms."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, NotFoundError
from backend.app.models.lease import Lease, LeaseTerm
from backend.app.services.proration import clip_range, get_proration_calculator, to_decimal


@dataclass
class RentLineItem:
    lease_term_id: int | None
    period_start: date
    period_end: date
    full_monthly_rent: Decimal
    amount: Decimal
    is_prorated: bool
    description: str


@dataclass
class RentCalculationResult:
    total_amount: Decimal = Decimal("0.00")
    line_items: List[RentLineItem] = field(default_factory=list)


def _rent_description(start: date, end: date, is_prorated: bool) -> str:
    if is_prorated:
        return f"Rent for {start:%b %d} - {end:%b %d, %Y} (Prorated)"
    return f"Rent for {start:%b %Y}"


def calculate_rent(
    terms: Iterable[LeaseTerm],
    period_start: date,
    period_end: date,
    method,
) -> RentCalculationResult:
    """Compute rent from already-loaded terms; lease status is not consulted."""
    if period_end < period_start:
        raise InvalidArgumentError("Billing period end cannot be before start.")

    calculator = get_proration_calculator(method)
    result = RentCalculationResult()
    for term in sorted(terms, key=lambda t: t.effective_from):
        window = clip_range(term.effective_from, term.effective_to or period_end, period_start, period_end)
        if window is None:
            continue
        monthly_rent = to_decimal(term.monthly_rent)
        is_prorated = window.start != period_start or window.end != period_end
        amount = calculator.calculate(monthly_rent, window.start, window.end, period_start, period_end)
        result.line_items.append(
            RentLineItem(
                lease_term_id=term.id,
                period_start=window.start,
                period_end=window.end,
                full_monthly_rent=monthly_rent,
                amount=amount,
                is_prorated=is_prorated,
                description=_rent_description(window.start, window.end, is_prorated),
            )
        )
        result.total_amount += amount
    return result


def load_active_terms(db: Session, lease_id: int) -> List[LeaseTerm]:
    return (
        db.query(LeaseTerm)
        .filter(LeaseTerm.lease_id == lease_id, LeaseTerm.not_deleted())
        .order_by(LeaseTerm.effective_from)
        .all()
    )


def calculate_rent_for_lease(
    db: Session,
    lease_id: int,
    period_start: date,
    period_end: date,
    method,
) -> RentCalculationResult:
    lease = db.query(Lease).filter(Lease.id == lease_id, Lease.not_deleted()).first()
    if lease is None:
        raise NotFoundError(f"Lease {lease_id} was not found.")
    return calculate_rent(load_active_terms(db, lease_id), period_start, period_end, method)
