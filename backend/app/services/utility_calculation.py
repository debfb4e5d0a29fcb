"""Utility charges: direct amount, metered flat rate, or metered slab rate."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from backend.app.models.enums import UtilityType
from backend.app.models.utility import UtilityRatePlan, UtilityRateSlab, UtilityStatement
from backend.app.services.proration import quantize_money, to_decimal


@dataclass
class UtilitySlabLineItem:
    from_units: Decimal
    to_units: Decimal
    units_in_slab: Decimal
    rate_per_unit: Decimal
    amount: Decimal
    fixed_charge: Decimal | None = None


@dataclass
class UtilityCalculationResult:
    utility_type: UtilityType
    is_meter_based: bool
    total_amount: Decimal
    description: str
    units_consumed: Decimal | None = None
    slab_breakdown: List[UtilitySlabLineItem] = field(default_factory=list)


def _utility_label(utility_type) -> str:
    return UtilityType(utility_type).value


def calculate_amount_based(amount, utility_type) -> UtilityCalculationResult:
    amount = to_decimal(amount)
    if amount < 0:
        raise InvalidArgumentError("Amount cannot be negative.")
    return UtilityCalculationResult(
        utility_type=UtilityType(utility_type),
        is_meter_based=False,
        total_amount=quantize_money(amount),
        description=f"{_utility_label(utility_type)} - Direct billing",
    )


def calculate_meter_flat_rate(units_consumed, rate_per_unit, fixed_charge, utility_type) -> UtilityCalculationResult:
    units = to_decimal(units_consumed)
    rate = to_decimal(rate_per_unit)
    fixed = to_decimal(fixed_charge)
    if units < 0:
        raise InvalidArgumentError("Units consumed cannot be negative.")
    if rate < 0:
        raise InvalidArgumentError("Rate per unit cannot be negative.")
    if fixed < 0:
        raise InvalidArgumentError("Fixed charge cannot be negative.")

    consumption_charge = units * rate
    return UtilityCalculationResult(
        utility_type=UtilityType(utility_type),
        is_meter_based=True,
        units_consumed=units,
        total_amount=quantize_money(consumption_charge + fixed),
        description=f"{_utility_label(utility_type)} - {units} units @ {rate}/unit",
        slab_breakdown=[
            UtilitySlabLineItem(
                from_units=Decimal("0"),
                to_units=units,
                units_in_slab=units,
                rate_per_unit=rate,
                amount=quantize_money(consumption_charge),
                fixed_charge=fixed if fixed > 0 else None,
            )
        ],
    )


def calculate_slab_breakdown(units_consumed, slabs: Iterable[UtilityRateSlab]) -> tuple[Decimal, List[UtilitySlabLineItem]]:
    """Split consumption across ordered slabs; only the first slab's fixed charge applies.

    Each slab covers ``[from_units, to_units)``; a ``to_units`` of None is unbounded.
    """
    units = to_decimal(units_consumed)
    if units < 0:
        raise InvalidArgumentError("Units consumed cannot be negative.")

    total = Decimal("0")
    breakdown: List[UtilitySlabLineItem] = []
    for index, slab in enumerate(sorted(slabs, key=lambda s: s.slab_order)):
        from_units = to_decimal(slab.from_units)
        upper = units if slab.to_units is None else min(units, to_decimal(slab.to_units))
        units_in_slab = max(Decimal("0"), upper - from_units)
        rate = to_decimal(slab.rate_per_unit)
        slab_amount = units_in_slab * rate
        fixed = to_decimal(slab.fixed_charge) if index == 0 and slab.fixed_charge else None
        if units_in_slab <= 0 and fixed is None:
            continue
        total += slab_amount + (fixed or Decimal("0"))
        breakdown.append(
            UtilitySlabLineItem(
                from_units=from_units,
                to_units=upper,
                units_in_slab=units_in_slab,
                rate_per_unit=rate,
                amount=quantize_money(slab_amount),
                fixed_charge=fixed,
            )
        )
    return quantize_money(total), breakdown


def calculate_meter_slabs(db: Session, units_consumed, rate_plan_id: int, utility_type) -> UtilityCalculationResult:
    plan = (
        db.query(UtilityRatePlan)
        .filter(UtilityRatePlan.id == rate_plan_id, UtilityRatePlan.not_deleted())
        .first()
    )
    if plan is None:
        raise NotFoundError(f"Utility rate plan {rate_plan_id} was not found.")
    if not plan.is_active:
        raise InvalidStateError(f"Utility rate plan {rate_plan_id} is not active.")
    if not plan.slabs:
        raise InvalidStateError(f"Utility rate plan {rate_plan_id} has no rate slabs defined.")

    total, breakdown = calculate_slab_breakdown(units_consumed, plan.slabs)
    units = to_decimal(units_consumed)
    return UtilityCalculationResult(
        utility_type=UtilityType(utility_type),
        is_meter_based=True,
        units_consumed=units,
        total_amount=total,
        description=f"{_utility_label(utility_type)} - {units} units (Slab-based)",
        slab_breakdown=breakdown,
    )


def calculate_statement_amount(db: Session, statement: UtilityStatement) -> UtilityCalculationResult:
    """Price a utility statement with whichever method its data supports."""
    if statement.is_meter_based:
        units = statement.consumption
        if units is None:
            raise InvalidArgumentError(f"Utility statement {statement.id} has no meter consumption.")
        if statement.rate_plan_id is not None:
            return calculate_meter_slabs(db, units, statement.rate_plan_id, statement.utility_type)
        if statement.rate_per_unit is not None:
            return calculate_meter_flat_rate(
                units, statement.rate_per_unit, statement.fixed_charge, statement.utility_type
            )
    if statement.direct_bill_amount is None:
        raise InvalidArgumentError(f"Utility statement {statement.id} has no billable amount.")
    return calculate_amount_based(statement.direct_bill_amount, statement.utility_type)
