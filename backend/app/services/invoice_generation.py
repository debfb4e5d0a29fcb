"""Draft invoice generation for a lease and billing period.

Generation is idempotent: a second call for the same lease and period rebuilds
the lines of the existing Draft instead of creating another invoice.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.models.charge_type import ChargeType
from backend.app.models.enums import UTILITY_CHARGE_CODES, ChargeTypeCode, InvoiceStatus, LeaseStatus
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_line import InvoiceLine
from backend.app.models.lease import Lease
from backend.app.models.utility import UtilityStatement
from backend.app.services.billing import (
    calculate_line_tax,
    commit_or_conflict,
    get_charge_type_by_code,
    recalculate_invoice_totals,
    resolve_actor,
)
from backend.app.services.numbering import next_invoice_number
from backend.app.services.proration import resolve_proration_method
from backend.app.services.recurring_charges import calculate_recurring_charges, load_active_charges
from backend.app.services.rent_calculation import calculate_rent, load_active_terms
from backend.app.services.utility_calculation import calculate_statement_amount

logger = logging.getLogger(__name__)


@dataclass
class InvoiceGenerationResult:
    invoice: Invoice
    was_updated: bool


@dataclass
class _PendingLine:
    charge_type: ChargeType
    description: str
    amount: Decimal
    statement: UtilityStatement | None = None


def find_draft_invoice(db: Session, lease_id: int, period_start: date, period_end: date) -> Invoice | None:
    return (
        db.query(Invoice)
        .filter(
            Invoice.lease_id == lease_id,
            Invoice.billing_period_start == period_start,
            Invoice.billing_period_end == period_end,
            Invoice.status == InvoiceStatus.DRAFT,
            Invoice.not_deleted(),
        )
        .first()
    )


def pending_utility_statements(db: Session, lease_id: int, period_start: date, period_end: date) -> List[UtilityStatement]:
    """Unbilled statements of the lease whose period ends inside the billing period."""
    return (
        db.query(UtilityStatement)
        .filter(
            UtilityStatement.lease_id == lease_id,
            UtilityStatement.invoice_line_id.is_(None),
            UtilityStatement.billing_period_end >= period_start,
            UtilityStatement.billing_period_end <= period_end,
            UtilityStatement.not_deleted(),
        )
        .order_by(UtilityStatement.billing_period_end, UtilityStatement.id)
        .all()
    )


def _rent_lines(db, lease, period_start, period_end, method) -> List[_PendingLine]:
    rent = calculate_rent(load_active_terms(db, lease.id), period_start, period_end, method)
    if not rent.line_items:
        return []
    rent_type = get_charge_type_by_code(db, ChargeTypeCode.RENT, lease.org_id)
    if rent_type is None:
        raise InvalidStateError("RENT charge type was not found.")
    return [_PendingLine(rent_type, item.description, item.amount) for item in rent.line_items]


def _recurring_lines(db, lease, period_start, period_end, method) -> List[_PendingLine]:
    charges = calculate_recurring_charges(load_active_charges(db, lease.id), period_start, period_end, method)
    type_ids = {item.charge_type_id for item in charges.line_items}
    charge_types = {}
    if type_ids:
        charge_types = {
            charge_type.id: charge_type
            for charge_type in db.query(ChargeType)
            .filter(ChargeType.id.in_(type_ids), ChargeType.not_deleted())
            .all()
        }

    lines = []
    for item in charges.line_items:
        charge_type = charge_types.get(item.charge_type_id)
        if charge_type is None:
            logger.warning(
                "Charge type %s not found for lease %s; skipped recurring charge '%s' of %s",
                item.charge_type_id,
                lease.id,
                item.description,
                item.amount,
            )
            continue
        lines.append(_PendingLine(charge_type, item.description, item.amount))
    return lines


def _utility_lines(db, lease, period_start, period_end) -> List[_PendingLine]:
    lines = []
    for statement in pending_utility_statements(db, lease.id, period_start, period_end):
        result = calculate_statement_amount(db, statement)
        statement.calculated_amount = result.total_amount
        code = UTILITY_CHARGE_CODES[result.utility_type]
        charge_type = get_charge_type_by_code(db, code, lease.org_id)
        if charge_type is None:
            raise InvalidStateError(f"{code.value} charge type was not found.")
        description = (
            f"{result.description} ({statement.billing_period_start:%b %d} - "
            f"{statement.billing_period_end:%b %d, %Y})"
        )
        lines.append(_PendingLine(charge_type, description, result.total_amount, statement))
    return lines


def _attach_lines(invoice: Invoice, pending: List[_PendingLine], actor: str) -> None:
    # Numbered only once every line is known
    for number, item in enumerate(pending, start=1):
        tax_rate, tax_amount = calculate_line_tax(item.amount, item.charge_type)
        line = InvoiceLine(
            charge_type=item.charge_type,
            line_number=number,
            description=item.description,
            quantity=Decimal("1"),
            unit_price=item.amount,
            amount=item.amount,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            total_amount=item.amount + tax_amount,
            created_by=actor,
        )
        invoice.lines.append(line)
        if item.statement is not None:
            item.statement.invoice_line = line


def _release_statements(db: Session, invoice: Invoice) -> None:
    line_ids = [line.id for line in invoice.lines if line.id is not None]
    if not line_ids:
        return
    for statement in db.query(UtilityStatement).filter(UtilityStatement.invoice_line_id.in_(line_ids)).all():
        statement.invoice_line = None
    db.flush()


def _populate(db, invoice, lease, billing_setting, period_start, period_end, method, term_days, actor):
    invoice.invoice_date = period_end
    invoice.due_date = period_end + timedelta(days=term_days or 0)
    if billing_setting and billing_setting.payment_instructions:
        invoice.payment_instructions = billing_setting.payment_instructions

    pending = _rent_lines(db, lease, period_start, period_end, method)
    pending += _recurring_lines(db, lease, period_start, period_end, method)
    pending += _utility_lines(db, lease, period_start, period_end)
    _attach_lines(invoice, pending, actor)
    recalculate_invoice_totals(invoice)


def _generate_once(db, lease_id, period_start, period_end, proration_method, actor, clock, commit):
    settings = get_settings()
    lease = db.query(Lease).filter(Lease.id == lease_id, Lease.not_deleted()).first()
    if lease is None:
        raise NotFoundError(f"Lease {lease_id} was not found.")
    if LeaseStatus(lease.status) is not LeaseStatus.ACTIVE:
        raise InvalidStateError(f"Lease {lease.display_name} is not active (status: {LeaseStatus(lease.status).value}).")

    billing_setting = lease.billing_setting
    method = resolve_proration_method(
        proration_method
        or (billing_setting.proration_method if billing_setting else None)
        or settings.default_proration_method
    )
    term_days = billing_setting.payment_term_days if billing_setting else settings.default_payment_term_days
    now = clock()
    args = (lease, billing_setting, period_start, period_end, method, term_days, actor)

    invoice = find_draft_invoice(db, lease.id, period_start, period_end)
    was_updated = invoice is not None
    if was_updated:
        _release_statements(db, invoice)
        invoice.lines.clear()
        db.flush()
        invoice.touch(actor, now)
        _populate(db, invoice, *args)
    else:
        # The partial unique index rejects a second Draft for the same period
        with db.begin_nested():
            prefix = billing_setting.invoice_prefix if billing_setting else None
            invoice = Invoice(
                org_id=lease.org_id,
                lease_id=lease.id,
                invoice_number=next_invoice_number(db, lease.org_id, prefix),
                billing_period_start=period_start,
                billing_period_end=period_end,
                status=InvoiceStatus.DRAFT,
                paid_amount=Decimal("0.00"),
                created_by=actor,
                created_at=now,
            )
            _populate(db, invoice, *args)
            db.add(invoice)

    commit_or_conflict(db, f"Invoice {invoice.invoice_number}", commit=commit)
    return InvoiceGenerationResult(invoice=invoice, was_updated=was_updated)


def generate_invoice(
    db: Session,
    lease_id: int,
    period_start: date,
    period_end: date,
    proration_method=None,
    *,
    actor: str | None = None,
    clock: Callable = utc_now,
    commit: bool = True,
) -> InvoiceGenerationResult:
    if period_end < period_start:
        raise InvalidArgumentError("Billing period end cannot be before start.")
    actor = resolve_actor(actor)
    try:
        return _generate_once(db, lease_id, period_start, period_end, proration_method, actor, clock, commit)
    except IntegrityError:
        # A concurrent writer created the Draft (or took the number) first; retry once
        logger.info("Draft invoice for lease %s %s..%s already exists, retrying as update", lease_id, period_start, period_end)
        return _generate_once(db, lease_id, period_start, period_end, proration_method, actor, clock, commit)
