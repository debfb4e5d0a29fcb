"""Credit notes against issued invoices."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from backend.app.core.time import utc_now
from backend.app.models.credit_note import CreditNote, CreditNoteLine
from backend.app.models.enums import CREDITABLE_INVOICE_STATUSES, CreditNoteReason, CreditNoteStatus, InvoiceStatus
from backend.app.services.billing import check_row_version, commit_or_conflict, get_invoice, resolve_actor
from backend.app.services.numbering import next_credit_note_number
from backend.app.services.proration import quantize_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class CreditNoteLineRequest:
    invoice_line_id: int
    amount: Decimal
    notes: str | None = None


def credited_amounts(db: Session, invoice_line_ids: Iterable[int]) -> dict[int, Decimal]:
    """Amount already credited per invoice line, across all earlier credit notes."""
    ids = list(invoice_line_ids)
    if not ids:
        return {}
    rows = (
        db.query(CreditNoteLine.invoice_line_id, func.coalesce(func.sum(CreditNoteLine.total_amount), 0))
        .filter(CreditNoteLine.invoice_line_id.in_(ids))
        .group_by(CreditNoteLine.invoice_line_id)
        .all()
    )
    # Credit lines are stored negative
    return {line_id: -to_decimal(total) for line_id, total in rows}


def get_credit_note(db: Session, credit_note_id: int) -> CreditNote:
    credit_note = db.query(CreditNote).filter(CreditNote.id == credit_note_id).first()
    if credit_note is None:
        raise NotFoundError(f"Credit note {credit_note_id} was not found.")
    return credit_note


def create_credit_note(
    db: Session,
    invoice_id: int,
    reason,
    line_items: Iterable[CreditNoteLineRequest],
    notes: str | None = None,
    *,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> CreditNote:
    requests = list(line_items)
    if not requests:
        raise InvalidArgumentError("At least one line item is required for a credit note.")
    try:
        reason = CreditNoteReason(reason)
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown credit note reason '{reason}'.") from exc

    invoice = get_invoice(db, invoice_id)
    status = InvoiceStatus(invoice.status)
    if status not in CREDITABLE_INVOICE_STATUSES:
        raise InvalidStateError(
            f"Credit notes can only be created for issued, paid, partially paid or overdue invoices; "
            f"invoice {invoice.invoice_number} is {status.value}."
        )

    invoice_lines = {line.id: line for line in invoice.lines}
    already_credited = defaultdict(Decimal, credited_amounts(db, invoice_lines))
    actor = resolve_actor(actor)
    now = clock()

    credit_note = CreditNote(
        org_id=invoice.org_id,
        invoice_id=invoice.id,
        credit_note_date=now.date(),
        reason=reason,
        status=CreditNoteStatus.DRAFT,
        notes=notes,
        created_by=actor,
        created_at=now,
    )
    for number, request in enumerate(requests, start=1):
        invoice_line = invoice_lines.get(request.invoice_line_id)
        if invoice_line is None:
            raise InvalidArgumentError(
                f"Invoice line {request.invoice_line_id} does not belong to invoice {invoice.invoice_number}."
            )
        amount = quantize_money(to_decimal(request.amount))
        if amount <= 0:
            raise InvalidArgumentError("Credit note line amount must be positive.")
        line_total = to_decimal(invoice_line.total_amount)
        remaining = line_total - already_credited[invoice_line.id]
        if amount > remaining:
            raise InvalidArgumentError(
                f"Credit amount {amount} exceeds the remaining creditable amount {remaining} "
                f"of invoice line {invoice_line.line_number}."
            )
        already_credited[invoice_line.id] += amount

        # Split tax in the same proportion as the invoice line
        tax = Decimal("0.00")
        if line_total > 0:
            tax = quantize_money(amount * to_decimal(invoice_line.tax_amount) / line_total)
        base = amount - tax
        credit_note.lines.append(
            CreditNoteLine(
                invoice_line_id=invoice_line.id,
                line_number=number,
                description=f"Credit for: {invoice_line.description}",
                quantity=Decimal("1"),
                unit_price=-base,
                amount=-base,
                tax_amount=-tax,
                total_amount=-amount,
                notes=request.notes,
            )
        )

    credit_note.total_amount = sum((line.total_amount for line in credit_note.lines), Decimal("0.00"))
    db.add(credit_note)
    # Bumps the invoice row version so concurrent credit notes against it serialise
    invoice.touch(actor, now)
    commit_or_conflict(db, f"Invoice {invoice.invoice_number}")
    logger.info("Draft credit note %s created for invoice %s (%s)", credit_note.id, invoice.invoice_number, credit_note.total_amount)
    return credit_note


def issue_credit_note(
    db: Session,
    credit_note_id: int,
    *,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> CreditNote:
    credit_note = get_credit_note(db, credit_note_id)
    label = f"Credit note {credit_note.id}"
    check_row_version(credit_note, expected_row_version, label)
    if CreditNoteStatus(credit_note.status) is not CreditNoteStatus.DRAFT:
        raise InvalidStateError(f"Credit note {credit_note.credit_note_number} has already been issued.")
    if not credit_note.lines:
        raise InvalidStateError(f"{label} cannot be issued without line items.")

    now = clock()
    credit_note.credit_note_number = next_credit_note_number(db, credit_note.org_id)
    credit_note.status = CreditNoteStatus.ISSUED
    credit_note.issued_at = now
    credit_note.touch(resolve_actor(actor), now)
    commit_or_conflict(db, label)
    logger.info("Credit note %s issued", credit_note.credit_note_number)
    return credit_note
