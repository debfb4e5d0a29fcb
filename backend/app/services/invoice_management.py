"""Invoice lifecycle: issue a Draft, void anything not already terminal."""

import logging
from typing import Callable, List

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, InvalidStateError
from backend.app.core.time import utc_now
from backend.app.models.enums import TERMINAL_INVOICE_STATUSES, InvoiceStatus
from backend.app.models.invoice import Invoice
from backend.app.services.billing import check_row_version, commit_or_conflict, get_invoice, resolve_actor

logger = logging.getLogger(__name__)


def issue_invoice(
    db: Session,
    invoice_id: int,
    *,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    label = f"Invoice {invoice.invoice_number}"
    check_row_version(invoice, expected_row_version, label)

    status = InvoiceStatus(invoice.status)
    if status is not InvoiceStatus.DRAFT:
        raise InvalidStateError(f"{label} cannot be issued from status {status.value}; only Draft invoices can be issued.")
    if not invoice.lines:
        raise InvalidStateError(f"{label} cannot be issued without line items.")
    if invoice.total_amount is None or invoice.total_amount <= 0:
        raise InvalidStateError(f"{label} cannot be issued with a zero or negative total amount.")

    now = clock()
    invoice.status = InvoiceStatus.ISSUED
    invoice.issued_at = now
    invoice.touch(resolve_actor(actor), now)
    commit_or_conflict(db, label)
    logger.info("%s issued by %s", label, invoice.modified_by)
    return invoice


def void_invoice(
    db: Session,
    invoice_id: int,
    reason: str,
    *,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> Invoice:
    if not reason or not reason.strip():
        raise InvalidArgumentError("Void reason is required.")
    invoice = get_invoice(db, invoice_id)
    label = f"Invoice {invoice.invoice_number}"
    check_row_version(invoice, expected_row_version, label)

    status = InvoiceStatus(invoice.status)
    if status in TERMINAL_INVOICE_STATUSES:
        raise InvalidStateError(f"{label} is already {status.value} and cannot be voided.")

    now = clock()
    invoice.status = InvoiceStatus.VOIDED
    invoice.voided_at = now
    invoice.void_reason = reason.strip()
    invoice.touch(resolve_actor(actor), now)
    commit_or_conflict(db, label)
    logger.info("%s voided by %s: %s", label, invoice.modified_by, invoice.void_reason)
    return invoice


def list_invoices(
    db: Session,
    org_id: int,
    *,
    lease_id: int | None = None,
    status: InvoiceStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> List[Invoice]:
    query = db.query(Invoice).filter(Invoice.org_id == org_id, Invoice.not_deleted())
    if lease_id is not None:
        query = query.filter(Invoice.lease_id == lease_id)
    if status is not None:
        query = query.filter(Invoice.status == status)
    return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).offset(skip).limit(limit).all()
