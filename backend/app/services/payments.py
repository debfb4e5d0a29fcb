"""Payment recording against invoice balances.

Only Completed payments move an invoice's paid and balance amounts. Every
mutation commits under the invoice's row version; a concurrent writer turns
into a ConflictError that the caller may retry once with fresh data.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import BinaryIO, Callable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from backend.app.core.settings import get_settings
from backend.app.core.storage import PAYMENT_RECEIPTS_FOLDER, FileStorage
from backend.app.core.time import as_utc, utc_now
from backend.app.models.enums import PaymentMode, PaymentStatus, PaymentType
from backend.app.models.file_metadata import FileMetadata
from backend.app.models.payment import Payment, PaymentAttachment
from backend.app.services.billing import (
    apply_payment_to_invoice,
    check_row_version,
    commit_or_conflict,
    ensure_invoice_accepts_payments,
    get_invoice,
    resolve_actor,
    sum_completed_payments,
)
from backend.app.services.proration import quantize_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class RecordPaymentResult:
    payment_id: int
    payment_status: PaymentStatus
    invoice_balance: Decimal


def initial_payment_status(mode: PaymentMode) -> PaymentStatus:
    """Online payments wait for gateway or manager confirmation; everything else is final."""
    if mode is PaymentMode.ONLINE:
        return PaymentStatus.PENDING
    return PaymentStatus.COMPLETED


def validate_against_balance(amount: Decimal, balance: Decimal) -> None:
    if amount > balance:
        raise InvalidArgumentError(f"Payment amount {amount} exceeds remaining balance {balance}.")


def record_payment(
    db: Session,
    invoice_id: int,
    mode,
    amount,
    payment_date: datetime | date,
    *,
    transaction_reference: str | None = None,
    payer_name: str | None = None,
    notes: str | None = None,
    payment_type=PaymentType.RENT,
    gateway_transaction_id: str | None = None,
    gateway_name: str | None = None,
    metadata: str | None = None,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> RecordPaymentResult:
    invoice = get_invoice(db, invoice_id)
    label = f"Invoice {invoice.invoice_number}"
    check_row_version(invoice, expected_row_version, label)
    ensure_invoice_accepts_payments(invoice)

    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidArgumentError("Payment amount must be greater than zero.")
    amount = quantize_money(amount)
    mode = PaymentMode(mode)
    if mode is not PaymentMode.CASH and not (transaction_reference or "").strip():
        raise InvalidArgumentError("Transaction reference is required for non-cash payments.")

    total_paid = sum_completed_payments(db, invoice.id)
    validate_against_balance(amount, to_decimal(invoice.total_amount) - total_paid)

    actor = resolve_actor(actor)
    now = clock()
    status = initial_payment_status(mode)
    payment = Payment(
        org_id=invoice.org_id,
        invoice_id=invoice.id,
        lease_id=invoice.lease_id,
        payment_type=PaymentType(payment_type),
        payment_mode=mode,
        status=status,
        amount=amount,
        payment_date=as_utc(payment_date),
        transaction_reference=transaction_reference,
        gateway_transaction_id=gateway_transaction_id,
        gateway_name=gateway_name,
        payer_name=payer_name,
        received_by=actor,
        notes=notes,
        payment_metadata=metadata,
        created_by=actor,
        created_at=now,
    )
    db.add(payment)
    if status is PaymentStatus.COMPLETED:
        apply_payment_to_invoice(invoice, amount, now, already_paid=total_paid)
        invoice.touch(actor, now)

    commit_or_conflict(db, label)
    logger.info(
        "Recorded %s %s payment %s of %s on %s; balance now %s",
        status.value,
        mode.value,
        payment.id,
        amount,
        invoice.invoice_number,
        invoice.balance_amount,
    )
    return RecordPaymentResult(payment_id=payment.id, payment_status=status, invoice_balance=invoice.balance_amount)


def record_cash_payment(db: Session, invoice_id: int, amount, payment_date, **kwargs) -> RecordPaymentResult:
    return record_payment(db, invoice_id, PaymentMode.CASH, amount, payment_date, **kwargs)


def record_online_payment(
    db: Session,
    invoice_id: int,
    amount,
    payment_date,
    transaction_reference: str,
    **kwargs,
) -> RecordPaymentResult:
    return record_payment(
        db,
        invoice_id,
        PaymentMode.ONLINE,
        amount,
        payment_date,
        transaction_reference=transaction_reference,
        **kwargs,
    )


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} was not found.")
    return payment


def _ensure_pending(payment: Payment) -> None:
    status = PaymentStatus(payment.status)
    if status is not PaymentStatus.PENDING:
        raise InvalidStateError(f"Payment {payment.id} is {status.value}; only Pending payments can be reviewed.")


def confirm_pending_payment(
    db: Session,
    payment_id: int,
    notes: str | None = None,
    *,
    gateway_transaction_id: str | None = None,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> RecordPaymentResult:
    """Complete a Pending payment once the gateway or a manager confirms it."""
    payment = get_payment(db, payment_id)
    check_row_version(payment, expected_row_version, f"Payment {payment.id}")
    _ensure_pending(payment)

    invoice = get_invoice(db, payment.invoice_id)
    ensure_invoice_accepts_payments(invoice)
    total_paid = sum_completed_payments(db, invoice.id)
    amount = to_decimal(payment.amount)
    validate_against_balance(amount, to_decimal(invoice.total_amount) - total_paid)

    actor = resolve_actor(actor)
    now = clock()
    payment.status = PaymentStatus.COMPLETED
    if gateway_transaction_id:
        payment.gateway_transaction_id = gateway_transaction_id
    if notes:
        payment.notes = f"{payment.notes}\n{notes}" if payment.notes else notes
    payment.touch(actor, now)
    apply_payment_to_invoice(invoice, amount, now, already_paid=total_paid)
    invoice.touch(actor, now)

    commit_or_conflict(db, f"Invoice {invoice.invoice_number}")
    logger.info("Pending payment %s confirmed by %s", payment.id, actor)
    return RecordPaymentResult(payment_id=payment.id, payment_status=PaymentStatus.COMPLETED, invoice_balance=invoice.balance_amount)


def reject_pending_payment(
    db: Session,
    payment_id: int,
    reason: str,
    *,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> Payment:
    if not reason or not reason.strip():
        raise InvalidArgumentError("A rejection reason is required.")
    payment = get_payment(db, payment_id)
    check_row_version(payment, expected_row_version, f"Payment {payment.id}")
    _ensure_pending(payment)

    payment.status = PaymentStatus.REJECTED
    rejection = f"Rejected: {reason.strip()}"
    payment.notes = f"{payment.notes}\n{rejection}" if payment.notes else rejection
    payment.touch(resolve_actor(actor), clock())
    commit_or_conflict(db, f"Payment {payment.id}")
    logger.info("Pending payment %s rejected", payment.id)
    return payment


def add_payment_attachment(
    db: Session,
    payment_id: int,
    stream: BinaryIO,
    filename: str,
    content_type: str,
    size: int,
    storage: FileStorage,
    *,
    attachment_type: str = "Receipt",
    description: str | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> tuple[PaymentAttachment, str]:
    """Store a receipt for a payment and return the attachment with a signed download URL."""
    settings = get_settings()
    if not filename:
        raise InvalidArgumentError("A file name is required.")
    if size <= 0:
        raise InvalidArgumentError("The uploaded file is empty.")
    if size > settings.max_attachment_bytes:
        limit_mb = settings.max_attachment_bytes // (1024 * 1024)
        raise InvalidArgumentError(f"File size exceeds the maximum allowed size of {limit_mb}MB.")

    payment = get_payment(db, payment_id)
    actor = resolve_actor(actor)
    now = clock()
    storage_key = storage.upload(stream, filename, content_type, PAYMENT_RECEIPTS_FOLDER)

    file = FileMetadata(
        org_id=payment.org_id,
        storage_key=storage_key,
        file_name=filename,
        content_type=content_type,
        size_bytes=size,
        created_by=actor,
        created_at=now,
    )
    last_order = (
        db.query(func.max(PaymentAttachment.display_order))
        .filter(PaymentAttachment.payment_id == payment.id)
        .scalar()
    )
    attachment = PaymentAttachment(
        payment=payment,
        file=file,
        attachment_type=attachment_type,
        description=description,
        display_order=(last_order or 0) + 1,
        created_by=actor,
        created_at=now,
    )
    db.add(attachment)
    db.commit()
    return attachment, storage.generate_signed_url(storage_key, settings.signed_url_expiry_minutes)


def list_payments(
    db: Session,
    org_id: int,
    *,
    invoice_id: int | None = None,
    lease_id: int | None = None,
    status: PaymentStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> List[Payment]:
    query = db.query(Payment).filter(Payment.org_id == org_id)
    if invoice_id is not None:
        query = query.filter(Payment.invoice_id == invoice_id)
    if lease_id is not None:
        query = query.filter(Payment.lease_id == lease_id)
    if status is not None:
        query = query.filter(Payment.status == status)
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).offset(skip).limit(limit).all()
