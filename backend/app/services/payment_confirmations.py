"""Tenant-submitted payment claims reviewed by a manager.

A request is created Pending and moves exactly once, to Confirmed (which records
a Completed cash payment) or to Rejected.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import BinaryIO, Callable, List

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from backend.app.core.settings import get_settings
from backend.app.core.storage import PAYMENT_PROOFS_FOLDER, FileStorage
from backend.app.core.time import as_utc, utc_now
from backend.app.models.enums import PaymentConfirmationStatus, PaymentMode, PaymentStatus, PaymentType
from backend.app.models.file_metadata import FileMetadata
from backend.app.models.payment import Payment
from backend.app.models.payment_confirmation import PaymentConfirmationRequest
from backend.app.services.billing import (
    apply_payment_to_invoice,
    check_row_version,
    commit_or_conflict,
    ensure_invoice_accepts_payments,
    get_invoice,
    resolve_actor,
    sum_completed_payments,
)
from backend.app.services.payments import validate_against_balance
from backend.app.services.proration import quantize_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class ProofFile:
    stream: BinaryIO
    filename: str
    content_type: str | None
    size: int


def get_confirmation_request(db: Session, request_id: int) -> PaymentConfirmationRequest:
    request = db.query(PaymentConfirmationRequest).filter(PaymentConfirmationRequest.id == request_id).first()
    if request is None:
        raise NotFoundError(f"Payment confirmation request {request_id} was not found.")
    return request


def _ensure_pending(request: PaymentConfirmationRequest) -> None:
    status = PaymentConfirmationStatus(request.status)
    if status is not PaymentConfirmationStatus.PENDING:
        raise InvalidStateError(
            f"Payment confirmation request {request.id} is already {status.value} and cannot be reviewed again."
        )


def _store_proof(db: Session, proof: ProofFile, org_id: int, storage: FileStorage, actor: str, now) -> FileMetadata:
    max_bytes = get_settings().max_attachment_bytes
    if proof.size > max_bytes:
        raise InvalidArgumentError(f"File size exceeds the maximum allowed size of {max_bytes // (1024 * 1024)}MB.")
    content_type = proof.content_type or "application/octet-stream"
    storage_key = storage.upload(proof.stream, proof.filename, content_type, PAYMENT_PROOFS_FOLDER)
    file = FileMetadata(
        org_id=org_id,
        storage_key=storage_key,
        file_name=proof.filename,
        content_type=content_type,
        size_bytes=proof.size,
        created_by=actor,
        created_at=now,
    )
    db.add(file)
    return file


def create_confirmation_request(
    db: Session,
    invoice_id: int,
    amount,
    payment_date: datetime | date,
    receipt_number: str | None = None,
    notes: str | None = None,
    proof: ProofFile | None = None,
    *,
    storage: FileStorage | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> PaymentConfirmationRequest:
    invoice = get_invoice(db, invoice_id)
    ensure_invoice_accepts_payments(invoice)
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidArgumentError("Payment amount must be greater than zero.")
    amount = quantize_money(amount)
    validate_against_balance(amount, to_decimal(invoice.balance_amount))

    actor = resolve_actor(actor)
    now = clock()
    request = PaymentConfirmationRequest(
        org_id=invoice.org_id,
        invoice_id=invoice.id,
        lease_id=invoice.lease_id,
        amount=amount,
        payment_date=as_utc(payment_date),
        receipt_number=receipt_number,
        notes=notes,
        status=PaymentConfirmationStatus.PENDING,
        created_by=actor,
        created_at=now,
    )
    if proof is not None and proof.filename:
        if storage is None:
            raise InvalidArgumentError("File storage is not configured for payment proofs.")
        request.proof_file = _store_proof(db, proof, invoice.org_id, storage, actor, now)

    db.add(request)
    db.commit()
    logger.info("Payment confirmation request %s submitted for invoice %s", request.id, invoice.invoice_number)
    return request


def confirm_confirmation_request(
    db: Session,
    request_id: int,
    review_response: str | None = None,
    *,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> PaymentConfirmationRequest:
    request = get_confirmation_request(db, request_id)
    _ensure_pending(request)
    check_row_version(request, expected_row_version, f"Payment confirmation request {request.id}")

    invoice = get_invoice(db, request.invoice_id)
    ensure_invoice_accepts_payments(invoice)
    total_paid = sum_completed_payments(db, invoice.id)
    amount = to_decimal(request.amount)
    # The balance may have moved since the tenant submitted the claim
    validate_against_balance(amount, to_decimal(invoice.total_amount) - total_paid)

    actor = resolve_actor(actor)
    now = clock()
    payment = Payment(
        org_id=invoice.org_id,
        invoice_id=invoice.id,
        lease_id=invoice.lease_id,
        payment_type=PaymentType.RENT,
        payment_mode=PaymentMode.CASH,
        status=PaymentStatus.COMPLETED,
        amount=amount,
        payment_date=request.payment_date,
        transaction_reference=request.receipt_number,
        received_by=actor,
        notes=f"Confirmed from payment confirmation request {request.id}",
        created_by=actor,
        created_at=now,
    )
    db.add(payment)
    apply_payment_to_invoice(invoice, amount, now, already_paid=total_paid)
    invoice.touch(actor, now)

    request.payment = payment
    request.status = PaymentConfirmationStatus.CONFIRMED
    request.reviewed_at = now
    request.reviewed_by = actor
    request.review_response = review_response
    request.touch(actor, now)

    commit_or_conflict(db, f"Payment confirmation request {request.id}")
    logger.info("Payment confirmation request %s confirmed as payment %s", request.id, payment.id)
    return request


def reject_confirmation_request(
    db: Session,
    request_id: int,
    review_response: str,
    *,
    expected_row_version: int | None = None,
    actor: str | None = None,
    clock: Callable = utc_now,
) -> PaymentConfirmationRequest:
    request = get_confirmation_request(db, request_id)
    _ensure_pending(request)
    if not review_response or not review_response.strip():
        raise InvalidArgumentError("A review response is required when rejecting a payment confirmation.")
    check_row_version(request, expected_row_version, f"Payment confirmation request {request.id}")

    actor = resolve_actor(actor)
    now = clock()
    request.status = PaymentConfirmationStatus.REJECTED
    request.reviewed_at = now
    request.reviewed_by = actor
    request.review_response = review_response.strip()
    request.touch(actor, now)
    commit_or_conflict(db, f"Payment confirmation request {request.id}")
    logger.info("Payment confirmation request %s rejected", request.id)
    return request


def list_confirmation_requests(
    db: Session,
    org_id: int,
    *,
    status: PaymentConfirmationStatus | None = None,
    invoice_id: int | None = None,
    skip: int = 0,
    limit: int = 50,
) -> List[PaymentConfirmationRequest]:
    query = db.query(PaymentConfirmationRequest).filter(PaymentConfirmationRequest.org_id == org_id)
    if status is not None:
        query = query.filter(PaymentConfirmationRequest.status == status)
    if invoice_id is not None:
        query = query.filter(PaymentConfirmationRequest.invoice_id == invoice_id)
    return (
        query.order_by(PaymentConfirmationRequest.created_at.desc(), PaymentConfirmationRequest.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def proof_url(request: PaymentConfirmationRequest, storage: FileStorage) -> str | None:
    if request.proof_file is None:
        return None
    return storage.generate_signed_url(request.proof_file.storage_key, get_settings().signed_url_expiry_minutes)
