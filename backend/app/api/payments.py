"""Payment recording, review and receipt attachment endpoints."""

from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from backend.app.core.errors import retry_on_conflict
from backend.app.core.storage import FileStorage, get_storage
from backend.app.db.session import get_db
from backend.app.dependencies.auth import Actor, ensure_same_org, get_current_actor, require_manager
from backend.app.models.enums import PaymentStatus
from backend.app.models.payment import Payment
from backend.app.schemas.payment import (
    PaymentAttachmentRead,
    PaymentCreate,
    PaymentRead,
    PaymentRecorded,
    PendingPaymentConfirm,
    PendingPaymentReject,
)
from backend.app.services.payments import (
    add_payment_attachment,
    confirm_pending_payment,
    get_payment,
    list_payments,
    record_payment,
    reject_pending_payment,
)
from backend.app.api.invoices import get_org_invoice

router = APIRouter(prefix="/payments", tags=["payments"])


def upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def _get_org_payment(db: Session, payment_id: int, actor: Actor) -> Payment:
    payment = get_payment(db, payment_id)
    ensure_same_org(actor, payment.org_id, "payment")
    return payment


@router.post("/", response_model=PaymentRecorded, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    get_org_invoice(db, payload.invoice_id, actor)

    def _record():
        return record_payment(
            db,
            payload.invoice_id,
            payload.payment_mode,
            payload.amount,
            payload.payment_date,
            transaction_reference=payload.transaction_reference,
            payer_name=payload.payer_name,
            notes=payload.notes,
            payment_type=payload.payment_type,
            gateway_transaction_id=payload.gateway_transaction_id,
            gateway_name=payload.gateway_name,
            metadata=payload.payment_metadata,
            expected_row_version=payload.row_version,
            actor=actor.user_id,
        )

    # A caller-supplied row version is a deliberate check, never retried
    result = _record() if payload.row_version is not None else retry_on_conflict(_record)
    return PaymentRecorded(
        payment_id=result.payment_id,
        payment_status=result.payment_status,
        invoice_balance=result.invoice_balance,
    )


@router.get("/", response_model=List[PaymentRead])
async def list_org_payments(
    invoice_id: int | None = None,
    lease_id: int | None = None,
    status: PaymentStatus | None = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return list_payments(
        db, actor.org_id, invoice_id=invoice_id, lease_id=lease_id, status=status, skip=skip, limit=limit
    )


@router.post("/{payment_id}/confirm", response_model=PaymentRecorded)
async def confirm_payment(
    payment_id: int,
    payload: PendingPaymentConfirm | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    _get_org_payment(db, payment_id, actor)
    payload = payload or PendingPaymentConfirm()
    result = confirm_pending_payment(
        db,
        payment_id,
        payload.notes,
        gateway_transaction_id=payload.gateway_transaction_id,
        expected_row_version=payload.row_version,
        actor=actor.user_id,
    )
    return PaymentRecorded(
        payment_id=result.payment_id,
        payment_status=result.payment_status,
        invoice_balance=result.invoice_balance,
    )


@router.post("/{payment_id}/reject", response_model=PaymentRead)
async def reject_payment(
    payment_id: int,
    payload: PendingPaymentReject,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    _get_org_payment(db, payment_id, actor)
    return reject_pending_payment(
        db, payment_id, payload.reason, expected_row_version=payload.row_version, actor=actor.user_id
    )


@router.post("/{payment_id}/attachments", response_model=PaymentAttachmentRead, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    payment_id: int,
    file: UploadFile = File(...),
    attachment_type: str = Form("Receipt"),
    description: str | None = Form(None),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    actor: Actor = Depends(require_manager),
):
    _get_org_payment(db, payment_id, actor)
    attachment, url = add_payment_attachment(
        db,
        payment_id,
        file.file,
        file.filename or "",
        file.content_type or "application/octet-stream",
        upload_size(file),
        storage,
        attachment_type=attachment_type,
        description=description,
        actor=actor.user_id,
    )
    return PaymentAttachmentRead(
        id=attachment.id,
        payment_id=attachment.payment_id,
        file_id=attachment.file_id,
        file_name=attachment.file.file_name,
        attachment_type=attachment.attachment_type,
        description=attachment.description,
        display_order=attachment.display_order,
        url=url,
    )
