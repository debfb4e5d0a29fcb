"""Tenant payment confirmation requests and their review by managers."""

from datetime import datetime
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from backend.app.core.storage import FileStorage, get_storage
from backend.app.db.session import get_db
from backend.app.dependencies.auth import Actor, ensure_same_org, get_current_actor, require_manager
from backend.app.models.enums import PaymentConfirmationStatus
from backend.app.models.payment_confirmation import PaymentConfirmationRequest
from backend.app.schemas.payment_confirmation import ConfirmationReview, PaymentConfirmationRead
from backend.app.services.payment_confirmations import (
    ProofFile,
    confirm_confirmation_request,
    create_confirmation_request,
    get_confirmation_request,
    list_confirmation_requests,
    reject_confirmation_request,
)
from backend.app.api.invoices import get_org_invoice
from backend.app.api.payments import upload_size

router = APIRouter(prefix="/payment-confirmations", tags=["payment-confirmations"])


def _get_org_request(db: Session, request_id: int, actor: Actor) -> PaymentConfirmationRequest:
    request = get_confirmation_request(db, request_id)
    ensure_same_org(actor, request.org_id, "payment confirmation request")
    return request


@router.post("/", response_model=PaymentConfirmationRead, status_code=status.HTTP_201_CREATED)
async def submit_confirmation(
    invoice_id: int = Form(...),
    amount: Decimal = Form(...),
    payment_date: datetime = Form(...),
    receipt_number: str | None = Form(None),
    notes: str | None = Form(None),
    proof: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    actor: Actor = Depends(get_current_actor),
):
    get_org_invoice(db, invoice_id, actor)
    proof_file = None
    if proof is not None and proof.filename:
        proof_file = ProofFile(proof.file, proof.filename, proof.content_type, upload_size(proof))
    return create_confirmation_request(
        db,
        invoice_id,
        amount,
        payment_date,
        receipt_number,
        notes,
        proof_file,
        storage=storage,
        actor=actor.user_id,
    )


@router.get("/", response_model=List[PaymentConfirmationRead])
async def list_requests(
    status: PaymentConfirmationStatus | None = None,
    invoice_id: int | None = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return list_confirmation_requests(db, actor.org_id, status=status, invoice_id=invoice_id, skip=skip, limit=limit)


@router.post("/{request_id}/confirm", response_model=PaymentConfirmationRead)
async def confirm_request(
    request_id: int,
    payload: ConfirmationReview | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    _get_org_request(db, request_id, actor)
    payload = payload or ConfirmationReview()
    return confirm_confirmation_request(
        db,
        request_id,
        payload.review_response,
        expected_row_version=payload.row_version,
        actor=actor.user_id,
    )


@router.post("/{request_id}/reject", response_model=PaymentConfirmationRead)
async def reject_request(
    request_id: int,
    payload: ConfirmationReview,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    _get_org_request(db, request_id, actor)
    return reject_confirmation_request(
        db,
        request_id,
        payload.review_response or "",
        expected_row_version=payload.row_version,
        actor=actor.user_id,
    )
