"""Invoice routes: generation, listing and lifecycle transitions."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.core.errors import NotFoundError
from backend.app.db.session import get_db
from backend.app.dependencies.auth import Actor, ensure_same_org, get_current_actor, require_manager
from backend.app.models.enums import InvoiceStatus
from backend.app.models.invoice import Invoice
from backend.app.models.lease import Lease
from backend.app.schemas.invoice import (
    InvoiceGenerateRequest,
    InvoiceGenerationRead,
    InvoiceIssueRequest,
    InvoiceRead,
    InvoiceVoidRequest,
)
from backend.app.services.billing import get_invoice
from backend.app.services.invoice_generation import generate_invoice
from backend.app.services.invoice_management import issue_invoice, list_invoices, void_invoice

router = APIRouter(prefix="/invoices", tags=["invoices"])


def get_org_invoice(db: Session, invoice_id: int, actor: Actor) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    ensure_same_org(actor, invoice.org_id, "invoice")
    return invoice


@router.post("/generate", response_model=InvoiceGenerationRead)
async def generate_lease_invoice(
    payload: InvoiceGenerateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    lease = db.query(Lease).filter(Lease.id == payload.lease_id, Lease.not_deleted()).first()
    if lease is None:
        raise NotFoundError(f"Lease {payload.lease_id} was not found.")
    ensure_same_org(actor, lease.org_id, "lease")
    result = generate_invoice(
        db,
        lease.id,
        payload.billing_period_start,
        payload.billing_period_end,
        payload.proration_method,
        actor=actor.user_id,
    )
    return InvoiceGenerationRead(invoice=InvoiceRead.model_validate(result.invoice), was_updated=result.was_updated)


@router.get("/", response_model=List[InvoiceRead])
async def list_org_invoices(
    status: InvoiceStatus | None = None,
    lease_id: int | None = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return list_invoices(db, actor.org_id, lease_id=lease_id, status=status, skip=skip, limit=limit)


@router.get("/{invoice_id}", response_model=InvoiceRead)
async def get_invoice_detail(
    invoice_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return get_org_invoice(db, invoice_id, actor)


@router.post("/{invoice_id}/issue", response_model=InvoiceRead)
async def issue(
    invoice_id: int,
    payload: InvoiceIssueRequest | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    get_org_invoice(db, invoice_id, actor)
    return issue_invoice(
        db,
        invoice_id,
        expected_row_version=payload.row_version if payload else None,
        actor=actor.user_id,
    )


@router.post("/{invoice_id}/void", response_model=InvoiceRead)
async def void(
    invoice_id: int,
    payload: InvoiceVoidRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    get_org_invoice(db, invoice_id, actor)
    return void_invoice(db, invoice_id, payload.reason, expected_row_version=payload.row_version, actor=actor.user_id)
