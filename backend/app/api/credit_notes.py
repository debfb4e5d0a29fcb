"""Credit note routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import Actor, ensure_same_org, require_manager
from backend.app.schemas.credit_note import CreditNoteCreate, CreditNoteIssueRequest, CreditNoteRead
from backend.app.services.credit_notes import (
    CreditNoteLineRequest,
    create_credit_note,
    get_credit_note,
    issue_credit_note,
)
from backend.app.api.invoices import get_org_invoice

router = APIRouter(prefix="/credit-notes", tags=["credit-notes"])


@router.post("/", response_model=CreditNoteRead, status_code=status.HTTP_201_CREATED)
async def create(
    payload: CreditNoteCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    get_org_invoice(db, payload.invoice_id, actor)
    lines = [CreditNoteLineRequest(line.invoice_line_id, line.amount, line.notes) for line in payload.lines]
    return create_credit_note(db, payload.invoice_id, payload.reason, lines, payload.notes, actor=actor.user_id)


@router.post("/{credit_note_id}/issue", response_model=CreditNoteRead)
async def issue(
    credit_note_id: int,
    payload: CreditNoteIssueRequest | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    credit_note = get_credit_note(db, credit_note_id)
    ensure_same_org(actor, credit_note.org_id, "credit note")
    return issue_credit_note(
        db,
        credit_note_id,
        expected_row_version=payload.row_version if payload else None,
        actor=actor.user_id,
    )


@router.get("/{credit_note_id}", response_model=CreditNoteRead)
async def get_detail(
    credit_note_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    credit_note = get_credit_note(db, credit_note_id)
    ensure_same_org(actor, credit_note.org_id, "credit note")
    return credit_note
