"""Credit note schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.enums import CreditNoteReason, CreditNoteStatus


class CreditNoteLineCreate(BaseModel):
    invoice_line_id: int
    amount: Decimal
    notes: Optional[str] = None


class CreditNoteCreate(BaseModel):
    invoice_id: int
    reason: CreditNoteReason
    notes: Optional[str] = None
    lines: List[CreditNoteLineCreate] = Field(default_factory=list)


class CreditNoteIssueRequest(BaseModel):
    row_version: Optional[int] = None


class CreditNoteLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_line_id: int
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: Optional[str] = None


class CreditNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    invoice_id: int
    credit_note_number: Optional[str] = None
    credit_note_date: date
    reason: CreditNoteReason
    status: CreditNoteStatus
    notes: Optional[str] = None
    total_amount: Decimal
    issued_at: Optional[datetime] = None
    row_version: int
    lines: List[CreditNoteLineRead] = []
