"""Invoice schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.enums import InvoiceStatus, ProrationMethod


class InvoiceGenerateRequest(BaseModel):
    lease_id: int
    billing_period_start: date
    billing_period_end: date
    proration_method: Optional[ProrationMethod] = None


class InvoiceIssueRequest(BaseModel):
    row_version: Optional[int] = None


class InvoiceVoidRequest(BaseModel):
    reason: str
    row_version: Optional[int] = None


class InvoiceLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    charge_type_id: int
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: Optional[str] = None


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    lease_id: int
    invoice_number: str
    invoice_date: date
    due_date: date
    status: InvoiceStatus
    billing_period_start: date
    billing_period_end: date

    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal

    issued_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    payment_instructions: Optional[str] = None
    row_version: int

    lines: List[InvoiceLineRead] = []


class InvoiceGenerationRead(BaseModel):
    invoice: InvoiceRead
    was_updated: bool
