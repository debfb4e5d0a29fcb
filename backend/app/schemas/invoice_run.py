"""Invoice run schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.enums import InvoiceRunStatus, InvoiceRunType, ProrationMethod


class InvoiceRunRequest(BaseModel):
    billing_period_start: date
    billing_period_end: date
    proration_method: Optional[ProrationMethod] = None


class InvoiceRunItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lease_id: int
    invoice_id: Optional[int] = None
    is_success: bool
    was_updated: bool
    error_message: Optional[str] = None
    processed_at: datetime


class InvoiceRunRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    run_number: str
    run_type: InvoiceRunType
    status: InvoiceRunStatus
    billing_period_start: date
    billing_period_end: date
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_leases: int
    success_count: int
    failure_count: int
    error_message: Optional[str] = None
    notes: Optional[str] = None
    items: List[InvoiceRunItemRead] = []


class InvoiceRunResultRead(BaseModel):
    is_success: bool
    invoice_run: Optional[InvoiceRunRead] = None
    total_leases: int
    success_count: int
    failure_count: int
    error_messages: List[str] = []
