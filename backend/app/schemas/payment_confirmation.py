"""Payment confirmation request schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.enums import PaymentConfirmationStatus


class ConfirmationReview(BaseModel):
    review_response: Optional[str] = None
    row_version: Optional[int] = None


class PaymentConfirmationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    invoice_id: int
    lease_id: int
    amount: Decimal
    payment_date: datetime
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    proof_file_id: Optional[int] = None
    status: PaymentConfirmationStatus
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_response: Optional[str] = None
    payment_id: Optional[int] = None
    row_version: int
    created_at: datetime
    created_by: Optional[str] = None
