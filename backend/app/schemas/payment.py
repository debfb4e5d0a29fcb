"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.enums import PaymentMode, PaymentStatus, PaymentType


class PaymentCreate(BaseModel):
    invoice_id: int
    payment_mode: PaymentMode
    amount: Decimal
    payment_date: datetime
    payment_type: PaymentType = PaymentType.RENT
    transaction_reference: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    gateway_name: Optional[str] = None
    payer_name: Optional[str] = None
    notes: Optional[str] = None
    payment_metadata: Optional[str] = None
    row_version: Optional[int] = None


class PaymentRecorded(BaseModel):
    payment_id: int
    payment_status: PaymentStatus
    invoice_balance: Decimal


class PendingPaymentConfirm(BaseModel):
    notes: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    row_version: Optional[int] = None


class PendingPaymentReject(BaseModel):
    reason: str = Field(min_length=1)
    row_version: Optional[int] = None


class PaymentRead(BaseModel):
    id: int
    org_id: int
    invoice_id: int
    lease_id: int
    payment_type: PaymentType
    payment_mode: PaymentMode
    status: PaymentStatus
    amount: Decimal
    payment_date: datetime
    transaction_reference: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    gateway_name: Optional[str] = None
    payer_name: Optional[str] = None
    received_by: str
    notes: Optional[str] = None
    row_version: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentAttachmentRead(BaseModel):
    id: int
    payment_id: int
    file_id: int
    file_name: str
    attachment_type: str
    description: Optional[str] = None
    display_order: int
    url: str
