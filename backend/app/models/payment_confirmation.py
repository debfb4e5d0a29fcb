"""Tenant-submitted claims of out-of-band payments awaiting review."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin
from backend.app.models.enums import PaymentConfirmationStatus, db_enum


class PaymentConfirmationRequest(AuditMixin, Base):
    __tablename__ = "payment_confirmation_requests"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    receipt_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    proof_file_id = Column(Integer, ForeignKey("file_metadata.id"), nullable=True)
    status = Column(
        db_enum(PaymentConfirmationStatus),
        nullable=False,
        default=PaymentConfirmationStatus.PENDING,
        index=True,
    )
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(100), nullable=True)
    review_response = Column(String(1000), nullable=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)

    row_version = Column(Integer, nullable=False, default=1)

    invoice = relationship("Invoice")
    payment = relationship("Payment")
    proof_file = relationship("FileMetadata")

    __mapper_args__ = {"version_id_col": row_version}
