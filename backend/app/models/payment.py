"""Payment model for invoice receipts."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin
from backend.app.models.enums import PaymentMode, PaymentStatus, PaymentType, db_enum


class Payment(AuditMixin, Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    payment_type = Column(db_enum(PaymentType), nullable=False, default=PaymentType.RENT)
    payment_mode = Column(db_enum(PaymentMode), nullable=False)
    status = Column(db_enum(PaymentStatus), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    transaction_reference = Column(String(100), nullable=True)
    gateway_transaction_id = Column(String(100), nullable=True)
    gateway_name = Column(String(50), nullable=True)
    payer_name = Column(String(200), nullable=True)
    received_by = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)
    payment_metadata = Column(Text, nullable=True)

    row_version = Column(Integer, nullable=False, default=1)

    invoice = relationship("Invoice", back_populates="payments")
    attachments = relationship(
        "PaymentAttachment",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAttachment.display_order",
    )

    __mapper_args__ = {"version_id_col": row_version}


class PaymentAttachment(AuditMixin, Base):
    __tablename__ = "payment_attachments"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)
    file_id = Column(Integer, ForeignKey("file_metadata.id"), nullable=False)
    attachment_type = Column(String(50), nullable=False, default="Receipt")
    description = Column(String(500), nullable=True)
    display_order = Column(Integer, nullable=False, default=1)

    payment = relationship("Payment", back_populates="attachments")
    file = relationship("FileMetadata")
