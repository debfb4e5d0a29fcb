"""Credit notes reversing all or part of issued invoice lines."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin
from backend.app.models.enums import CreditNoteReason, CreditNoteStatus, db_enum


class CreditNote(AuditMixin, Base):
    __tablename__ = "credit_notes"
    __table_args__ = (UniqueConstraint("org_id", "credit_note_number", name="uq_credit_notes_org_number"),)

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    # Assigned when the credit note is issued
    credit_note_number = Column(String(50), nullable=True)
    credit_note_date = Column(Date, nullable=False)
    reason = Column(db_enum(CreditNoteReason), nullable=False)
    status = Column(db_enum(CreditNoteStatus), nullable=False, default=CreditNoteStatus.DRAFT)
    notes = Column(Text, nullable=True)
    total_amount = Column(Numeric(18, 2), nullable=False, default=0)
    issued_at = Column(DateTime(timezone=True), nullable=True)

    row_version = Column(Integer, nullable=False, default=1)

    invoice = relationship("Invoice", back_populates="credit_notes")
    lines = relationship(
        "CreditNoteLine",
        back_populates="credit_note",
        cascade="all, delete-orphan",
        order_by="CreditNoteLine.line_number",
    )

    __mapper_args__ = {"version_id_col": row_version}


class CreditNoteLine(Base):
    __tablename__ = "credit_note_lines"

    id = Column(Integer, primary_key=True, index=True)
    credit_note_id = Column(Integer, ForeignKey("credit_notes.id"), nullable=False, index=True)
    invoice_line_id = Column(Integer, ForeignKey("invoice_lines.id"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(18, 2), nullable=False, default=1)
    unit_price = Column(Numeric(18, 2), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    tax_amount = Column(Numeric(18, 2), nullable=False, default=0)
    total_amount = Column(Numeric(18, 2), nullable=False)
    notes = Column(String(500), nullable=True)

    credit_note = relationship("CreditNote", back_populates="lines")
    invoice_line = relationship("InvoiceLine")
