"""Invoice model for lease billing."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin, SoftDeleteMixin
from backend.app.models.enums import InvoiceStatus, db_enum


class Invoice(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("org_id", "invoice_number", name="uq_invoices_org_number"),
        # At most one Draft per lease and billing period
        Index(
            "uq_invoices_draft_lease_period",
            "lease_id",
            "billing_period_start",
            "billing_period_end",
            unique=True,
            sqlite_where=text("status = 'Draft'"),
            postgresql_where=text("status = 'Draft'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False, index=True)

    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    status = Column(db_enum(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False, index=True)
    billing_period_start = Column(Date, nullable=False)
    billing_period_end = Column(Date, nullable=False)

    subtotal = Column(Numeric(18, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(18, 2), default=0, nullable=False)
    total_amount = Column(Numeric(18, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(18, 2), default=0, nullable=False)
    balance_amount = Column(Numeric(18, 2), default=0, nullable=False)

    issued_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(String(500), nullable=True)
    payment_instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    row_version = Column(Integer, nullable=False, default=1)

    lease = relationship("Lease", back_populates="invoices")
    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
    )
    payments = relationship("Payment", back_populates="invoice")
    credit_notes = relationship("CreditNote", back_populates="invoice")

    __mapper_args__ = {"version_id_col": row_version}

    def __repr__(self):
        return f"<Invoice(id={self.id}, number={self.invoice_number!r}, status={self.status})>"
