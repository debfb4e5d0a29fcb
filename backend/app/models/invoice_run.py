"""Batch invoice run header and its per-lease items."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin
from backend.app.models.enums import InvoiceRunStatus, InvoiceRunType, db_enum


class InvoiceRun(AuditMixin, Base):
    __tablename__ = "invoice_runs"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    run_number = Column(String(50), nullable=False, unique=True)
    run_type = Column(db_enum(InvoiceRunType), nullable=False)
    billing_period_start = Column(Date, nullable=False)
    billing_period_end = Column(Date, nullable=False)
    status = Column(db_enum(InvoiceRunStatus), nullable=False, default=InvoiceRunStatus.IN_PROGRESS)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    total_leases = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    notes = Column(String(500), nullable=True)

    items = relationship("InvoiceRunItem", back_populates="invoice_run", cascade="all, delete-orphan", order_by="InvoiceRunItem.id")


class InvoiceRunItem(Base):
    __tablename__ = "invoice_run_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_run_id = Column(Integer, ForeignKey("invoice_runs.id"), nullable=False, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)
    is_success = Column(Boolean, nullable=False, default=False)
    was_updated = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=False)

    invoice_run = relationship("InvoiceRun", back_populates="items")
