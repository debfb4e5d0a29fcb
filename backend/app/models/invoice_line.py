"""Invoice line model for billing entries."""

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin


class InvoiceLine(AuditMixin, Base):
    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    charge_type_id = Column(Integer, ForeignKey("charge_types.id"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(18, 2), nullable=False, default=1)
    unit_price = Column(Numeric(18, 2), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(18, 2), nullable=False, default=0)
    total_amount = Column(Numeric(18, 2), nullable=False)
    notes = Column(String(500), nullable=True)

    invoice = relationship("Invoice", back_populates="lines")
    charge_type = relationship("ChargeType")
