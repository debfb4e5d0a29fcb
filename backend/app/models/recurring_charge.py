"""Per-lease recurring charges billed alongside rent."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin, SoftDeleteMixin
from backend.app.models.enums import BillingFrequency, db_enum


class LeaseRecurringCharge(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "lease_recurring_charges"

    id = Column(Integer, primary_key=True, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    charge_type_id = Column(Integer, ForeignKey("charge_types.id"), nullable=False, index=True)
    description = Column(String(200), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    frequency = Column(db_enum(BillingFrequency), nullable=False, default=BillingFrequency.MONTHLY)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(String(500), nullable=True)

    lease = relationship("Lease", back_populates="recurring_charges")
    charge_type = relationship("ChargeType")
