"""Lease, effective-dated lease terms and per-lease billing settings."""

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, SmallInteger, String
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin, SoftDeleteMixin
from backend.app.models.enums import LeaseStatus, ProrationMethod, db_enum


class Lease(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "leases"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    lease_number = Column(String(50), nullable=True)
    status = Column(db_enum(LeaseStatus), nullable=False, default=LeaseStatus.DRAFT, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    terms = relationship("LeaseTerm", back_populates="lease", cascade="all, delete-orphan")
    recurring_charges = relationship("LeaseRecurringCharge", back_populates="lease", cascade="all, delete-orphan")
    billing_setting = relationship("LeaseBillingSetting", back_populates="lease", uselist=False, cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="lease")

    @property
    def display_name(self) -> str:
        return self.lease_number or str(self.id)


class LeaseTerm(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "lease_terms"

    id = Column(Integer, primary_key=True, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    monthly_rent = Column(Numeric(18, 2), nullable=False)
    security_deposit = Column(Numeric(18, 2), nullable=True)

    lease = relationship("Lease", back_populates="terms")


class LeaseBillingSetting(AuditMixin, Base):
    __tablename__ = "lease_billing_settings"

    id = Column(Integer, primary_key=True, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, unique=True)
    billing_day = Column(SmallInteger, nullable=False, default=1)
    payment_term_days = Column(SmallInteger, nullable=False, default=0)
    invoice_prefix = Column(String(20), nullable=True)
    payment_instructions = Column(String(1000), nullable=True)
    proration_method = Column(db_enum(ProrationMethod), nullable=True)

    lease = relationship("Lease", back_populates="billing_setting")
