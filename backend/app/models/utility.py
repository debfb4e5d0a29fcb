"""Utility rate plans, their slabs, and per-lease utility statements."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin, SoftDeleteMixin
from backend.app.models.enums import UtilityType, db_enum


class UtilityRatePlan(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "utility_rate_plans"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    utility_type = Column(db_enum(UtilityType), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    slabs = relationship(
        "UtilityRateSlab",
        back_populates="rate_plan",
        cascade="all, delete-orphan",
        order_by="UtilityRateSlab.slab_order",
    )


class UtilityRateSlab(Base):
    __tablename__ = "utility_rate_slabs"

    id = Column(Integer, primary_key=True, index=True)
    rate_plan_id = Column(Integer, ForeignKey("utility_rate_plans.id"), nullable=False, index=True)
    slab_order = Column(Integer, nullable=False)
    from_units = Column(Numeric(18, 2), nullable=False)
    # NULL means unbounded
    to_units = Column(Numeric(18, 2), nullable=True)
    rate_per_unit = Column(Numeric(18, 4), nullable=False)
    fixed_charge = Column(Numeric(18, 2), nullable=True)

    rate_plan = relationship("UtilityRatePlan", back_populates="slabs")


class UtilityStatement(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "utility_statements"

    id = Column(Integer, primary_key=True, index=True)
    lease_id = Column(Integer, ForeignKey("leases.id"), nullable=False, index=True)
    utility_type = Column(db_enum(UtilityType), nullable=False)
    billing_period_start = Column(Date, nullable=False)
    billing_period_end = Column(Date, nullable=False)
    is_meter_based = Column(Boolean, nullable=False, default=False)
    rate_plan_id = Column(Integer, ForeignKey("utility_rate_plans.id"), nullable=True)
    previous_reading = Column(Numeric(18, 2), nullable=True)
    current_reading = Column(Numeric(18, 2), nullable=True)
    units_consumed = Column(Numeric(18, 2), nullable=True)
    rate_per_unit = Column(Numeric(18, 4), nullable=True)
    fixed_charge = Column(Numeric(18, 2), nullable=True)
    direct_bill_amount = Column(Numeric(18, 2), nullable=True)
    calculated_amount = Column(Numeric(18, 2), nullable=True)
    notes = Column(Text, nullable=True)
    # Set once the statement has been billed on an invoice line
    invoice_line_id = Column(Integer, ForeignKey("invoice_lines.id", ondelete="SET NULL"), nullable=True, index=True)

    rate_plan = relationship("UtilityRatePlan")
    invoice_line = relationship("InvoiceLine")

    @property
    def consumption(self):
        if self.units_consumed is not None:
            return self.units_consumed
        if self.current_reading is not None and self.previous_reading is not None:
            return self.current_reading - self.previous_reading
        return None
