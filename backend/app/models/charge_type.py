"""Charge types classify invoice lines (rent, parking, electricity, ...)."""

from sqlalchemy import Boolean, Column, Integer, Numeric, String, UniqueConstraint

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin, SoftDeleteMixin


class ChargeType(AuditMixin, SoftDeleteMixin, Base):
    __tablename__ = "charge_types"
    __table_args__ = (UniqueConstraint("org_id", "code", name="uq_charge_types_org_code"),)

    id = Column(Integer, primary_key=True, index=True)
    # NULL org_id marks a system-defined type visible to every organization
    org_id = Column(Integer, nullable=True, index=True)
    code = Column(String(20), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_system_defined = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_taxable = Column(Boolean, nullable=False, default=False)
    default_tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
