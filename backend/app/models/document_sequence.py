"""Per-organization counters behind invoice and credit-note numbers."""

from sqlalchemy import Column, Integer, UniqueConstraint

from backend.app.db.base_class import Base
from backend.app.models.enums import SequenceKind, db_enum


class DocumentSequence(Base):
    __tablename__ = "document_sequences"
    __table_args__ = (UniqueConstraint("org_id", "kind", name="uq_document_sequences_org_kind"),)

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, nullable=False)
    kind = Column(db_enum(SequenceKind), nullable=False)
    next_value = Column(Integer, nullable=False, default=1)
