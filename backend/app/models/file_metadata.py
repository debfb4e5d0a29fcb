"""Metadata for files held by the configured file storage."""

from sqlalchemy import BigInteger, Column, Integer, String

from backend.app.db.base_class import Base
from backend.app.db.mixins import AuditMixin


class FileMetadata(AuditMixin, Base):
    __tablename__ = "file_metadata"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    storage_key = Column(String(500), nullable=False, unique=True)
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
