"""Column mixins shared by billing models."""

from sqlalchemy import Boolean, Column, DateTime, String, false

from backend.app.core.time import utc_now


class AuditMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    created_by = Column(String(100), nullable=True)
    modified_at = Column(DateTime(timezone=True), nullable=True)
    modified_by = Column(String(100), nullable=True)

    def touch(self, actor: str, now) -> None:
        self.modified_at = now
        self.modified_by = actor


class SoftDeleteMixin:
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(100), nullable=True)

    @classmethod
    def not_deleted(cls):
        """The one filter every query uses to hide soft-deleted rows."""
        return cls.is_deleted.is_(False)
