"""Per-organization invoice and credit-note numbers.

Numbers come from a ``document_sequences`` row per (org, kind). The row is
incremented with a single UPDATE inside the caller's transaction, which holds
the row (or, on SQLite, the database) write lock until the caller commits, so
a rolled-back caller does not consume a number and parallel callers never read
the same value.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import ConflictError
from backend.app.core.settings import get_settings
from backend.app.models.document_sequence import DocumentSequence
from backend.app.models.enums import SequenceKind

logger = logging.getLogger(__name__)


def format_document_number(prefix: str, value: int) -> str:
    return f"{prefix}-{value:06d}"


def _increment(db: Session, org_id: int, kind: SequenceKind) -> int | None:
    result = db.execute(
        update(DocumentSequence)
        .where(DocumentSequence.org_id == org_id, DocumentSequence.kind == kind)
        .values(next_value=DocumentSequence.next_value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    next_value = db.execute(
        select(DocumentSequence.next_value).where(
            DocumentSequence.org_id == org_id, DocumentSequence.kind == kind
        )
    ).scalar_one()
    return next_value - 1


def _reserve_next_value(db: Session, org_id: int, kind: SequenceKind) -> int:
    value = _increment(db, org_id, kind)
    if value is not None:
        return value
    try:
        with db.begin_nested():
            db.add(DocumentSequence(org_id=org_id, kind=kind, next_value=2))
        return 1
    except IntegrityError:
        # Another writer created the first row; increment theirs
        logger.info("Sequence row for org %s/%s created concurrently", org_id, kind.value)
    value = _increment(db, org_id, kind)
    if value is None:
        raise ConflictError("Could not reserve a document number. Please retry.")
    return value


def next_invoice_number(db: Session, org_id: int, prefix: str | None = None) -> str:
    prefix = prefix or get_settings().default_invoice_prefix
    return format_document_number(prefix, _reserve_next_value(db, org_id, SequenceKind.INVOICE))


def next_credit_note_number(db: Session, org_id: int, prefix: str | None = None) -> str:
    prefix = prefix or get_settings().credit_note_prefix
    return format_document_number(prefix, _reserve_next_value(db, org_id, SequenceKind.CREDIT_NOTE))
