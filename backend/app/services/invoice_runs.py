"""Batch invoice runs across the eligible leases of an organization.

Each lease is generated inside its own SAVEPOINT so one failing lease cannot
leave another half-written; the run header and its items are saved with the
generated invoices in a single final commit.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List

from sqlalchemy import exists
from sqlalchemy.orm import Session

from backend.app.core.errors import BillingError, InvalidArgumentError, OperationCancelledError
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.models.enums import InvoiceRunStatus, InvoiceRunType, LeaseStatus
from backend.app.models.invoice_run import InvoiceRun, InvoiceRunItem
from backend.app.models.lease import Lease
from backend.app.models.utility import UtilityStatement
from backend.app.services.billing import resolve_actor
from backend.app.services.invoice_generation import generate_invoice

logger = logging.getLogger(__name__)

GENERIC_RUN_FAILURE = "Invoice run failed due to an unexpected error."
GENERIC_LEASE_FAILURE = "Invoice generation failed due to an unexpected error."


@dataclass
class InvoiceRunResult:
    is_success: bool
    invoice_run: InvoiceRun | None = None
    total_leases: int = 0
    success_count: int = 0
    failure_count: int = 0
    error_messages: List[str] = field(default_factory=list)


def _run_number(period_start: date) -> str:
    return f"RUN-{period_start:%Y%m}-{uuid.uuid4().hex[:8].upper()}"


def _active_leases_query(db: Session, org_id: int):
    return db.query(Lease).filter(
        Lease.org_id == org_id,
        Lease.status == LeaseStatus.ACTIVE,
        Lease.not_deleted(),
    )


def eligible_rent_leases(db: Session, org_id: int) -> List[Lease]:
    return _active_leases_query(db, org_id).order_by(Lease.id).all()


def eligible_utility_leases(db: Session, org_id: int, period_start: date, period_end: date) -> List[Lease]:
    has_pending_statement = exists().where(
        UtilityStatement.lease_id == Lease.id,
        UtilityStatement.invoice_line_id.is_(None),
        UtilityStatement.billing_period_end >= period_start,
        UtilityStatement.billing_period_end <= period_end,
        UtilityStatement.not_deleted(),
    )
    return _active_leases_query(db, org_id).filter(has_pending_statement).order_by(Lease.id).all()


def _execute_run(
    db: Session,
    org_id: int,
    run_type: InvoiceRunType,
    leases: List[Lease],
    period_start: date,
    period_end: date,
    proration_method,
    actor: str,
    clock: Callable,
    cancel_event: threading.Event | None,
) -> InvoiceRunResult:
    run = InvoiceRun(
        org_id=org_id,
        run_number=_run_number(period_start),
        run_type=run_type,
        billing_period_start=period_start,
        billing_period_end=period_end,
        status=InvoiceRunStatus.IN_PROGRESS,
        started_at=clock(),
        total_leases=len(leases),
        created_by=actor,
    )
    error_messages: List[str] = []
    success_count = 0

    for lease in leases:
        if cancel_event is not None and cancel_event.is_set():
            db.rollback()
            logger.warning("Invoice run %s cancelled after %s of %s leases", run.run_number, len(run.items), len(leases))
            raise OperationCancelledError(f"Invoice run {run.run_number} was cancelled.")

        lease_id = lease.id
        lease_name = lease.display_name
        item = InvoiceRunItem(lease_id=lease_id, processed_at=clock())
        message = None
        try:
            with db.begin_nested():
                result = generate_invoice(
                    db,
                    lease_id,
                    period_start,
                    period_end,
                    proration_method,
                    actor=actor,
                    clock=clock,
                    commit=False,
                )
            item.is_success = True
            item.invoice_id = result.invoice.id
            item.was_updated = result.was_updated
            success_count += 1
        except BillingError as exc:
            message = exc.message
            logger.warning("Invoice generation failed for lease %s in run %s: %s", lease_name, run.run_number, message)
        except Exception:  # noqa: BLE001
            message = GENERIC_LEASE_FAILURE
            logger.exception("Invoice generation crashed for lease %s in run %s", lease_name, run.run_number)
        if message is not None:
            item.is_success = False
            item.error_message = message
            error_messages.append(f"Lease {lease_name}: {message}")
        run.items.append(item)

    run.success_count = success_count
    run.failure_count = len(error_messages)
    run.status = InvoiceRunStatus.COMPLETED
    run.completed_at = clock()
    if not leases:
        run.notes = "No eligible leases found"
    if error_messages:
        run.error_message = "; ".join(error_messages[: get_settings().run_error_summary_limit])

    db.add(run)
    db.commit()
    logger.info(
        "Invoice run %s (%s) for org %s finished: %s leases, %s succeeded, %s failed",
        run.run_number,
        run_type.value,
        org_id,
        run.total_leases,
        run.success_count,
        run.failure_count,
    )
    return InvoiceRunResult(
        is_success=True,
        invoice_run=run,
        total_leases=run.total_leases,
        success_count=run.success_count,
        failure_count=run.failure_count,
        error_messages=error_messages,
    )


def _guarded_run(db, org_id, run_type, load_leases, period_start, period_end, proration_method, actor, clock, cancel_event):
    if period_end < period_start:
        raise InvalidArgumentError("Billing period end cannot be before start.")
    actor = resolve_actor(actor)
    try:
        leases = load_leases()
        return _execute_run(
            db, org_id, run_type, leases, period_start, period_end, proration_method, actor, clock, cancel_event
        )
    except OperationCancelledError:
        raise
    except Exception:
        db.rollback()
        logger.exception("%s invoice run for org %s crashed", run_type.value, org_id)
        return InvoiceRunResult(is_success=False, error_messages=[GENERIC_RUN_FAILURE])


def execute_monthly_rent_run(
    db: Session,
    org_id: int,
    period_start: date,
    period_end: date,
    proration_method=None,
    *,
    actor: str | None = None,
    clock: Callable = utc_now,
    cancel_event: threading.Event | None = None,
) -> InvoiceRunResult:
    return _guarded_run(
        db,
        org_id,
        InvoiceRunType.MONTHLY_RENT,
        lambda: eligible_rent_leases(db, org_id),
        period_start,
        period_end,
        proration_method,
        actor,
        clock,
        cancel_event,
    )


def execute_utility_run(
    db: Session,
    org_id: int,
    period_start: date,
    period_end: date,
    proration_method=None,
    *,
    actor: str | None = None,
    clock: Callable = utc_now,
    cancel_event: threading.Event | None = None,
) -> InvoiceRunResult:
    return _guarded_run(
        db,
        org_id,
        InvoiceRunType.UTILITY,
        lambda: eligible_utility_leases(db, org_id, period_start, period_end),
        period_start,
        period_end,
        proration_method,
        actor,
        clock,
        cancel_event,
    )


def get_invoice_run(db: Session, run_id: int) -> InvoiceRun | None:
    return db.query(InvoiceRun).filter(InvoiceRun.id == run_id).first()
