"""Scheduled billing jobs: monthly rent, utility billing and overdue detection.

Jobs run without a user, so every change they make is stamped with the
system actor.
"""

import calendar
import logging
from datetime import date, timedelta
from typing import Callable, Dict, List

from sqlalchemy.orm import Session

from backend.app.core.time import utc_now
from backend.app.db import base  # noqa: F401  jobs run outside the API, which otherwise registers the mappers
from backend.app.models.enums import InvoiceStatus, LeaseStatus
from backend.app.models.invoice import Invoice
from backend.app.models.lease import Lease
from backend.app.services.billing import SYSTEM_ACTOR, sum_completed_payments
from backend.app.services.invoice_runs import InvoiceRunResult, execute_monthly_rent_run, execute_utility_run
from backend.app.services.proration import to_decimal

logger = logging.getLogger(__name__)

OVERDUE_CANDIDATE_STATUSES = (InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID)


class BillingJobError(Exception):
    """A scheduled run could not complete for an organization."""


def month_period(day: date) -> tuple[date, date]:
    start = day.replace(day=1)
    end = day.replace(day=calendar.monthrange(day.year, day.month)[1])
    return start, end


def next_month_period(today: date) -> tuple[date, date]:
    _, this_month_end = month_period(today)
    return month_period(this_month_end + timedelta(days=1))


def organizations_with_active_leases(db: Session) -> List[int]:
    rows = (
        db.query(Lease.org_id)
        .filter(Lease.status == LeaseStatus.ACTIVE, Lease.not_deleted())
        .distinct()
        .order_by(Lease.org_id)
        .all()
    )
    return [org_id for (org_id,) in rows]


def _log_run_result(kind: str, org_id: int, result: InvoiceRunResult) -> None:
    if not result.is_success:
        logger.error("%s failed for org %s: %s", kind, org_id, "; ".join(result.error_messages))
        return
    logger.info(
        "%s completed for org %s. Total: %s, Success: %s, Failures: %s",
        kind,
        org_id,
        result.total_leases,
        result.success_count,
        result.failure_count,
    )
    if result.failure_count:
        logger.warning("%s had failures for org %s: %s", kind, org_id, "; ".join(result.error_messages))


def run_monthly_rent_job(
    db: Session,
    org_id: int,
    period_start: date,
    period_end: date,
    proration_method=None,
    *,
    clock: Callable = utc_now,
) -> InvoiceRunResult:
    logger.info("Starting monthly rent generation for org %s, period %s to %s", org_id, period_start, period_end)
    result = execute_monthly_rent_run(
        db, org_id, period_start, period_end, proration_method, actor=SYSTEM_ACTOR, clock=clock
    )
    _log_run_result("Monthly rent generation", org_id, result)
    if not result.is_success:
        raise BillingJobError(f"Monthly rent generation failed for org {org_id}: {'; '.join(result.error_messages)}")
    return result


def run_monthly_rent_for_next_month(
    db: Session,
    today: date | None = None,
    days_before_period_start: int = 5,
    *,
    clock: Callable = utc_now,
) -> Dict[int, InvoiceRunResult]:
    """Generate next month's rent invoices for every organization with active leases."""
    today = today or clock().date()
    period_start, period_end = next_month_period(today)
    days_until_start = (period_start - today).days
    if abs(days_until_start - days_before_period_start) > 1:
        logger.warning(
            "Monthly rent job running outside its window: %s days until period start, expected %s",
            days_until_start,
            days_before_period_start,
        )

    results: Dict[int, InvoiceRunResult] = {}
    failed_orgs = []
    for org_id in organizations_with_active_leases(db):
        try:
            results[org_id] = run_monthly_rent_job(db, org_id, period_start, period_end, clock=clock)
        except Exception:  # noqa: BLE001
            logger.exception("Monthly rent generation crashed for org %s", org_id)
            failed_orgs.append(org_id)
    logger.info(
        "Monthly rent generation for %s..%s finished: %s organizations processed, %s failed",
        period_start,
        period_end,
        len(results),
        len(failed_orgs),
    )
    return results


def run_utility_billing_job(
    db: Session,
    org_id: int,
    period_start: date,
    period_end: date,
    *,
    clock: Callable = utc_now,
) -> InvoiceRunResult:
    logger.info("Starting utility billing for org %s, period %s to %s", org_id, period_start, period_end)
    result = execute_utility_run(db, org_id, period_start, period_end, actor=SYSTEM_ACTOR, clock=clock)
    _log_run_result("Utility billing", org_id, result)
    if not result.is_success:
        raise BillingJobError(f"Utility billing failed for org {org_id}: {'; '.join(result.error_messages)}")
    return result


def run_utility_billing_for_current_period(
    db: Session,
    today: date | None = None,
    *,
    clock: Callable = utc_now,
) -> Dict[int, InvoiceRunResult]:
    period_start, period_end = month_period(today or clock().date())
    results: Dict[int, InvoiceRunResult] = {}
    for org_id in organizations_with_active_leases(db):
        try:
            results[org_id] = run_utility_billing_job(db, org_id, period_start, period_end, clock=clock)
        except Exception:  # noqa: BLE001
            logger.exception("Utility billing crashed for org %s", org_id)
    return results


def detect_overdue_invoices(
    db: Session,
    org_id: int,
    today: date | None = None,
    *,
    clock: Callable = utc_now,
) -> int:
    """Mark Issued/PartiallyPaid invoices past due with an outstanding balance as Overdue."""
    now = clock()
    today = today or now.date()
    candidates = (
        db.query(Invoice)
        .filter(
            Invoice.org_id == org_id,
            Invoice.status.in_(OVERDUE_CANDIDATE_STATUSES),
            Invoice.due_date < today,
            Invoice.not_deleted(),
        )
        .order_by(Invoice.due_date, Invoice.id)
        .all()
    )
    logger.info("Found %s potentially overdue invoices for org %s", len(candidates), org_id)

    updated = 0
    for invoice in candidates:
        invoice_number = invoice.invoice_number
        try:
            with db.begin_nested():
                total_paid = sum_completed_payments(db, invoice.id)
                balance = to_decimal(invoice.total_amount) - total_paid
                if balance <= 0:
                    continue
                invoice.status = InvoiceStatus.OVERDUE
                invoice.paid_amount = total_paid
                invoice.balance_amount = balance
                invoice.touch(SYSTEM_ACTOR, now)
            updated += 1
            logger.info("Marked invoice %s as Overdue; balance %s, due %s", invoice_number, balance, invoice.due_date)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to process invoice %s during overdue detection", invoice_number)

    db.commit()
    logger.info("Overdue detection for org %s updated %s invoices", org_id, updated)
    return updated
